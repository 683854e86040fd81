"""
callsum Built-in Pipeline Stages

Default order:
    1. upload      — payload validation + SHA-256 fingerprint
    2. transcribe  — speech to text (external transcriber)
    3. analyze     — sentiment + key points (external analyzer)
    4. summarize   — summary + action items (external summarizer)
    5. finalize    — tidy the assembled result
"""

from callsum.contracts import StageDefinition
from callsum.stages.analyze import Analyzer, AnalyzeStage
from callsum.stages.finalize import FinalizeStage
from callsum.stages.summarize import Summarizer, SummarizeStage
from callsum.stages.transcribe import Transcriber, TranscribeStage
from callsum.stages.upload import UploadStage


def default_stages(
    transcriber: Transcriber,
    analyzer: Analyzer,
    summarizer: Summarizer,
) -> list[StageDefinition]:
    """Build the default five-stage definition list around external backends."""
    return [
        UploadStage().definition(),
        TranscribeStage(transcriber).definition(),
        AnalyzeStage(analyzer).definition(),
        SummarizeStage(summarizer).definition(),
        FinalizeStage().definition(),
    ]
