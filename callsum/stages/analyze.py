"""
Stage 3: Analyze

Delegates sentiment and key-point extraction to an external analyzer.

Analyzer contract:
    analyzer(transcript) -> {"sentiment": "positive" | "neutral" | "negative",
                             "key_points": [str, ...]}

Unknown sentiment labels are rejected by the pipeline's result validation.
"""

from typing import Any, Callable, Mapping

from callsum.models import Sentiment
from callsum.stages.base import Stage, latest_field


Analyzer = Callable[[str], Mapping[str, Any]]


class AnalyzeStage(Stage):
    stage_id = "analyze"
    label = "Analyzing content and sentiment"

    def __init__(self, analyzer: Analyzer):
        self.analyzer = analyzer

    def execute(self, artifact, prior_outputs):
        yield 0
        analysis = self.analyzer(latest_field(prior_outputs, "transcript", ""))
        if not isinstance(analysis, Mapping):
            raise self.fail(f"analyzer returned {type(analysis).__name__}, expected a mapping")

        yield 100
        return {
            **analysis,
            "sentiment": analysis.get("sentiment", Sentiment.NEUTRAL.value),
            "key_points": list(analysis.get("key_points", ())),
        }
