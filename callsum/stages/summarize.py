"""
Stage 4: Summarize

Delegates summary and action-item generation to an external summarizer.

Summarizer contract:
    summarizer(transcript, key_points) -> {"summary": str,
                                           "action_items": [str, ...]}
"""

from typing import Any, Callable, Mapping, Sequence

from callsum.stages.base import Stage, latest_field


Summarizer = Callable[[str, Sequence[str]], Mapping[str, Any]]


class SummarizeStage(Stage):
    stage_id = "summarize"
    label = "Generating summary and key points"

    def __init__(self, summarizer: Summarizer):
        self.summarizer = summarizer

    def execute(self, artifact, prior_outputs):
        yield 0
        summary = self.summarizer(
            latest_field(prior_outputs, "transcript", ""),
            list(latest_field(prior_outputs, "key_points", ())),
        )
        if not isinstance(summary, Mapping):
            raise self.fail(f"summarizer returned {type(summary).__name__}, expected a mapping")

        yield 100
        return {
            **summary,
            "summary": summary.get("summary", ""),
            "action_items": list(summary.get("action_items", ())),
        }
