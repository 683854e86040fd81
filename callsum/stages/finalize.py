"""
Stage 5: Finalize

Responsibilities:
    - De-duplicate participants, preserving first-seen order
    - Drop blank key points and action items
    - Default participants to ["You"] when none were identified

Invariants:
    - Only tidies values produced by earlier stages; adds no content
"""

from typing import Iterable

from callsum.stages.base import Stage, latest_field


DEFAULT_PARTICIPANTS = ("You",)


def _clean(items: Iterable[str]) -> list[str]:
    return [item.strip() for item in items if item and item.strip()]


class FinalizeStage(Stage):
    stage_id = "finalize"
    label = "Finalizing results"

    def execute(self, artifact, prior_outputs):
        yield 0
        participants = list(dict.fromkeys(_clean(latest_field(prior_outputs, "participants", ()))))
        yield 50
        return {
            "participants": participants or list(DEFAULT_PARTICIPANTS),
            "key_points": _clean(latest_field(prior_outputs, "key_points", ())),
            "action_items": _clean(latest_field(prior_outputs, "action_items", ())),
        }
