"""
Stage 2: Transcribe

Delegates speech-to-text to an external transcriber callable.

Transcriber contract:
    transcriber(artifact) -> str
    transcriber(artifact) -> (str, participants)

A blank transcript fails the stage with "no speech detected".
"""

from typing import Callable, Sequence, Union

from callsum.models import AudioArtifact
from callsum.stages.base import Stage


Transcriber = Callable[[AudioArtifact], Union[str, tuple[str, Sequence[str]]]]


class TranscribeStage(Stage):
    stage_id = "transcribe"
    label = "Converting speech to text"

    def __init__(self, transcriber: Transcriber):
        self.transcriber = transcriber

    def execute(self, artifact, prior_outputs):
        yield 0
        outcome = self.transcriber(artifact)
        if isinstance(outcome, tuple):
            text, participants = outcome
        else:
            text, participants = outcome, ()

        if not text or not text.strip():
            raise self.fail("no speech detected")

        yield 100
        return {"transcript": text.strip(), "participants": list(participants)}
