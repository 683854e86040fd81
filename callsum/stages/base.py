"""
callsum Stage Base Utilities.

Responsibilities:
- StageFailure exception for pipeline control flow
- Stage base class producing StageDefinitions
- Progress helpers

Invariants:
- Stages report progress as non-decreasing values in [0, 100]
- Stages signal failure only by raising StageFailure
"""

from abc import ABC, abstractmethod
from typing import Any, Generator, Mapping

from callsum.contracts import StageDefinition, StagePayload
from callsum.errors import CallsumError
from callsum.models import AudioArtifact


class StageFailure(CallsumError):
    """
    Raised by an executor when its stage fails.

    The pipeline catches this, records it on the run and halts; it never
    propagates out of StagePipeline.run().

    Attributes:
        stage_id: Id of the failed stage (None if the raiser did not know it)
        reason: Human-readable failure reason
    """

    def __init__(self, stage_id: str | None, reason: str):
        self.stage_id = stage_id
        self.reason = reason
        super().__init__(f"Stage '{stage_id}' failed: {reason}")


def block_progress(done: int, total: int) -> float:
    """Percentage of `total` covered by `done`, capped to [0, 100]."""
    if total <= 0:
        return 100.0
    return min(100.0, max(0.0, 100.0 * done / total))


class Stage(ABC):
    """
    Base class for built-in stages.

    Subclasses define `stage_id` and `label` and implement `execute` as a
    generator that yields progress and returns the stage payload.
    """

    stage_id: str
    label: str

    @abstractmethod
    def execute(
        self,
        artifact: AudioArtifact,
        prior_outputs: Mapping[str, Mapping[str, Any]],
    ) -> Generator[float, None, StagePayload]:
        ...

    def __call__(self, artifact, prior_outputs):
        return self.execute(artifact, prior_outputs)

    def fail(self, reason: str) -> StageFailure:
        """Build a StageFailure attributed to this stage."""
        return StageFailure(self.stage_id, reason)

    def definition(self) -> StageDefinition:
        return StageDefinition(id=self.stage_id, label=self.label, executor=self)


def latest_field(prior_outputs: Mapping[str, Mapping[str, Any]], name: str, default: Any = None) -> Any:
    """Value of `name` from the most recent prior stage payload that set it."""
    for payload in reversed(list(prior_outputs.values())):
        if name in payload:
            return payload[name]
    return default
