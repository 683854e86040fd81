"""
callsum Stage Contracts

Declarative stage definitions and centralized validation of a stage list.

This module provides:
- StageExecutor: the callable contract every stage implements
- StageDefinition: Frozen (id, label, executor) triple
- StageValidator: Validation of an ordered definition list

EXECUTOR CONTRACT:
    executor(artifact, prior_outputs) returns either
        - a generator yielding progress values in [0, 100] and returning
          a mapping payload (or None), or
        - a mapping payload (or None) directly, for stages with no
          intermediate progress.
    Failure is signalled by raising StageFailure (any other exception is
    treated as a failure carrying the exception text).

INVARIANTS:
- Definitions are frozen and hashable
- Validation happens before a run is created
- Stage order is the order of the list; it never changes mid-run
"""

from dataclasses import dataclass
from typing import Any, Callable, Generator, Mapping, Sequence, Union

from callsum.errors import PipelineConfigError
from callsum.models import AudioArtifact


StagePayload = Union[Mapping[str, Any], None]

StageExecutor = Callable[
    [AudioArtifact, Mapping[str, Mapping[str, Any]]],
    Union[Generator[float, None, StagePayload], StagePayload],
]


# =============================================================================
# StageDefinition: Frozen, Declarative
# =============================================================================


@dataclass(frozen=True)
class StageDefinition:
    """
    One entry of an ordered stage configuration.

    Attributes:
        id: Unique stage key (e.g., "transcribe")
        label: Human-readable label (e.g., "Converting speech to text")
        executor: Callable implementing the executor contract
    """
    id: str
    label: str
    executor: StageExecutor


# =============================================================================
# StageValidator: Centralized Definition Validation
# =============================================================================


class StageValidator:
    """
    Validates an ordered stage definition list.

    Validation checks:
        1. The list is not empty
        2. Every entry is a StageDefinition with a non-empty id
        3. Ids are unique
        4. Every executor is callable

    Rules:
        - No side effects
        - All problems are collected, then reported together
    """

    def validate(self, definitions: Sequence[StageDefinition]) -> None:
        """
        Raises:
            PipelineConfigError: If any check fails
        """
        problems: list[str] = []
        if not definitions:
            problems.append("at least one stage is required")

        seen: set[str] = set()
        for position, definition in enumerate(definitions):
            if not isinstance(definition, StageDefinition):
                problems.append(f"entry {position} is {type(definition).__name__}, expected StageDefinition")
                continue
            if not definition.id:
                problems.append(f"entry {position} has an empty id")
            elif definition.id in seen:
                problems.append(f"duplicate stage id '{definition.id}'")
            seen.add(definition.id)
            if not callable(definition.executor):
                problems.append(f"stage '{definition.id}' executor is not callable")

        if problems:
            raise PipelineConfigError(problems)
