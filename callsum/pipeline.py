"""
callsum Pipeline Orchestrator

Runs an ordered list of StageDefinitions over one AudioArtifact and turns
the accumulated stage payloads into a CallResult.

RUN STATE MACHINE:

    stage:  pending → processing → completed
                               ↘ error          (run halts)
                               ↘ pending        (run cancelled)

    run:    processing → completed | error | cancelled

INVARIANTS:
    - Stages execute strictly in list order, one at a time
    - Stage i+1 never enters processing before stage i is completed
    - Recorded stage progress never decreases
    - At most one run is active per pipeline; run()/start() while one is
      active raises BusyError
    - Only a completed run produces a CallResult, exactly one
    - Stage failures are recorded on the run, never raised out of run()
    - Cancellation is cooperative: checked before each stage and at every
      progress update; the in-flight stage's work is discarded and only a
      processing stage is ever reset to pending
    - A set current stage id always names a processing stage while the run
      is processing; it is cleared as soon as that stage completes
    - The CallResult is appended to the ResultStore while the last stage is
      still processing, so a rejected append fails that stage; store readers
      may therefore see the result just before the run reports completed
"""

import inspect
import logging
import math
import numbers
import threading
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, Sequence

from callsum.audio import format_duration
from callsum.contracts import StageDefinition, StageValidator
from callsum.errors import BusyError, CallsumError
from callsum.models import RESULT_FIELDS, AudioArtifact, CallResult, Sentiment, to_json_shape
from callsum.schema import SchemaValidationError, check_call_result
from callsum.stages.base import StageFailure
from callsum.store import ResultStore
from callsum.utils import new_result_id, now_iso, today_iso

logger = logging.getLogger(__name__)


class StageStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class RunStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({RunStatus.COMPLETED, RunStatus.ERROR, RunStatus.CANCELLED})


@dataclass(frozen=True)
class StageState:
    """Read-only view of one stage within a run."""
    id: str
    label: str
    status: StageStatus = StageStatus.PENDING
    progress: float | None = None
    error: str | None = None


RunObserver = Callable[["PipelineRun"], None]


# =============================================================================
# PipelineRun: observable run state
# =============================================================================


class PipelineRun:
    """
    One end-to-end execution of a stage list for a single artifact.

    Observers get read access only; every mutator is private and called
    from the owning StagePipeline's execution loop.
    """

    def __init__(self, definitions: Sequence[StageDefinition], artifact: AudioArtifact):
        self.run_id = new_result_id()
        self.artifact = artifact
        self.definitions = tuple(definitions)
        self.started_at = now_iso()
        self.completed_at: str | None = None

        self._stages = [StageState(id=d.id, label=d.label) for d in self.definitions]
        self._index = {d.id: i for i, d in enumerate(self.definitions)}
        self._status = RunStatus.PROCESSING
        self._current: int | None = None
        self._result: CallResult | None = None
        self._failure: StageFailure | None = None

        self._lock = threading.RLock()
        self._observers: list[RunObserver] = []
        self._cancel_requested = threading.Event()
        self._done = threading.Event()

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def stages(self) -> tuple[StageState, ...]:
        with self._lock:
            return tuple(self._stages)

    def stage(self, stage_id: str) -> StageState:
        with self._lock:
            return self._stages[self._index[stage_id]]

    @property
    def status(self) -> RunStatus:
        return self._status

    @property
    def current_stage_id(self) -> str | None:
        with self._lock:
            return None if self._current is None else self._stages[self._current].id

    @property
    def result(self) -> CallResult | None:
        return self._result

    @property
    def failure(self) -> StageFailure | None:
        return self._failure

    @property
    def is_terminal(self) -> bool:
        return self._status in TERMINAL_STATUSES

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested.is_set()

    @property
    def overall_progress(self) -> float:
        """Percentage of stages completed; in-flight progress is not counted."""
        with self._lock:
            completed = sum(1 for s in self._stages if s.status is StageStatus.COMPLETED)
            return completed / len(self._stages) * 100

    def snapshot(self) -> dict[str, Any]:
        """Plain-data copy of the run for observers and logs."""
        with self._lock:
            return {
                "run_id": self.run_id,
                "status": self._status.value,
                "current_stage": self.current_stage_id,
                "overall_progress": self.overall_progress,
                "started_at": self.started_at,
                "completed_at": self.completed_at,
                "stages": [
                    {
                        "id": s.id,
                        "label": s.label,
                        "status": s.status.value,
                        "progress": s.progress,
                        "error": s.error,
                    }
                    for s in self._stages
                ],
                "result_id": None if self._result is None else self._result.id,
            }

    # -------------------------------------------------------------------------
    # Observation / control
    # -------------------------------------------------------------------------

    def subscribe(self, observer: RunObserver) -> Callable[[], None]:
        """Register an observer called after every change; returns an unsubscribe callable."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def cancel(self) -> bool:
        """Request cancellation; returns False if the run already ended."""
        if self.is_terminal:
            return False
        self._cancel_requested.set()
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the run is terminal; returns False on timeout."""
        return self._done.wait(timeout)

    # -------------------------------------------------------------------------
    # Mutators (pipeline only)
    # -------------------------------------------------------------------------

    def _notify(self) -> None:
        for observer in list(self._observers):
            try:
                observer(self)
            except Exception:
                logger.exception("Run observer failed")

    def _begin_stage(self, index: int) -> None:
        with self._lock:
            self._stages[index] = replace(self._stages[index], status=StageStatus.PROCESSING, progress=0.0)
            self._current = index
        self._notify()

    def _report_progress(self, index: int, progress: float) -> bool:
        with self._lock:
            stage = self._stages[index]
            if stage.progress is not None and progress < stage.progress:
                return False
            self._stages[index] = replace(stage, progress=progress)
        self._notify()
        return True

    def _complete_stage(self, index: int) -> None:
        with self._lock:
            self._stages[index] = replace(self._stages[index], status=StageStatus.COMPLETED, progress=100.0)
            if self._current == index:
                self._current = None
        self._notify()

    def _finish(self, result: CallResult) -> None:
        with self._lock:
            self._result = result
            self._current = None
            self._status = RunStatus.COMPLETED
            self.completed_at = now_iso()
        self._notify()

    def _fail(self, index: int, failure: StageFailure) -> None:
        with self._lock:
            self._stages[index] = replace(self._stages[index], status=StageStatus.ERROR, error=failure.reason)
            self._current = index
            self._failure = failure
            self._status = RunStatus.ERROR
            self.completed_at = now_iso()
        self._notify()

    def _abandon(self, index: int | None) -> None:
        with self._lock:
            if index is not None and self._stages[index].status is StageStatus.PROCESSING:
                self._stages[index] = replace(self._stages[index], status=StageStatus.PENDING, progress=None)
            self._current = None
            self._status = RunStatus.CANCELLED
            self.completed_at = now_iso()
        self._notify()


class _Cancelled(Exception):
    """Internal signal: cancellation observed at a checkpoint."""


def _coerce_progress(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return None
    if not math.isfinite(value):
        return None
    return min(100.0, max(0.0, float(value)))


# =============================================================================
# StagePipeline
# =============================================================================


class StagePipeline:
    """
    State machine driving stage executors in order.

    Args:
        store: ResultStore receiving the CallResult of each completed run
        validator: StageValidator for definition lists (default instance if omitted)
    """

    def __init__(self, store: ResultStore, validator: StageValidator | None = None):
        self.store = store
        self.validator = validator or StageValidator()
        self._active: PipelineRun | None = None
        self._lock = threading.Lock()

    @property
    def active(self) -> PipelineRun | None:
        return self._active

    def run(self, artifact: AudioArtifact, definitions: Sequence[StageDefinition]) -> PipelineRun:
        """
        Execute all stages synchronously.

        Returns:
            The terminal PipelineRun (completed, error or cancelled).

        Raises:
            BusyError: If a run is already active.
            PipelineConfigError: If the definitions are invalid.
        """
        run = self._begin(artifact, definitions)
        self._execute(run)
        return run

    def start(self, artifact: AudioArtifact, definitions: Sequence[StageDefinition]) -> PipelineRun:
        """
        Execute all stages on a worker thread.

        Returns:
            The live PipelineRun; use subscribe() / wait() to follow it.

        Raises:
            BusyError: If a run is already active.
            PipelineConfigError: If the definitions are invalid.
        """
        run = self._begin(artifact, definitions)
        worker = threading.Thread(target=self._execute, args=(run,), name="callsum-pipeline", daemon=True)
        worker.start()
        return run

    def cancel(self) -> bool:
        """Request cancellation of the active run; returns whether one was active."""
        run = self._active
        return run.cancel() if run is not None else False

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def _begin(self, artifact: AudioArtifact, definitions: Sequence[StageDefinition]) -> PipelineRun:
        with self._lock:
            if self._active is not None:
                raise BusyError(f"Pipeline run {self._active.run_id} is still active")
            self.validator.validate(definitions)
            run = PipelineRun(definitions, artifact)
            self._active = run
        logger.info(
            "Run %s started: %d stages, %s of audio",
            run.run_id, len(run.definitions), format_duration(artifact.duration),
        )
        return run

    def _execute(self, run: PipelineRun) -> None:
        outputs: dict[str, Mapping[str, Any]] = {}
        draft: dict[str, Any] = {}
        last = len(run.definitions) - 1

        try:
            for index, definition in enumerate(run.definitions):
                if run.cancel_requested:
                    raise _Cancelled()

                run._begin_stage(index)
                logger.info("Stage %s started: %s", definition.id, definition.label)
                try:
                    payload = self._run_stage(run, index, definition, outputs)
                    draft = self._merge(definition.id, draft, payload)
                    outputs[definition.id] = MappingProxyType(dict(payload))
                    if index == last:
                        result = self._synthesize(definition.id, run.artifact, draft)
                except StageFailure as failure:
                    logger.warning("Stage %s failed: %s", definition.id, failure.reason)
                    run._fail(index, failure)
                    return

                run._complete_stage(index)
                logger.info("Stage %s completed", definition.id)

            run._finish(result)
            logger.info("Run %s completed: result %s", run.run_id, result.id)

        except _Cancelled:
            run._abandon(run._current)
            logger.info("Run %s cancelled", run.run_id)

        finally:
            with self._lock:
                if self._active is run:
                    self._active = None
            run._done.set()

    def _run_stage(
        self,
        run: PipelineRun,
        index: int,
        definition: StageDefinition,
        outputs: Mapping[str, Mapping[str, Any]],
    ) -> Mapping[str, Any]:
        """
        Drive one executor to completion.

        Returns:
            The stage payload (empty mapping for None).

        Raises:
            StageFailure: On executor failure or an invalid payload.
            _Cancelled: If cancellation is observed at a checkpoint.
        """
        try:
            outcome = definition.executor(run.artifact, MappingProxyType(dict(outputs)))
            if inspect.isgenerator(outcome):
                outcome = self._drain(run, index, definition, outcome)
        except (StageFailure, _Cancelled) as e:
            if isinstance(e, StageFailure) and e.stage_id != definition.id:
                raise StageFailure(definition.id, e.reason) from e
            raise
        except Exception as e:
            raise StageFailure(definition.id, str(e) or type(e).__name__) from e

        if run.cancel_requested:
            raise _Cancelled()

        if outcome is None:
            return {}
        if not isinstance(outcome, Mapping):
            raise StageFailure(definition.id, f"stage returned {type(outcome).__name__}, expected a mapping")
        return outcome

    def _drain(self, run: PipelineRun, index: int, definition: StageDefinition, steps) -> Any:
        try:
            while True:
                try:
                    value = next(steps)
                except StopIteration as stop:
                    return stop.value

                if run.cancel_requested:
                    raise _Cancelled()

                progress = _coerce_progress(value)
                if progress is None or not run._report_progress(index, progress):
                    logger.debug("Stage %s: discarded progress update %r", definition.id, value)
                else:
                    logger.debug("Stage %s: %.0f%%", definition.id, progress)
        finally:
            steps.close()

    def _merge(self, stage_id: str, draft: dict[str, Any], payload: Mapping[str, Any]) -> dict[str, Any]:
        """Fold a stage payload's CallResult fields into the draft."""
        contributed = to_json_shape({k: payload[k] for k in RESULT_FIELDS if k in payload})
        candidate = {**draft, **contributed}
        try:
            check_call_result(candidate, partial=True)
        except SchemaValidationError as e:
            raise StageFailure(stage_id, f"invalid result fields: {e}") from e
        return candidate

    def _synthesize(self, stage_id: str, artifact: AudioArtifact, draft: Mapping[str, Any]) -> CallResult:
        """Build, validate and store the CallResult of a run's final stage."""
        document = {
            "id": new_result_id(),
            "title": f"Call Recording {len(self.store) + 1}",
            "date": today_iso(),
            "duration": artifact.duration,
            "participants": [],
            "transcript": "",
            "summary": "",
            "key_points": [],
            "action_items": [],
            "sentiment": Sentiment.NEUTRAL.value,
            **draft,
        }
        try:
            result = CallResult.from_dict(document)
            self.store.append(result)
        except (SchemaValidationError, CallsumError) as e:
            raise StageFailure(stage_id, f"result rejected: {e}") from e
        return result
