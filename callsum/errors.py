"""
callsum Errors — Exception taxonomy.

Responsibilities:
- Capture failures (DeviceError)
- Re-entrancy rejections (BusyError)
- Invalid stage configuration (PipelineConfigError)
- Store id collisions (DuplicateResultError)

Note:
    StageFailure lives in callsum.stages.base next to the executor
    contract; cancellation is a terminal run status, not an exception.
"""


class CallsumError(Exception):
    """Base class for all callsum errors."""
    pass


class DeviceError(CallsumError):
    """Raised when the capture device is unavailable or access is denied."""
    pass


class BusyError(CallsumError):
    """Raised when a run or capture is requested while one is already active."""
    pass


class PipelineConfigError(CallsumError, ValueError):
    """
    Raised when a stage definition list is invalid.

    Attributes:
        problems: Human-readable list of every problem found
    """

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Invalid stage definitions: " + "; ".join(problems))


class DuplicateResultError(CallsumError, ValueError):
    """Raised when a CallResult with an existing id is appended to the store."""

    def __init__(self, result_id: str):
        self.result_id = result_id
        super().__init__(f"Result already stored: {result_id}")


class StreamClosedError(CallsumError):
    """Raised when reading from a capture stream that has been closed."""
    pass
