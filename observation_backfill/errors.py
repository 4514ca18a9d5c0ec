"""Error taxonomy for planning and chunk processing.

Argument errors are raised before any storage or engine I/O.  Engine and
storage errors are fatal to the current planner run or worker invocation and
are propagated unchanged; retrying is the orchestrator's job, which is safe
because every chunk operation is idempotent.
"""

from __future__ import annotations


class BackfillError(Exception):
    """Base class for every error raised by the backfill engine."""

    #: ``True`` for caller mistakes (mapped to a 4xx by an HTTP layer).
    is_client_error: bool = False


class InvalidArgumentError(BackfillError, ValueError):
    """Bad configuration or input, e.g. a non-positive chunk size."""

    is_client_error = True


class InvalidFormatError(InvalidArgumentError):
    """A date or work item string does not have the expected shape."""


class InvalidRangeError(InvalidArgumentError):
    """A date range whose start falls after its end."""


class MissingChunkError(BackfillError):
    """Storage returned no body for a chunk key."""

    def __init__(self, chunk_key: str) -> None:
        super().__init__(f"Missing chunk payload for {chunk_key}")
        self.chunk_key = chunk_key


class ObjectNotFoundError(BackfillError):
    """The requested object does not exist in storage."""

    def __init__(self, bucket: str, key: str) -> None:
        super().__init__(f"Object not found: {bucket}/{key}")
        self.bucket = bucket
        self.key = key


class EngineUnavailableError(BackfillError):
    """The query engine did not return an execution id for a submitted statement."""


class ExecutionNotFoundError(BackfillError):
    """The query engine has no record of an execution id."""


class EngineExecutionFailedError(BackfillError):
    """A statement reached a terminal state other than ``SUCCEEDED``."""

    def __init__(self, state: object, execution_id: str | None = None) -> None:
        state_value = getattr(state, "value", state)
        if execution_id:
            message = f"Query {execution_id} failed with state: {state_value}"
        else:
            message = f"Query failed with state: {state_value}"
        super().__init__(message)
        self.state = state
        self.execution_id = execution_id


class ResultsUnavailableError(BackfillError):
    """The engine reports no results for an execution id."""
