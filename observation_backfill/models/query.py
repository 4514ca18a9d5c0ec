"""Query execution models shared by the client and the engine adapters."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class QueryState(str, Enum):
    """Lifecycle state of one statement execution on the query engine."""

    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES: frozenset[QueryState] = frozenset(
    {QueryState.SUCCEEDED, QueryState.FAILED, QueryState.CANCELLED}
)


class QueryContext(BaseModel):
    """Where and how a statement runs on the engine."""

    model_config = ConfigDict(frozen=True)

    database: str = Field(..., min_length=1, description="Database (schema) the statement runs in.")
    output_location: str = Field(..., min_length=1, description="Location the engine writes result files to.")
    workgroup: str = Field(default="primary", min_length=1, description="Engine workgroup.")


class QueryExecution(BaseModel):
    """Transient handle for one statement execution."""

    id: str = Field(..., min_length=1, description="Engine-assigned execution id.")
    state: QueryState = Field(..., description="Last observed state.")


class ResultPage(BaseModel):
    """One page of result rows.  Rows never include a header row."""

    rows: list[list[str | None]] = Field(default_factory=list)
    next_page_token: str | None = None


@dataclass(frozen=True)
class PollOptions:
    """Bounds for :meth:`QueryExecutionClient.poll_until_terminal`.

    ``stop_when`` is re-evaluated on every tick; when it returns ``True`` the
    execution is cancelled and ``CANCELLED`` is returned.  It is typically
    "the caller's own deadline is nearly exhausted".
    """

    poll_interval_ms: int = 2000
    max_polls: int = 120
    max_wait_ms: int | None = None
    stop_when: Callable[[], bool] | None = None
