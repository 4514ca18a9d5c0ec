"""Per-chunk results, orchestrator outcomes, and the run summary."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from observation_backfill.models.query import QueryState
from observation_backfill.models.wire import WireModel


class PartitionChunkResult(WireModel):
    """Outcome of adding every partition of one chunk to the catalog."""

    bucket: str
    chunk_key: str
    attempted: int = Field(..., ge=0)
    succeeded: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    query_execution_id: str | None = None
    query_state: QueryState | None = None


class RefinementChunkResult(WireModel):
    """Outcome of refining every date of one chunk.

    ``skipped_dates`` already had refined rows; they count as succeeded but
    add nothing to ``inserted_rows``.
    """

    bucket: str
    chunk_key: str
    attempted_dates: int = Field(..., ge=0)
    succeeded_dates: int = Field(..., ge=0)
    skipped_dates: int = Field(..., ge=0)
    failed_dates: int = Field(..., ge=0)
    inserted_rows: int = Field(..., ge=0)


class ChunkError(WireModel):
    """Failure payload attached to a failed outcome (``Error``/``Cause``)."""

    error: str | None = Field(default=None, alias="Error")
    cause: str | None = Field(default=None, alias="Cause")


class ChunkOutcome(WireModel):
    """One worker invocation as reported by the orchestrator.

    ``result`` is whatever the worker returned.  A bare string ``error`` is
    read as the error name.
    """

    success: bool
    chunk_key: str
    result: Any = None
    error: ChunkError | None = None

    @field_validator("error", mode="before")
    @classmethod
    def wrap_bare_error(cls, v: Any) -> Any:
        if isinstance(v, str):
            return {"Error": v}
        return v


class Summary(WireModel):
    """Aggregate over every chunk outcome of a run."""

    total_chunks: int = 0
    succeeded_chunks: int = 0
    failed_chunks: int = 0
    failed_chunk_keys: list[str] = Field(default_factory=list)
    succeeded_chunk_keys: list[str] = Field(default_factory=list)
