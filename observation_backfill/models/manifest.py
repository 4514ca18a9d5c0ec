"""Manifest and plan-result models.

A manifest is the durable record of one planning run.  It is written after
every chunk object of the run, so its presence implies the run is complete;
chunk objects without a manifest belong to an interrupted run and must be
ignored.  Field order is significant: it is the key order of the persisted
JSON object.
"""

from __future__ import annotations

from pydantic import Field

from observation_backfill.models.wire import WireModel


class PartitionManifest(WireModel):
    """Persisted manifest of a partition backfill run."""

    bucket: str
    output_prefix: str
    run_id: str
    chunk_size: int = Field(..., gt=0)
    total_partitions: int = Field(..., ge=0)
    total_chunks: int = Field(..., ge=0)
    chunk_keys: list[str] = Field(default_factory=list)

    @property
    def total_items(self) -> int:
        return self.total_partitions


class RefinementManifest(WireModel):
    """Persisted manifest of a refinement backfill run."""

    bucket: str
    output_prefix: str
    run_id: str
    chunk_size: int = Field(..., gt=0)
    start_date: str
    end_date: str
    total_dates: int = Field(..., ge=0)
    total_chunks: int = Field(..., ge=0)
    chunk_keys: list[str] = Field(default_factory=list)

    @property
    def total_items(self) -> int:
        return self.total_dates


class PartitionPlanResult(WireModel):
    """What the partition planner hands to the orchestrator for fan-out."""

    bucket: str
    output_prefix: str
    manifest_key: str
    total_partitions: int
    total_chunks: int
    chunk_keys: list[str]
    max_concurrency: int | None = None

    @property
    def total_items(self) -> int:
        return self.total_partitions


class RefinementPlanResult(WireModel):
    """What the refinement planner hands to the orchestrator for fan-out.

    The engine and table parameters are echoed so that every worker
    invocation of the run targets the same tables.
    """

    bucket: str
    output_prefix: str
    manifest_key: str
    total_dates: int
    total_chunks: int
    chunk_keys: list[str]
    max_concurrency: int | None = None
    start_date: str
    end_date: str
    database: str
    raw_table: str
    refined_table: str
    refined_location: str
    output_location: str
    work_group: str

    @property
    def total_items(self) -> int:
        return self.total_dates
