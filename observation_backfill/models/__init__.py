"""Domain models for the observation backfill engine."""

from observation_backfill.models.manifest import (
    PartitionManifest,
    PartitionPlanResult,
    RefinementManifest,
    RefinementPlanResult,
)
from observation_backfill.models.query import (
    TERMINAL_STATES,
    PollOptions,
    QueryContext,
    QueryExecution,
    QueryState,
    ResultPage,
)
from observation_backfill.models.results import (
    ChunkError,
    ChunkOutcome,
    PartitionChunkResult,
    RefinementChunkResult,
    Summary,
)
from observation_backfill.models.work_item import DateItem, PartitionItem, WorkItem, dedupe_and_sort

__all__ = [
    "TERMINAL_STATES",
    "ChunkError",
    "ChunkOutcome",
    "DateItem",
    "PartitionChunkResult",
    "PartitionItem",
    "PartitionManifest",
    "PartitionPlanResult",
    "PollOptions",
    "QueryContext",
    "QueryExecution",
    "QueryState",
    "RefinementChunkResult",
    "RefinementManifest",
    "RefinementPlanResult",
    "ResultPage",
    "Summary",
    "WorkItem",
    "dedupe_and_sort",
]
