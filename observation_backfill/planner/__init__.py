"""Planners: enumerate work items and persist them as chunks plus a manifest."""

from observation_backfill.planner.chunking import make_run_id, split_into_chunks
from observation_backfill.planner.partition_planner import PartitionPlanner
from observation_backfill.planner.refinement_planner import RefinementPlanner, enumerate_dates

__all__ = [
    "PartitionPlanner",
    "RefinementPlanner",
    "enumerate_dates",
    "make_run_id",
    "split_into_chunks",
]
