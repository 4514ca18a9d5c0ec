"""Chunk workers: process one persisted chunk per invocation."""

from observation_backfill.worker.chunk_loader import load_chunk, load_chunk_entries
from observation_backfill.worker.partition_worker import PartitionWorker
from observation_backfill.worker.refinement_worker import RefinementWorker

__all__ = ["PartitionWorker", "RefinementWorker", "load_chunk", "load_chunk_entries"]
