"""Fan-out of chunk workers and aggregation of their outcomes."""

from observation_backfill.orchestration.runner import run_chunks
from observation_backfill.orchestration.summarizer import parse_outcomes, summarize

__all__ = ["parse_outcomes", "run_chunks", "summarize"]
