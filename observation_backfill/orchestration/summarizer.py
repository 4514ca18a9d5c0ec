"""Aggregate chunk outcomes reported by the orchestrator into a run summary."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from observation_backfill.models.results import ChunkOutcome, Summary

logger = logging.getLogger(__name__)

FAILED_SAMPLE_SIZE = 10


def parse_outcomes(raw: Iterable[Mapping[str, Any]] | None) -> list[ChunkOutcome]:
    """Validate the orchestrator's ``chunkResults`` payload."""
    return [ChunkOutcome.model_validate(item) for item in raw or []]


def summarize(outcomes: Iterable[ChunkOutcome]) -> Summary:
    """Count successes and failures, keeping chunk keys in input order.

    Pure apart from one INFO log line; an empty input yields all zeros.
    """
    succeeded: list[str] = []
    failed: list[str] = []
    for outcome in outcomes:
        (succeeded if outcome.success else failed).append(outcome.chunk_key)

    summary = Summary(
        total_chunks=len(succeeded) + len(failed),
        succeeded_chunks=len(succeeded),
        failed_chunks=len(failed),
        failed_chunk_keys=failed,
        succeeded_chunk_keys=succeeded,
    )

    logger.info(
        "backfill summarize completed: %d chunks, %d succeeded, %d failed",
        summary.total_chunks,
        summary.succeeded_chunks,
        summary.failed_chunks,
        extra={
            "summary": {
                "totalChunks": summary.total_chunks,
                "succeededChunks": summary.succeeded_chunks,
                "failedChunks": summary.failed_chunks,
                "failedChunkSample": failed[:FAILED_SAMPLE_SIZE],
            }
        },
    )
    return summary
