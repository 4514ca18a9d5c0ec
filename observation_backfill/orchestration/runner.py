"""Local fan-out of chunk workers over a bounded thread pool.

Stands in for the external orchestrator during local and CLI runs: each
chunk is processed by one call of ``process``, at most ``max_concurrency``
at a time, and every call is reported as a :class:`ChunkOutcome`.  A
failing chunk never stops the others.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from pydantic import BaseModel

from observation_backfill.errors import InvalidArgumentError
from observation_backfill.models.results import ChunkError, ChunkOutcome

logger = logging.getLogger(__name__)


def _outcome_from_future(chunk_key: str, future: Future[Any]) -> ChunkOutcome:
    exc = future.exception()
    if exc is not None:
        logger.error("Chunk %s failed: %s: %s", chunk_key, type(exc).__name__, exc)
        return ChunkOutcome(
            success=False,
            chunk_key=chunk_key,
            error=ChunkError(error=type(exc).__name__, cause=str(exc)),
        )

    result = future.result()
    if isinstance(result, BaseModel):
        payload = result.model_dump(mode="json", by_alias=True)
    else:
        payload = result
    return ChunkOutcome(success=True, chunk_key=chunk_key, result=payload)


def run_chunks(
    chunk_keys: Sequence[str],
    process: Callable[[str], Any],
    max_concurrency: int,
) -> list[ChunkOutcome]:
    """Run ``process(chunk_key)`` for every key; outcomes follow *chunk_keys* order.

    Raises
    ------
    InvalidArgumentError
        If *max_concurrency* is not positive.
    """
    if max_concurrency <= 0:
        raise InvalidArgumentError("maxConcurrency must be greater than zero")
    if not chunk_keys:
        return []

    workers = min(max_concurrency, len(chunk_keys))
    logger.info("Processing %d chunks with concurrency %d", len(chunk_keys), workers)

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="chunk-worker") as pool:
        futures = [pool.submit(process, key) for key in chunk_keys]
        return [_outcome_from_future(key, future) for key, future in zip(chunk_keys, futures, strict=True)]
