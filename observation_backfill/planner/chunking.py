"""Chunk splitting, run identifiers and the storage key layout of a run.

A run writes under ``{output_prefix}/runs/{run_id}/``::

    chunks/chunk-00000.json
    chunks/chunk-00001.json
    ...
    manifest.json

Chunk indices are zero-based and padded to five digits.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any, TypeVar

from observation_backfill.errors import InvalidArgumentError
from observation_backfill.models.wire import canonical_json
from observation_backfill.storage.base import ObjectStorage

T = TypeVar("T")

JSON_CONTENT_TYPE = "application/json"


def split_into_chunks(items: Sequence[T], chunk_size: int) -> list[list[T]]:
    """Split *items* into consecutive slices of at most *chunk_size*.

    Concatenating the result reproduces *items*; only the last slice may be
    shorter.  An empty input yields no chunks.
    """
    if chunk_size <= 0:
        raise InvalidArgumentError("chunkSize must be greater than zero")
    return [list(items[i : i + chunk_size]) for i in range(0, len(items), chunk_size)]


def make_run_id(now: datetime) -> str:
    """Millisecond UTC timestamp with ``:`` and ``.`` replaced by ``-``.

    ``2024-08-05T22:15:30.123Z`` becomes ``2024-08-05T22-15-30-123Z``.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    now = now.astimezone(UTC)
    millis = now.microsecond // 1000
    return f"{now:%Y-%m-%dT%H-%M-%S}-{millis:03d}Z"


def run_prefix(output_prefix: str, run_id: str) -> str:
    """Return the storage prefix of a run; one trailing ``/`` is dropped."""
    base = output_prefix[:-1] if output_prefix.endswith("/") else output_prefix
    return f"{base}/runs/{run_id}"


def chunk_key(prefix: str, index: int) -> str:
    return f"{prefix}/chunks/chunk-{index:05d}.json"


def manifest_key(prefix: str) -> str:
    return f"{prefix}/manifest.json"


def write_json(storage: ObjectStorage, bucket: str, key: str, payload: Any) -> None:
    """Persist *payload* as compact JSON."""
    storage.put_object(
        bucket,
        key,
        canonical_json(payload).encode("utf-8"),
        content_type=JSON_CONTENT_TYPE,
    )
