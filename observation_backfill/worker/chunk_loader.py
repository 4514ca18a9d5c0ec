"""Read a chunk object back into work items."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from observation_backfill.errors import InvalidFormatError, MissingChunkError, ObjectNotFoundError
from observation_backfill.storage.base import ObjectStorage

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")


def load_chunk_entries(storage: ObjectStorage, bucket: str, chunk_key: str) -> list[Any]:
    """Return the raw JSON array stored at *chunk_key*.

    Raises
    ------
    MissingChunkError
        If the object does not exist or its body is empty.
    InvalidFormatError
        If the body is not a JSON array.
    """
    try:
        body = storage.get_object(bucket, chunk_key)
    except ObjectNotFoundError as exc:
        raise MissingChunkError(chunk_key) from exc
    if not body:
        raise MissingChunkError(chunk_key)

    try:
        payload = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidFormatError(f"Chunk {chunk_key} is not valid JSON") from exc
    if not isinstance(payload, list):
        raise InvalidFormatError(f"Chunk {chunk_key} must hold a JSON array")

    logger.debug("Loaded %d entries from %s", len(payload), chunk_key)
    return payload


def load_chunk(
    storage: ObjectStorage,
    bucket: str,
    chunk_key: str,
    parse: Callable[[Any], ItemT],
) -> list[ItemT]:
    """Load *chunk_key* and convert every entry with *parse*."""
    return [parse(entry) for entry in load_chunk_entries(storage, bucket, chunk_key)]
