"""Filesystem object storage for local development runs.

Buckets are directories under ``root`` and keys are relative paths inside
them.  Listing is paginated with the same continuation-token contract as S3
so planners exercise their pagination loop locally.
"""

from __future__ import annotations

import logging
from pathlib import Path

from observation_backfill.errors import ObjectNotFoundError
from observation_backfill.storage.base import ListPage

logger = logging.getLogger(__name__)


class LocalObjectStorage:
    """Store objects as files under *root*.

    Parameters
    ----------
    root:
        Directory holding one sub-directory per bucket.  Created on first write.
    page_size:
        Maximum number of keys returned per listing page.
    """

    def __init__(self, root: Path, page_size: int = 1000) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self._root = root
        self._page_size = page_size

    def _path(self, bucket: str, key: str) -> Path:
        bucket_dir = (self._root / bucket).resolve()
        path = (bucket_dir / key).resolve()
        if bucket_dir != path and bucket_dir not in path.parents:
            raise ValueError(f"Key escapes bucket directory: {key!r}")
        return path

    def list_objects(self, bucket: str, prefix: str, continuation_token: str | None = None) -> ListPage:
        bucket_dir = self._root / bucket
        if not bucket_dir.is_dir():
            return ListPage()

        keys = sorted(
            path.relative_to(bucket_dir).as_posix() for path in bucket_dir.rglob("*") if path.is_file()
        )
        keys = [key for key in keys if key.startswith(prefix)]
        # The token is the last key of the previous page.
        if continuation_token is not None:
            keys = [key for key in keys if key > continuation_token]

        page = keys[: self._page_size]
        next_token = page[-1] if len(keys) > self._page_size else None
        return ListPage(keys=page, next_token=next_token)

    def get_object(self, bucket: str, key: str) -> bytes:
        path = self._path(bucket, key)
        if not path.is_file():
            raise ObjectNotFoundError(bucket, key)
        return path.read_bytes()

    def put_object(self, bucket: str, key: str, body: bytes, content_type: str = "application/json") -> None:
        path = self._path(bucket, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(body)
        logger.debug("Local write: %s (%d bytes)", path, len(body))
