"""Object storage backends for chunks, manifests and raw readings."""

from __future__ import annotations

from observation_backfill.storage.base import ListPage, ObjectStorage
from observation_backfill.storage.local_storage import LocalObjectStorage
from observation_backfill.storage.s3_storage import S3ObjectStorage

__all__ = [
    "ListPage",
    "LocalObjectStorage",
    "ObjectStorage",
    "S3ObjectStorage",
]
