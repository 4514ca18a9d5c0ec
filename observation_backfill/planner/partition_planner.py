"""Plan a partition backfill by listing raw observation objects.

Every object key under the scan prefix is matched against the hourly
partition layout (``year=YYYY/month=MM/day=DD/hour=HH/``); the distinct
partitions are sorted, split into chunks and persisted for workers to
register in the catalog.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from datetime import UTC, datetime

from observation_backfill.config import Settings
from observation_backfill.errors import InvalidArgumentError
from observation_backfill.models.manifest import PartitionManifest, PartitionPlanResult
from observation_backfill.models.work_item import PartitionItem, dedupe_and_sort
from observation_backfill.planner.chunking import (
    chunk_key,
    make_run_id,
    manifest_key,
    run_prefix,
    split_into_chunks,
    write_json,
)
from observation_backfill.storage.base import ObjectStorage
from observation_backfill.telemetry.profiling import profile_operation

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


class PartitionPlanner:
    """Enumerate partitions in storage and write them out as chunks.

    Parameters
    ----------
    storage:
        Object storage holding both the raw readings and the run output.
    settings:
        Supplies defaults for every argument of :meth:`plan`.
    clock:
        Returns the current UTC time; it determines the run id.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._storage = storage
        self._settings = settings
        self._clock = clock

    def iter_storage_keys(self, bucket: str, prefix: str) -> Iterator[str]:
        """Yield every key under *prefix*, following pagination to the end."""
        token: str | None = None
        while True:
            page = self._storage.list_objects(bucket, prefix, continuation_token=token)
            yield from page.keys
            token = page.next_token
            if not token:
                return

    def list_partitions(self, bucket: str, prefix: str) -> list[PartitionItem]:
        """Return the distinct partitions under *prefix*, sorted ascending."""
        found = (PartitionItem.from_storage_key(key) for key in self.iter_storage_keys(bucket, prefix))
        return dedupe_and_sort(item for item in found if item is not None)

    @profile_operation("planner.partitions")
    def plan(
        self,
        bucket: str | None = None,
        prefix: str | None = None,
        chunk_size: int | None = None,
        output_prefix: str | None = None,
        max_concurrency: int | None = None,
    ) -> PartitionPlanResult:
        """Write the chunk files and manifest of a new run.

        Raises
        ------
        InvalidArgumentError
            If the effective chunk size is not positive.  Nothing is read or
            written in that case.
        """
        settings = self._settings
        size = settings.chunk_size if chunk_size is None else chunk_size
        if size <= 0:
            raise InvalidArgumentError("chunkSize must be greater than zero")

        bucket = bucket or settings.bucket
        prefix = settings.scan_prefix if prefix is None else prefix
        output_prefix = output_prefix or settings.output_prefix

        partitions = self.list_partitions(bucket, prefix)
        chunks = split_into_chunks(partitions, size)

        run_id = make_run_id(self._clock())
        base = run_prefix(output_prefix, run_id)
        logger.info(
            "Planning run %s: %d partitions in %d chunks under s3://%s/%s",
            run_id,
            len(partitions),
            len(chunks),
            bucket,
            base,
        )

        chunk_keys: list[str] = []
        for index, items in enumerate(chunks):
            key = chunk_key(base, index)
            write_json(self._storage, bucket, key, [item.to_chunk_entry() for item in items])
            chunk_keys.append(key)

        manifest = PartitionManifest(
            bucket=bucket,
            output_prefix=output_prefix,
            run_id=run_id,
            chunk_size=size,
            total_partitions=len(partitions),
            total_chunks=len(chunks),
            chunk_keys=chunk_keys,
        )
        key_of_manifest = manifest_key(base)
        write_json(self._storage, bucket, key_of_manifest, manifest.to_payload())

        return PartitionPlanResult(
            bucket=bucket,
            output_prefix=output_prefix,
            manifest_key=key_of_manifest,
            total_partitions=len(partitions),
            total_chunks=len(chunks),
            chunk_keys=chunk_keys,
            max_concurrency=max_concurrency,
        )
