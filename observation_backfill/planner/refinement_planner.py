"""Plan a refinement backfill over an inclusive range of calendar dates."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta

from observation_backfill.config import Settings
from observation_backfill.errors import InvalidArgumentError, InvalidRangeError
from observation_backfill.models.manifest import RefinementManifest, RefinementPlanResult
from observation_backfill.models.work_item import DateItem, dedupe_and_sort
from observation_backfill.planner.chunking import (
    chunk_key,
    make_run_id,
    manifest_key,
    run_prefix,
    split_into_chunks,
    write_json,
)
from observation_backfill.planner.partition_planner import utc_now
from observation_backfill.sql.guard import validate_identifier, validate_location
from observation_backfill.storage.base import ObjectStorage
from observation_backfill.telemetry.profiling import profile_operation

logger = logging.getLogger(__name__)


def enumerate_dates(start: DateItem, end: DateItem) -> list[DateItem]:
    """Every date from *start* to *end*, both included.

    Raises
    ------
    InvalidRangeError
        If *start* is after *end*.
    """
    if start.value > end.value:
        raise InvalidRangeError("startDate must be less than or equal to endDate")
    days = (end.value - start.value).days
    return [DateItem(value=start.value + timedelta(days=offset)) for offset in range(days + 1)]


def default_end_date(today: date, offset_days: int) -> str:
    return (today - timedelta(days=offset_days)).isoformat()


class RefinementPlanner:
    """Enumerate a date range and write it out as chunks."""

    def __init__(
        self,
        storage: ObjectStorage,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._storage = storage
        self._settings = settings
        self._clock = clock

    @profile_operation("planner.refinement")
    def plan(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
        chunk_size: int | None = None,
        bucket: str | None = None,
        output_prefix: str | None = None,
        max_concurrency: int | None = None,
        database: str | None = None,
        raw_table: str | None = None,
        refined_table: str | None = None,
        refined_location: str | None = None,
        output_location: str | None = None,
        work_group: str | None = None,
    ) -> RefinementPlanResult:
        """Write the chunk files and manifest of a new refinement run.

        ``start_date`` falls back to ``BACKFILL_REFINED_START_DATE`` and is
        required.  ``end_date`` falls back to ``BACKFILL_REFINED_END_DATE``
        and then to today (UTC) minus ``refined_end_offset_days``.

        Raises
        ------
        InvalidArgumentError
            Non-positive chunk size, missing start date, or an invalid table
            name or location.
        InvalidFormatError
            A date that is not a real ``YYYY-MM-DD`` calendar date.
        InvalidRangeError
            ``start_date`` after ``end_date``.
        """
        settings = self._settings
        size = settings.refined_chunk_size if chunk_size is None else chunk_size
        if size <= 0:
            raise InvalidArgumentError("chunkSize must be greater than zero")

        now = self._clock()
        start_date = start_date or settings.refined_start_date
        if not start_date:
            raise InvalidArgumentError(
                "startDate is required (event.startDate or BACKFILL_REFINED_START_DATE)"
            )
        end_date = (
            end_date
            or settings.refined_end_date
            or default_end_date(now.date(), settings.refined_end_offset_days)
        )

        start = DateItem.parse(start_date, label="startDate")
        end = DateItem.parse(end_date, label="endDate")
        dates = dedupe_and_sort(enumerate_dates(start, end))
        chunks = split_into_chunks(dates, size)

        bucket = bucket or settings.bucket
        output_prefix = output_prefix or settings.refined_output_prefix
        database = database or settings.athena_database
        raw_table = validate_identifier(raw_table or settings.refined_raw_table)
        refined_table = validate_identifier(refined_table or settings.refined_table)
        refined_location = validate_location(refined_location or settings.refined_location)
        output_location = validate_location(output_location or settings.athena_output)
        work_group = work_group or settings.athena_workgroup

        run_id = make_run_id(now)
        base = run_prefix(output_prefix, run_id)
        logger.info(
            "Planning refinement run %s: %s..%s, %d dates in %d chunks",
            run_id,
            start_date,
            end_date,
            len(dates),
            len(chunks),
        )

        chunk_keys: list[str] = []
        for index, items in enumerate(chunks):
            key = chunk_key(base, index)
            write_json(self._storage, bucket, key, [item.to_chunk_entry() for item in items])
            chunk_keys.append(key)

        manifest = RefinementManifest(
            bucket=bucket,
            output_prefix=output_prefix,
            run_id=run_id,
            chunk_size=size,
            start_date=start_date,
            end_date=end_date,
            total_dates=len(dates),
            total_chunks=len(chunks),
            chunk_keys=chunk_keys,
        )
        key_of_manifest = manifest_key(base)
        write_json(self._storage, bucket, key_of_manifest, manifest.to_payload())

        return RefinementPlanResult(
            bucket=bucket,
            output_prefix=output_prefix,
            manifest_key=key_of_manifest,
            total_dates=len(dates),
            total_chunks=len(chunks),
            chunk_keys=chunk_keys,
            max_concurrency=max_concurrency,
            start_date=start_date,
            end_date=end_date,
            database=database,
            raw_table=raw_table,
            refined_table=refined_table,
            refined_location=refined_location,
            output_location=output_location,
            work_group=work_group,
        )
