"""Derive 15-minute refined rows for each date of one chunk.

Dates are processed one after another.  For each date the refined table is
checked first; a date that already has rows is skipped, which makes a
re-run of a chunk (after a crash or an orchestrator retry) insert nothing
twice.  The row count read after an insert is what the date contributes to
``insertedRows``.
"""

from __future__ import annotations

import logging

from observation_backfill.engine.client import QueryExecutionClient
from observation_backfill.models.query import PollOptions, QueryContext
from observation_backfill.models.results import RefinementChunkResult
from observation_backfill.models.work_item import DateItem
from observation_backfill.sql.guard import validate_identifier, validate_location
from observation_backfill.sql.refinement_queries import (
    create_refined_table_query,
    existing_rows_for_date_query,
    insert_refined_rows_for_date_query,
)
from observation_backfill.storage.base import ObjectStorage
from observation_backfill.telemetry.profiling import profile_operation
from observation_backfill.worker.chunk_loader import load_chunk

logger = logging.getLogger(__name__)


class RefinementWorker:
    """Refine every date of a chunk, skipping dates that are already refined."""

    def __init__(
        self,
        storage: ObjectStorage,
        client: QueryExecutionClient,
        context: QueryContext,
        raw_table: str,
        refined_table: str,
        refined_location: str,
        poll_options: PollOptions | None = None,
    ) -> None:
        self._storage = storage
        self._client = client
        self._context = context
        self._raw_table = validate_identifier(raw_table)
        self._refined_table = validate_identifier(refined_table)
        self._refined_location = validate_location(refined_location)
        self._poll_options = poll_options

    def _count_rows(self, item: DateItem) -> int:
        return self._client.query_scalar(
            existing_rows_for_date_query(self._refined_table, item),
            self._context,
            self._poll_options,
        )

    def refine_date(self, item: DateItem) -> int | None:
        """Refine one date.  Returns the rows now present, or ``None`` if skipped."""
        existing = self._count_rows(item)
        if existing > 0:
            logger.info("Skipping %s: %d refined rows already present", item.key, existing)
            return None

        self._client.execute(
            insert_refined_rows_for_date_query(
                self._raw_table,
                self._refined_table,
                item,
                self._client.engine.dialect,
            ),
            self._context,
            self._poll_options,
        )
        inserted = self._count_rows(item)
        logger.info("Refined %s: %d rows", item.key, inserted)
        return inserted

    @profile_operation("worker.refinement")
    def process_chunk(self, bucket: str, chunk_key: str) -> RefinementChunkResult:
        """Load *chunk_key* and refine its dates in order.

        The first statement that does not succeed aborts the chunk with
        :class:`~observation_backfill.errors.EngineExecutionFailedError`;
        dates refined before it stay refined and are skipped on retry.
        """
        dates = load_chunk(self._storage, bucket, chunk_key, DateItem.from_chunk_entry)
        if not dates:
            logger.info("Chunk %s holds no dates; nothing to submit", chunk_key)
            return RefinementChunkResult(
                bucket=bucket,
                chunk_key=chunk_key,
                attempted_dates=0,
                succeeded_dates=0,
                skipped_dates=0,
                failed_dates=0,
                inserted_rows=0,
            )

        self._client.execute(
            create_refined_table_query(self._refined_table, self._refined_location),
            self._context,
            self._poll_options,
        )

        succeeded = 0
        skipped = 0
        inserted_rows = 0
        for item in dates:
            inserted = self.refine_date(item)
            if inserted is None:
                skipped += 1
            else:
                inserted_rows += inserted
            succeeded += 1

        return RefinementChunkResult(
            bucket=bucket,
            chunk_key=chunk_key,
            attempted_dates=len(dates),
            succeeded_dates=succeeded,
            skipped_dates=skipped,
            failed_dates=len(dates) - succeeded,
            inserted_rows=inserted_rows,
        )
