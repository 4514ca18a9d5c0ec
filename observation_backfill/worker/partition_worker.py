"""Register the partitions of one chunk in the catalog."""

from __future__ import annotations

import logging

from observation_backfill.engine.client import QueryExecutionClient
from observation_backfill.errors import EngineExecutionFailedError
from observation_backfill.models.query import PollOptions, QueryContext, QueryState
from observation_backfill.models.results import PartitionChunkResult
from observation_backfill.models.work_item import PartitionItem
from observation_backfill.sql.guard import validate_identifier, validate_location
from observation_backfill.sql.partition_queries import build_add_partitions_query
from observation_backfill.storage.base import ObjectStorage
from observation_backfill.telemetry.profiling import profile_operation
from observation_backfill.worker.chunk_loader import load_chunk

logger = logging.getLogger(__name__)


class PartitionWorker:
    """Add every partition of a chunk with one batched statement.

    The statement uses ``ADD IF NOT EXISTS``, so processing the same chunk
    again leaves the catalog unchanged.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        client: QueryExecutionClient,
        context: QueryContext,
        table: str,
        location_root: str,
        poll_options: PollOptions | None = None,
    ) -> None:
        self._storage = storage
        self._client = client
        self._context = context
        self._table = validate_identifier(table)
        self._location_root = validate_location(location_root)
        self._poll_options = poll_options

    @profile_operation("worker.partitions")
    def process_chunk(self, bucket: str, chunk_key: str) -> PartitionChunkResult:
        """Load *chunk_key* and register its partitions.

        Raises
        ------
        MissingChunkError
            If the chunk object is absent or empty.
        EngineExecutionFailedError
            If the statement does not succeed, including when polling gave up.
        """
        partitions = load_chunk(self._storage, bucket, chunk_key, PartitionItem.from_chunk_entry)
        if not partitions:
            logger.info("Chunk %s holds no partitions; nothing to submit", chunk_key)
            return PartitionChunkResult(bucket=bucket, chunk_key=chunk_key, attempted=0, succeeded=0, failed=0)

        sql = build_add_partitions_query(self._table, partitions, self._location_root)
        execution_id = self._client.submit(sql, self._context)
        state = self._client.poll_until_terminal(execution_id, self._poll_options)
        if state is not QueryState.SUCCEEDED:
            logger.error(
                "Adding %d partitions from %s failed: query %s ended %s",
                len(partitions),
                chunk_key,
                execution_id,
                state.value,
            )
            raise EngineExecutionFailedError(state, execution_id)

        logger.info("Added %d partitions from %s (query %s)", len(partitions), chunk_key, execution_id)
        return PartitionChunkResult(
            bucket=bucket,
            chunk_key=chunk_key,
            attempted=len(partitions),
            succeeded=len(partitions),
            failed=0,
            query_execution_id=execution_id,
            query_state=state,
        )
