"""Unit tests for observation_backfill.worker.partition_worker."""

from __future__ import annotations

import pytest

from observation_backfill.engine.client import QueryExecutionClient
from observation_backfill.engine.retry import RetryConfig
from observation_backfill.errors import EngineExecutionFailedError, InvalidFormatError, MissingChunkError
from observation_backfill.models.query import PollOptions, QueryState
from observation_backfill.worker.partition_worker import PartitionWorker
from fakes import FakeQueryEngine

BUCKET = "weather-tempest-records"
CHUNK_KEY = "backfill/athena-partitions/runs/test/chunks/chunk-00000.json"
TWO_PARTITIONS = (
    b'[{"year":"2024","month":"08","day":"05","hour":"22"},'
    b'{"year":"2024","month":"08","day":"05","hour":"23"}]'
)


def _worker(storage, engine, query_context, poll_options: PollOptions | None = None) -> PartitionWorker:
    client = QueryExecutionClient(
        engine,
        context=query_context,
        retry_config=RetryConfig(max_retries=0),
        sleep=lambda _: None,
    )
    return PartitionWorker(
        storage=storage,
        client=client,
        context=query_context,
        table="observations",
        location_root="s3://weather-tempest-records/",
        poll_options=poll_options or PollOptions(poll_interval_ms=0, max_polls=5),
    )


class TestPartitionWorker:
    def test_registers_chunk_with_one_statement(self, storage, engine, query_context):
        storage.add(BUCKET, CHUNK_KEY, TWO_PARTITIONS)

        result = _worker(storage, engine, query_context).process_chunk(BUCKET, CHUNK_KEY)

        assert result.to_payload() == {
            "bucket": BUCKET,
            "chunkKey": CHUNK_KEY,
            "attempted": 2,
            "succeeded": 2,
            "failed": 0,
            "queryExecutionId": "exec-1",
            "queryState": "SUCCEEDED",
        }
        assert engine.statements == [
            "ALTER TABLE observations ADD IF NOT EXISTS\n"
            "PARTITION (year='2024', month='08', day='05', hour='22') "
            "LOCATION 's3://weather-tempest-records/year=2024/month=08/day=05/hour=22/'\n"
            "PARTITION (year='2024', month='08', day='05', hour='23') "
            "LOCATION 's3://weather-tempest-records/year=2024/month=08/day=05/hour=23/';"
        ]

    def test_reprocessing_submits_the_same_idempotent_statement(self, storage, engine, query_context):
        storage.add(BUCKET, CHUNK_KEY, TWO_PARTITIONS)
        worker = _worker(storage, engine, query_context)

        first = worker.process_chunk(BUCKET, CHUNK_KEY)
        second = worker.process_chunk(BUCKET, CHUNK_KEY)

        assert engine.statements[0] == engine.statements[1]
        assert first.succeeded == second.succeeded == 2

    def test_missing_chunk(self, storage, engine, query_context):
        with pytest.raises(MissingChunkError, match=f"Missing chunk payload for {CHUNK_KEY}"):
            _worker(storage, engine, query_context).process_chunk(BUCKET, CHUNK_KEY)
        assert engine.statements == []

    def test_empty_body_is_missing(self, storage, engine, query_context):
        storage.add(BUCKET, CHUNK_KEY, b"")
        with pytest.raises(MissingChunkError):
            _worker(storage, engine, query_context).process_chunk(BUCKET, CHUNK_KEY)

    def test_empty_array_submits_nothing(self, storage, engine, query_context):
        storage.add(BUCKET, CHUNK_KEY, b"[]")

        result = _worker(storage, engine, query_context).process_chunk(BUCKET, CHUNK_KEY)

        assert (result.attempted, result.succeeded, result.failed) == (0, 0, 0)
        assert result.query_execution_id is None
        assert engine.statements == []

    def test_malformed_chunk(self, storage, engine, query_context):
        storage.add(BUCKET, CHUNK_KEY, b'{"not":"a list"}')
        with pytest.raises(InvalidFormatError):
            _worker(storage, engine, query_context).process_chunk(BUCKET, CHUNK_KEY)

    @pytest.mark.parametrize("state", [QueryState.FAILED, QueryState.CANCELLED])
    def test_failed_statement_raises(self, storage, query_context, state):
        storage.add(BUCKET, CHUNK_KEY, TWO_PARTITIONS)
        engine = FakeQueryEngine(default_state=state)

        with pytest.raises(EngineExecutionFailedError, match=f"Query exec-1 failed with state: {state.value}"):
            _worker(storage, engine, query_context).process_chunk(BUCKET, CHUNK_KEY)

    def test_poll_budget_exhaustion_raises_cancelled(self, storage, query_context):
        storage.add(BUCKET, CHUNK_KEY, TWO_PARTITIONS)
        engine = FakeQueryEngine(default_state=QueryState.RUNNING)
        worker = _worker(storage, engine, query_context, PollOptions(poll_interval_ms=0, max_polls=2))

        with pytest.raises(EngineExecutionFailedError) as info:
            worker.process_chunk(BUCKET, CHUNK_KEY)

        assert info.value.state is QueryState.CANCELLED
        assert engine.cancelled == ["exec-1"]
