"""Build storage, engines, clients and workers from :class:`Settings`.

Every call constructs fresh objects.  Nothing is cached at module level, so
each handler invocation or CLI command owns its clients and no state is
shared between concurrent workers.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from observation_backfill.config import EngineType, Settings
from observation_backfill.engine.athena_engine import AthenaQueryEngine
from observation_backfill.engine.base import QueryEngine
from observation_backfill.engine.client import QueryExecutionClient
from observation_backfill.engine.retry import RetryConfig
from observation_backfill.errors import InvalidArgumentError
from observation_backfill.models.query import PollOptions, QueryContext
from observation_backfill.storage.base import ObjectStorage
from observation_backfill.storage.local_storage import LocalObjectStorage
from observation_backfill.storage.s3_storage import S3ObjectStorage


def build_object_storage(settings: Settings, local_root: Path | None = None) -> ObjectStorage:
    """S3 storage, or filesystem storage rooted at *local_root* when given."""
    if local_root is not None:
        return LocalObjectStorage(local_root)
    return S3ObjectStorage(region=settings.aws_region, endpoint_url=settings.s3_endpoint_url)


def build_query_engine(settings: Settings) -> QueryEngine:
    """Return the engine adapter selected by ``engine_type``.

    Raises
    ------
    InvalidArgumentError
        If the Databricks engine is selected without host, token and
        warehouse id.
    """
    if settings.engine_type is EngineType.DATABRICKS:
        token = settings.databricks_token
        if token is None or not settings.is_databricks_configured():
            raise InvalidArgumentError(
                "Databricks engine requires BACKFILL_DATABRICKS_HOST, "
                "BACKFILL_DATABRICKS_TOKEN and BACKFILL_DATABRICKS_WAREHOUSE_ID"
            )
        # Lazy import: databricks-sdk is only loaded for this engine.
        from observation_backfill.engine.databricks_engine import DatabricksQueryEngine

        return DatabricksQueryEngine(
            host=settings.databricks_host or "",
            token=token.get_secret_value(),
            warehouse_id=settings.databricks_warehouse_id or "",
            catalog=settings.databricks_catalog,
        )

    return AthenaQueryEngine(region=settings.aws_region, catalog=settings.athena_catalog)


def build_query_context(
    settings: Settings,
    database: str | None = None,
    output_location: str | None = None,
    work_group: str | None = None,
) -> QueryContext:
    return QueryContext(
        database=database or settings.athena_database,
        output_location=output_location or settings.athena_output,
        workgroup=work_group or settings.athena_workgroup,
    )


def build_poll_options(settings: Settings, stop_when: Callable[[], bool] | None = None) -> PollOptions:
    return PollOptions(
        poll_interval_ms=settings.poll_delay_ms,
        max_polls=settings.max_polls,
        max_wait_ms=settings.query_timeout_ms,
        stop_when=stop_when,
    )


def build_retry_config(settings: Settings) -> RetryConfig:
    return RetryConfig(
        max_retries=settings.max_retries,
        base_delay=settings.retry_backoff_base,
        max_delay=settings.retry_max_delay,
    )


def build_query_client(
    settings: Settings,
    engine: QueryEngine | None = None,
    context: QueryContext | None = None,
    stop_when: Callable[[], bool] | None = None,
) -> QueryExecutionClient:
    """Wire an execution client with the configured polling and retry bounds."""
    return QueryExecutionClient(
        engine=engine or build_query_engine(settings),
        context=context or build_query_context(settings),
        poll_options=build_poll_options(settings, stop_when),
        retry_config=build_retry_config(settings),
    )
