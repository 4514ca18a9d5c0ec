"""Invocation entry points for a serverless function runtime.

Each handler takes the orchestrator's event dict (camelCase keys) and an
optional invocation context, and returns a JSON-serialisable dict.  All
clients are built per invocation.

When the context exposes ``get_remaining_time_in_millis()``, worker polling
stops (and cancels the running statement) once the remaining time drops to
``timeout_safety_buffer_ms``, so a worker reports a clean failure instead of
being killed by the runtime mid-poll.

The keyword-only ``settings``, ``storage``, ``engine`` and ``clock``
arguments let a local runner or a test supply its own collaborators.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from observation_backfill.config import Settings, load_settings
from observation_backfill.engine.base import QueryEngine
from observation_backfill.errors import InvalidArgumentError
from observation_backfill.factory import (
    build_object_storage,
    build_poll_options,
    build_query_client,
    build_query_context,
)
from observation_backfill.orchestration.summarizer import parse_outcomes, summarize
from observation_backfill.planner.partition_planner import PartitionPlanner, utc_now
from observation_backfill.planner.refinement_planner import RefinementPlanner
from observation_backfill.storage.base import ObjectStorage
from observation_backfill.worker.partition_worker import PartitionWorker
from observation_backfill.worker.refinement_worker import RefinementWorker

logger = logging.getLogger(__name__)

Event = Mapping[str, Any]


def _optional_str(event: Event, name: str) -> str | None:
    value = event.get(name)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidArgumentError(f"{name} must be a string")
    return value


def _optional_int(event: Event, name: str) -> int | None:
    value = event.get(name)
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidArgumentError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidArgumentError(f"{name} must be an integer") from exc


def _required_str(event: Event, name: str) -> str:
    value = _optional_str(event, name)
    if value is None:
        raise InvalidArgumentError(f"{name} is required")
    return value


def deadline_predicate(context: Any, safety_buffer_ms: int) -> Callable[[], bool] | None:
    """Build ``stop_when`` from an invocation context, if it reports remaining time."""
    remaining = getattr(context, "get_remaining_time_in_millis", None)
    if remaining is None or not callable(remaining):
        return None

    def stop_when() -> bool:
        return remaining() <= safety_buffer_ms

    return stop_when


# ---------------------------------------------------------------------------
# Planners
# ---------------------------------------------------------------------------


def planner_handler(
    event: Event | None = None,
    context: Any = None,
    *,
    settings: Settings | None = None,
    storage: ObjectStorage | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> dict[str, Any]:
    """Plan a partition backfill run."""
    event = event or {}
    settings = settings or load_settings()
    planner = PartitionPlanner(storage or build_object_storage(settings), settings, clock)
    result = planner.plan(
        bucket=_optional_str(event, "bucket"),
        prefix=event.get("prefix"),
        chunk_size=_optional_int(event, "chunkSize"),
        output_prefix=_optional_str(event, "outputPrefix"),
        max_concurrency=_optional_int(event, "maxConcurrency"),
    )
    return result.to_payload(exclude_none=True)


def refine_planner_handler(
    event: Event | None = None,
    context: Any = None,
    *,
    settings: Settings | None = None,
    storage: ObjectStorage | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> dict[str, Any]:
    """Plan a refinement backfill run over a date range."""
    event = event or {}
    settings = settings or load_settings()
    planner = RefinementPlanner(storage or build_object_storage(settings), settings, clock)
    result = planner.plan(
        start_date=_optional_str(event, "startDate"),
        end_date=_optional_str(event, "endDate"),
        chunk_size=_optional_int(event, "chunkSize"),
        bucket=_optional_str(event, "bucket"),
        output_prefix=_optional_str(event, "outputPrefix"),
        max_concurrency=_optional_int(event, "maxConcurrency"),
        database=_optional_str(event, "database"),
        raw_table=_optional_str(event, "rawTable"),
        refined_table=_optional_str(event, "refinedTable"),
        refined_location=_optional_str(event, "refinedLocation"),
        output_location=_optional_str(event, "outputLocation"),
        work_group=_optional_str(event, "workGroup"),
    )
    return result.to_payload(exclude_none=True)


# ---------------------------------------------------------------------------
# Workers
# ---------------------------------------------------------------------------


def worker_handler(
    event: Event,
    context: Any = None,
    *,
    settings: Settings | None = None,
    storage: ObjectStorage | None = None,
    engine: QueryEngine | None = None,
) -> dict[str, Any]:
    """Register the partitions of one chunk."""
    settings = settings or load_settings()
    bucket = _optional_str(event, "bucket") or settings.bucket
    chunk_key = _required_str(event, "chunkKey")

    query_context = build_query_context(
        settings,
        database=_optional_str(event, "database"),
        output_location=_optional_str(event, "outputLocation"),
        work_group=_optional_str(event, "workGroup"),
    )
    stop_when = deadline_predicate(context, settings.timeout_safety_buffer_ms)
    client = build_query_client(settings, engine=engine, context=query_context, stop_when=stop_when)
    worker = PartitionWorker(
        storage=storage or build_object_storage(settings),
        client=client,
        context=query_context,
        table=_optional_str(event, "table") or settings.athena_table,
        location_root=settings.partition_location_root,
        poll_options=build_poll_options(settings, stop_when),
    )
    logger.info("Processing partition chunk %s", chunk_key, extra={"chunk_key": chunk_key})
    return worker.process_chunk(bucket, chunk_key).to_payload()


def refine_worker_handler(
    event: Event,
    context: Any = None,
    *,
    settings: Settings | None = None,
    storage: ObjectStorage | None = None,
    engine: QueryEngine | None = None,
) -> dict[str, Any]:
    """Refine the dates of one chunk."""
    settings = settings or load_settings()
    bucket = _optional_str(event, "bucket") or settings.bucket
    chunk_key = _required_str(event, "chunkKey")

    query_context = build_query_context(
        settings,
        database=_optional_str(event, "database"),
        output_location=_optional_str(event, "outputLocation"),
        work_group=_optional_str(event, "workGroup"),
    )
    stop_when = deadline_predicate(context, settings.timeout_safety_buffer_ms)
    client = build_query_client(settings, engine=engine, context=query_context, stop_when=stop_when)
    worker = RefinementWorker(
        storage=storage or build_object_storage(settings),
        client=client,
        context=query_context,
        raw_table=_optional_str(event, "rawTable") or settings.refined_raw_table,
        refined_table=_optional_str(event, "refinedTable") or settings.refined_table,
        refined_location=_optional_str(event, "refinedLocation") or settings.refined_location,
        poll_options=build_poll_options(settings, stop_when),
    )
    logger.info("Processing refinement chunk %s", chunk_key, extra={"chunk_key": chunk_key})
    return worker.process_chunk(bucket, chunk_key).to_payload()


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------


def summarize_handler(event: Event | None = None, context: Any = None) -> dict[str, Any]:
    """Aggregate the orchestrator's ``chunkResults`` into a summary."""
    event = event or {}
    return summarize(parse_outcomes(event.get("chunkResults"))).to_payload()
