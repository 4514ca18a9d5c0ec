"""Observation backfill CLI -- Typer-based operator interface.

Plans partition and refinement runs, processes single chunks, summarises
orchestrator output and runs a whole backfill locally with bounded
concurrency.  Human-readable output goes to *stderr* via Rich; ``--json``
writes the machine-readable payload to *stdout*.

Exit codes: ``0`` success, ``1`` engine or storage failure (or failed
chunks in ``run``), ``3`` invalid arguments or configuration.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any

import typer
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError
from rich.console import Console

from observation_backfill.cli.display import (
    display_chunk_result,
    display_outcome_errors,
    display_plan_result,
    display_profile_stats,
    display_summary,
)
from observation_backfill.config import Settings, load_settings
from observation_backfill.errors import BackfillError
from observation_backfill.factory import build_object_storage
from observation_backfill.handlers import (
    planner_handler,
    refine_planner_handler,
    refine_worker_handler,
    worker_handler,
)
from observation_backfill.logging_config import configure_logging
from observation_backfill.orchestration.runner import run_chunks
from observation_backfill.orchestration.summarizer import parse_outcomes, summarize
from observation_backfill.storage.base import ObjectStorage
from observation_backfill.telemetry.profiling import ProfileCollector

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="observation-backfill",
    help="Chunked partition backfill and idempotent 15-minute refinement of weather observations.",
    no_args_is_help=True,
)
console = Console(stderr=True)


class Workload(str, Enum):
    PARTITIONS = "partitions"
    REFINEMENT = "refinement"


# Mutable global options populated by the Typer callback.
_json_output: bool = False
_local_root: Path | None = None


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of human-readable output.",
    ),
    local_root: Path | None = typer.Option(
        None,
        "--local-root",
        help="Use this directory as object storage instead of S3 (one sub-directory per bucket).",
        envvar="BACKFILL_LOCAL_ROOT",
        file_okay=False,
        resolve_path=True,
    ),
) -> None:
    """Global options applied to every command."""
    global _json_output, _local_root  # noqa: PLW0603
    _json_output = json_mode
    _local_root = local_root


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _exit_on_error() -> Iterator[None]:
    """Map library errors to exit codes with a one-line message."""
    try:
        yield
    except BackfillError as exc:
        console.print(f"[red]{type(exc).__name__}: {exc}[/red]")
        raise typer.Exit(code=3 if exc.is_client_error else 1) from exc
    except ValidationError as exc:
        console.print(f"[red]Invalid configuration: {exc}[/red]")
        raise typer.Exit(code=3) from exc
    except (BotoCoreError, ClientError) as exc:
        console.print(f"[red]AWS error: {exc}[/red]")
        raise typer.Exit(code=1) from exc


def _load() -> tuple[Settings, ObjectStorage]:
    settings = load_settings()
    configure_logging(settings)
    return settings, build_object_storage(settings, _local_root)


def _emit(payload: Any, render: Callable[[Console, Any], None]) -> None:
    if _json_output:
        sys.stdout.write(json.dumps(payload, indent=2, ensure_ascii=False) + "\n")
    else:
        render(console, payload)


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


# ---------------------------------------------------------------------------
# plan-partitions / plan-refinement
# ---------------------------------------------------------------------------


@app.command("plan-partitions")
def plan_partitions(
    bucket: str | None = typer.Option(None, "--bucket", help="Bucket holding raw observations."),
    prefix: str | None = typer.Option(None, "--prefix", help="Only scan keys under this prefix."),
    chunk_size: int | None = typer.Option(None, "--chunk-size", help="Partitions per chunk."),
    output_prefix: str | None = typer.Option(None, "--output-prefix", help="Where run files are written."),
) -> None:
    """List raw partitions and write them out as chunks plus a manifest."""
    with _exit_on_error():
        settings, storage = _load()
        event = _compact(
            {"bucket": bucket, "prefix": prefix, "chunkSize": chunk_size, "outputPrefix": output_prefix}
        )
        with console.status("Listing partitions...", spinner="dots"):
            plan = planner_handler(event, settings=settings, storage=storage)
    _emit(plan, display_plan_result)


@app.command("plan-refinement")
def plan_refinement(
    start: str | None = typer.Option(None, "--start", help="First date to refine (YYYY-MM-DD)."),
    end: str | None = typer.Option(None, "--end", help="Last date to refine, inclusive (YYYY-MM-DD)."),
    chunk_size: int | None = typer.Option(None, "--chunk-size", help="Dates per chunk."),
    bucket: str | None = typer.Option(None, "--bucket", help="Bucket run files are written to."),
    output_prefix: str | None = typer.Option(None, "--output-prefix", help="Where run files are written."),
) -> None:
    """Enumerate a date range and write it out as chunks plus a manifest."""
    with _exit_on_error():
        settings, storage = _load()
        event = _compact(
            {
                "startDate": start,
                "endDate": end,
                "chunkSize": chunk_size,
                "bucket": bucket,
                "outputPrefix": output_prefix,
            }
        )
        plan = refine_planner_handler(event, settings=settings, storage=storage)
    _emit(plan, display_plan_result)


# ---------------------------------------------------------------------------
# process-chunk
# ---------------------------------------------------------------------------


@app.command("process-chunk")
def process_chunk(
    chunk_key: str = typer.Argument(..., help="Storage key of the chunk to process."),
    workload: Workload = typer.Option(Workload.PARTITIONS, "--workload", "-w", help="Kind of chunk."),
    bucket: str | None = typer.Option(None, "--bucket", help="Bucket holding the chunk."),
) -> None:
    """Process one chunk with the partition or refinement worker."""
    with _exit_on_error():
        settings, storage = _load()
        event = _compact({"bucket": bucket, "chunkKey": chunk_key})
        handler = worker_handler if workload is Workload.PARTITIONS else refine_worker_handler
        with console.status(f"Processing {chunk_key}...", spinner="dots"):
            result = handler(event, settings=settings, storage=storage)
    _emit(result, display_chunk_result)


# ---------------------------------------------------------------------------
# summarize
# ---------------------------------------------------------------------------


@app.command("summarize")
def summarize_command(
    results_file: Path = typer.Argument(
        ...,
        help="JSON file with the orchestrator output: a list of outcomes or {\"chunkResults\": [...]}.",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
) -> None:
    """Aggregate chunk outcomes into a run summary."""
    try:
        data = json.loads(results_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        console.print(f"[red]Failed to read {results_file}: {exc}[/red]")
        raise typer.Exit(code=3) from exc

    raw = data.get("chunkResults") if isinstance(data, dict) else data
    if not isinstance(raw, list):
        console.print("[red]Expected a list of chunk outcomes.[/red]")
        raise typer.Exit(code=3)

    with _exit_on_error():
        summary = summarize(parse_outcomes(raw)).to_payload()
    _emit(summary, display_summary)


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@app.command("run")
def run(
    workload: Workload = typer.Option(Workload.PARTITIONS, "--workload", "-w", help="What to backfill."),
    start: str | None = typer.Option(None, "--start", help="First date to refine (refinement only)."),
    end: str | None = typer.Option(None, "--end", help="Last date to refine (refinement only)."),
    chunk_size: int | None = typer.Option(None, "--chunk-size", help="Items per chunk."),
    max_concurrency: int | None = typer.Option(
        None,
        "--max-concurrency",
        "-c",
        help="Chunks processed at once (defaults to BACKFILL_MAX_CONCURRENCY).",
    ),
) -> None:
    """Plan a run, process every chunk locally, and summarise the outcomes."""
    with _exit_on_error():
        settings, storage = _load()
        concurrency = max_concurrency if max_concurrency is not None else settings.max_concurrency

        if workload is Workload.PARTITIONS:
            plan = planner_handler(
                _compact({"chunkSize": chunk_size, "maxConcurrency": concurrency}),
                settings=settings,
                storage=storage,
            )
            echoed: dict[str, Any] = {"bucket": plan["bucket"]}
            worker = worker_handler
        else:
            plan = refine_planner_handler(
                _compact({"startDate": start, "endDate": end, "chunkSize": chunk_size, "maxConcurrency": concurrency}),
                settings=settings,
                storage=storage,
            )
            echoed = {
                key: plan[key]
                for key in (
                    "bucket",
                    "database",
                    "rawTable",
                    "refinedTable",
                    "refinedLocation",
                    "outputLocation",
                    "workGroup",
                )
            }
            worker = refine_worker_handler

        if not _json_output:
            display_plan_result(console, plan)

        def process(chunk_key: str) -> dict[str, Any]:
            return worker({**echoed, "chunkKey": chunk_key}, settings=settings, storage=storage)

        with console.status(f"Processing {plan['totalChunks']} chunk(s)...", spinner="dots"):
            outcomes = run_chunks(plan["chunkKeys"], process, concurrency)
        summary = summarize(outcomes).to_payload()

    outcome_payloads = [outcome.to_payload(exclude_none=True) for outcome in outcomes]
    if _json_output:
        sys.stdout.write(
            json.dumps({"plan": plan, "chunkResults": outcome_payloads, "summary": summary}, indent=2) + "\n"
        )
    else:
        display_outcome_errors(console, outcome_payloads)
        display_summary(console, summary)
        display_profile_stats(console, ProfileCollector.get_instance().get_all_stats())

    if summary["failedChunks"]:
        raise typer.Exit(code=1)
