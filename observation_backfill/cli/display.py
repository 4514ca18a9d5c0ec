"""Rich output formatting for the backfill CLI.

All functions write to a :class:`rich.console.Console` bound to *stderr* so
that ``--json`` output on *stdout* is never polluted with decoration.
"""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

_STATE_COLOURS: dict[str, str] = {
    "SUCCEEDED": "green",
    "FAILED": "red",
    "RUNNING": "yellow",
    "QUEUED": "dim",
    "CANCELLED": "dim red",
}

_MAX_LISTED_CHUNKS = 20


def _coloured_state(state: str) -> str:
    colour = _STATE_COLOURS.get(state, "white")
    return f"[{colour}]{state}[/{colour}]"


def display_plan_result(console: Console, plan: dict[str, Any]) -> None:
    """Render a plan result returned by one of the planners.

    Parameters
    ----------
    console:
        Rich console to write to.
    plan:
        The camelCase plan payload.
    """
    if "totalDates" in plan:
        items_line = (
            f"[bold]Dates:[/bold]    {plan['totalDates']} "
            f"([cyan]{plan['startDate']}[/cyan] .. [cyan]{plan['endDate']}[/cyan])"
        )
    else:
        items_line = f"[bold]Partitions:[/bold] {plan.get('totalPartitions', 0)}"

    header_lines = [
        f"[bold]Bucket:[/bold]   {plan['bucket']}",
        f"[bold]Manifest:[/bold] {plan['manifestKey']}",
        items_line,
        f"[bold]Chunks:[/bold]   {plan['totalChunks']}",
    ]
    console.print(Panel("\n".join(header_lines), title="Backfill Plan", border_style="blue"))

    chunk_keys: list[str] = plan.get("chunkKeys", [])
    if not chunk_keys:
        console.print("[dim]Nothing to backfill.[/dim]")
        return

    table = Table(title="Chunks", show_lines=False, expand=False)
    table.add_column("#", justify="right")
    table.add_column("Chunk Key")
    for index, key in enumerate(chunk_keys[:_MAX_LISTED_CHUNKS]):
        table.add_row(str(index), key)
    console.print(table)
    if len(chunk_keys) > _MAX_LISTED_CHUNKS:
        console.print(f"[dim]... and {len(chunk_keys) - _MAX_LISTED_CHUNKS} more[/dim]")


def display_chunk_result(console: Console, result: dict[str, Any]) -> None:
    """Render one worker result (partition or refinement)."""
    table = Table(title=result.get("chunkKey", "Chunk"), show_header=False, expand=False)
    table.add_column("Field", style="bold")
    table.add_column("Value", justify="right")
    for name, value in result.items():
        if name in ("bucket", "chunkKey"):
            continue
        rendered = _coloured_state(value) if name == "queryState" and value else str(value)
        table.add_row(name, rendered)
    console.print(table)


def display_summary(console: Console, summary: dict[str, Any]) -> None:
    """Render a run summary with the failed chunk keys, if any."""
    total = summary.get("totalChunks", 0)
    succeeded = summary.get("succeededChunks", 0)
    failed = summary.get("failedChunks", 0)

    parts: list[str] = [f"[bold]{total}[/bold] chunk(s)"]
    if succeeded:
        parts.append(f"[green]{succeeded} succeeded[/green]")
    if failed:
        parts.append(f"[red]{failed} failed[/red]")
    console.print(", ".join(parts))

    failed_keys: list[str] = summary.get("failedChunkKeys", [])
    for key in failed_keys[:_MAX_LISTED_CHUNKS]:
        console.print(f"  [red]x[/red] {key}")
    if len(failed_keys) > _MAX_LISTED_CHUNKS:
        console.print(f"  [dim]... and {len(failed_keys) - _MAX_LISTED_CHUNKS} more[/dim]")


def display_outcome_errors(console: Console, outcomes: list[dict[str, Any]]) -> None:
    """Render the error of every failed outcome."""
    failures = [outcome for outcome in outcomes if not outcome.get("success")]
    if not failures:
        return

    table = Table(title="Failed Chunks", expand=False)
    table.add_column("Chunk Key")
    table.add_column("Error", style="red")
    table.add_column("Cause")
    for outcome in failures:
        error = outcome.get("error") or {}
        table.add_row(outcome.get("chunkKey", "?"), error.get("Error") or "-", error.get("Cause") or "-")
    console.print(table)


def display_profile_stats(console: Console, stats: list[dict[str, Any]]) -> None:
    """Render timing statistics collected during a run."""
    if not stats:
        return

    table = Table(title="Timings", expand=False)
    table.add_column("Operation", style="bold")
    table.add_column("Calls", justify="right")
    table.add_column("Failures", justify="right")
    table.add_column("Mean", justify="right")
    table.add_column("p95", justify="right")
    table.add_column("Max", justify="right")
    for row in stats:
        table.add_row(
            row["operation"],
            str(row["count"]),
            str(row["failures"]),
            f"{row['mean_ms']:.1f}ms",
            f"{row['p95_ms']:.1f}ms",
            f"{row['max_ms']:.1f}ms",
        )
    console.print(table)
