"""Catalog DDL for registering hourly observation partitions."""

from __future__ import annotations

from collections.abc import Sequence

from observation_backfill.errors import InvalidArgumentError
from observation_backfill.models.work_item import PartitionItem
from observation_backfill.sql.guard import validate_identifier, validate_location


def partition_clause(partition: PartitionItem, location_root: str) -> str:
    """Render one ``PARTITION (...) LOCATION '...'`` clause."""
    location = f"{location_root}{partition.storage_path}"
    return (
        f"PARTITION (year='{partition.year}', month='{partition.month}', "
        f"day='{partition.day}', hour='{partition.hour}') LOCATION '{location}'"
    )


def build_add_partitions_query(
    table: str,
    partitions: Sequence[PartitionItem],
    location_root: str,
) -> str:
    """Build a single idempotent statement adding every partition in *partitions*.

    One statement per chunk bounds the number of engine executions regardless
    of chunk size; ``IF NOT EXISTS`` makes re-running it a no-op for
    partitions that are already registered.
    """
    validate_identifier(table)
    validate_location(location_root)
    if not partitions:
        raise InvalidArgumentError("At least one partition is required")

    clauses = "\n".join(partition_clause(partition, location_root) for partition in partitions)
    return f"ALTER TABLE {table} ADD IF NOT EXISTS\n{clauses};"
