"""SQL statement builders for partition registration and refinement."""

from __future__ import annotations

from observation_backfill.sql.dialect import Dialect
from observation_backfill.sql.guard import validate_identifier, validate_location
from observation_backfill.sql.partition_queries import build_add_partitions_query
from observation_backfill.sql.refinement_queries import (
    create_refined_table_query,
    existing_rows_for_date_query,
    insert_refined_rows_for_date_query,
)

__all__ = [
    "Dialect",
    "build_add_partitions_query",
    "create_refined_table_query",
    "existing_rows_for_date_query",
    "insert_refined_rows_for_date_query",
    "validate_identifier",
    "validate_location",
]
