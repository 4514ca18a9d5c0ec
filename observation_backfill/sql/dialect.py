"""SQL dialects the generated statements can target."""

from __future__ import annotations

from enum import Enum


class Dialect(str, Enum):
    ATHENA = "athena"
    DATABRICKS = "databricks"


# DATE_FORMAT patterns for the refined-table partition columns.
DATE_FORMAT_TOKENS: dict[Dialect, dict[str, str]] = {
    Dialect.ATHENA: {"year": "%Y", "month": "%m", "day": "%d", "hour": "%H"},
    Dialect.DATABRICKS: {"year": "yyyy", "month": "MM", "day": "dd", "hour": "HH"},
}
