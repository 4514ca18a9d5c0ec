"""Work item models: the atomic, addressable units a backfill run is split into.

Two variants exist:

* :class:`PartitionItem` -- one hourly storage partition
  (``year=YYYY/month=MM/day=DD/hour=HH/``), used by the partition backfill.
* :class:`DateItem` -- one calendar date, used by the refinement backfill.

Both expose a canonical string ``key`` (the deduplication identity), an
orderable ``sort_key``, and a ``to_chunk_entry()`` form that is written
verbatim into chunk files.  The chunk-file form is part of the persisted
state contract and must not change.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import UTC, date, datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from observation_backfill.errors import InvalidFormatError

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

PARTITION_PATH_PATTERN = re.compile(r"year=(\d{4})/month=(\d{2})/day=(\d{2})/hour=(\d{2})/")

ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


# ---------------------------------------------------------------------------
# PartitionItem
# ---------------------------------------------------------------------------


class PartitionItem(BaseModel):
    """One hourly partition, identified by zero-padded string components."""

    model_config = ConfigDict(frozen=True)

    year: str = Field(..., pattern=r"^\d{4}$", description="Four-digit year.")
    month: str = Field(..., pattern=r"^\d{2}$", description="Two-digit month.")
    day: str = Field(..., pattern=r"^\d{2}$", description="Two-digit day of month.")
    hour: str = Field(..., pattern=r"^\d{2}$", description="Two-digit hour (UTC).")

    @property
    def key(self) -> str:
        return f"{self.year}-{self.month}-{self.day}-{self.hour}"

    @property
    def sort_key(self) -> int:
        return int(f"{self.year}{self.month}{self.day}{self.hour}")

    @property
    def storage_path(self) -> str:
        """Relative path of the partition under the raw observations root."""
        return f"year={self.year}/month={self.month}/day={self.day}/hour={self.hour}/"

    def to_chunk_entry(self) -> dict[str, str]:
        return {"year": self.year, "month": self.month, "day": self.day, "hour": self.hour}

    @classmethod
    def from_storage_key(cls, key: str) -> PartitionItem | None:
        """Extract the partition from an object key, or ``None`` if it has none."""
        match = PARTITION_PATH_PATTERN.search(key)
        if match is None:
            return None
        year, month, day, hour = match.groups()
        return cls(year=year, month=month, day=day, hour=hour)

    @classmethod
    def from_key(cls, key: str) -> PartitionItem:
        """Parse a canonical ``YYYY-MM-DD-HH`` key."""
        parts = key.split("-")
        if len(parts) != 4:
            raise InvalidFormatError(f"Invalid partition key: {key!r}")
        return cls.from_chunk_entry(dict(zip(("year", "month", "day", "hour"), parts, strict=True)))

    @classmethod
    def from_chunk_entry(cls, entry: Any) -> PartitionItem:
        if not isinstance(entry, dict):
            raise InvalidFormatError(f"Invalid partition in chunk: {entry!r}")
        try:
            return cls.model_validate(entry)
        except ValidationError as exc:
            raise InvalidFormatError(f"Invalid partition in chunk: {entry!r}") from exc

    @classmethod
    def from_datetime(cls, value: datetime) -> PartitionItem:
        """Return the partition an instant falls into, in UTC."""
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return cls(
            year=f"{value.year:04d}",
            month=f"{value.month:02d}",
            day=f"{value.day:02d}",
            hour=f"{value.hour:02d}",
        )


# ---------------------------------------------------------------------------
# DateItem
# ---------------------------------------------------------------------------


class DateItem(BaseModel):
    """One calendar date to refine."""

    model_config = ConfigDict(frozen=True)

    value: date = Field(..., description="The calendar date.")

    @property
    def year(self) -> str:
        return f"{self.value.year:04d}"

    @property
    def month(self) -> str:
        return f"{self.value.month:02d}"

    @property
    def day(self) -> str:
        return f"{self.value.day:02d}"

    @property
    def key(self) -> str:
        return f"{self.year}-{self.month}-{self.day}"

    @property
    def sort_key(self) -> date:
        return self.value

    def to_chunk_entry(self) -> str:
        return self.key

    @classmethod
    def parse(cls, value: Any, label: str = "date") -> DateItem:
        """Parse a strict ``YYYY-MM-DD`` string.

        Raises
        ------
        InvalidFormatError
            If *value* is not a string of that shape or is not a real date.
        """
        if not isinstance(value, str) or not ISO_DATE_PATTERN.match(value):
            raise InvalidFormatError(f"{label} must use YYYY-MM-DD format")
        try:
            return cls(value=date.fromisoformat(value))
        except ValueError as exc:
            raise InvalidFormatError(f"{label} is invalid") from exc

    @classmethod
    def from_chunk_entry(cls, entry: Any) -> DateItem:
        if not isinstance(entry, str) or not ISO_DATE_PATTERN.match(entry):
            raise InvalidFormatError(f"Invalid date in chunk: {entry!r}")
        return cls.parse(entry, label=f"Date {entry!r} in chunk")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

WorkItem = PartitionItem | DateItem

ItemT = TypeVar("ItemT", PartitionItem, DateItem)


def dedupe_and_sort(items: Iterable[ItemT]) -> list[ItemT]:
    """Drop duplicate canonical keys and order ascending by sort key.

    The first occurrence of a key wins; since equal keys imply equal
    components the choice does not affect the output.
    """
    unique: dict[str, ItemT] = {}
    for item in items:
        unique.setdefault(item.key, item)
    return sorted(unique.values(), key=lambda item: item.sort_key)
