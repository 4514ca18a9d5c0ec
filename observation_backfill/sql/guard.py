"""Input checks for values interpolated into generated SQL.

Statements are built from a fixed template plus a handful of configurable
values (table names, storage locations, partition components).  Those values
are checked here before any statement is rendered, so a malformed override
fails as an argument error instead of producing an unsafe statement.
"""

from __future__ import annotations

import re

from observation_backfill.errors import InvalidArgumentError

# ``table`` or ``schema.table`` (optionally ``catalog.schema.table``).
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*){0,2}$")

_LOCATION_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://[^'\\\s]+/$")


def validate_identifier(value: str) -> str:
    """Return *value* if it is a plain (optionally qualified) table identifier."""
    if not isinstance(value, str) or not _IDENTIFIER_RE.match(value):
        raise InvalidArgumentError(f"Invalid table identifier: {value!r}")
    return value


def validate_location(value: str) -> str:
    """Return *value* if it is a ``scheme://...`` location ending in ``/``.

    Quotes, backslashes and whitespace are rejected because the location is
    rendered inside a single-quoted SQL literal.
    """
    if not isinstance(value, str) or not _LOCATION_RE.match(value):
        raise InvalidArgumentError(f"Invalid storage location (expected scheme://path/): {value!r}")
    return value
