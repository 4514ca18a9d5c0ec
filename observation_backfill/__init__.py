"""Chunked partition backfill and idempotent 15-minute refinement of weather observations."""

__version__ = "0.1.0"
