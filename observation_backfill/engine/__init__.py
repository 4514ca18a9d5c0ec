"""Query engine adapters and the execution client that drives them.

The Databricks adapter is imported from
:mod:`observation_backfill.engine.databricks_engine` directly so that the SDK
is only loaded when that engine is configured.
"""

from __future__ import annotations

from observation_backfill.engine.athena_engine import AthenaQueryEngine
from observation_backfill.engine.base import QueryEngine
from observation_backfill.engine.client import QueryExecutionClient
from observation_backfill.engine.retry import RetryConfig, compute_delay

__all__ = [
    "AthenaQueryEngine",
    "QueryEngine",
    "QueryExecutionClient",
    "RetryConfig",
    "compute_delay",
]
