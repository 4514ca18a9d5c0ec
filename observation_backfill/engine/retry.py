"""Exponential backoff with optional jitter for transient engine errors.

The poll loop in :class:`~observation_backfill.engine.client.QueryExecutionClient`
counts consecutive failed state lookups against :class:`RetryConfig` and
sleeps :func:`compute_delay` between them, so its deadline checks still run
before every retry.
"""

from __future__ import annotations

import random

from pydantic import BaseModel, Field


class RetryConfig(BaseModel):
    """Tuneable parameters for retry behaviour."""

    max_retries: int = Field(
        default=3,
        ge=0,
        description="Maximum number of retry attempts before re-raising.",
    )
    base_delay: float = Field(
        default=2.0,
        gt=0.0,
        description="Base delay in seconds for exponential backoff.",
    )
    max_delay: float = Field(
        default=60.0,
        gt=0.0,
        description="Upper bound on delay in seconds.",
    )
    jitter: bool = Field(
        default=True,
        description="When enabled, randomise the delay within [0.5x, 1.5x].",
    )


def compute_delay(attempt: int, config: RetryConfig) -> float:
    """Return the backoff delay in seconds before retry number *attempt* (0-based)."""
    delay: float = min(config.base_delay * (2**attempt), config.max_delay)
    if config.jitter:
        delay *= random.uniform(0.5, 1.5)  # noqa: S311
    return delay
