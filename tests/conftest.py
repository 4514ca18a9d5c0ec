"""Shared fixtures for the backfill test suite."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import pytest

from observation_backfill.config import Settings
from observation_backfill.models.query import QueryContext
from observation_backfill.telemetry.profiling import ProfileCollector
from fakes import FIXED_NOW, FakeQueryEngine, InMemoryStorage


@pytest.fixture()
def settings() -> Settings:
    """Settings isolated from the environment, with instant polling."""
    return Settings(
        _env_file=None,
        poll_delay_ms=0,
        max_retries=0,
        retry_backoff_base=0.01,
        refined_start_date=None,
        refined_end_date=None,
    )


@pytest.fixture()
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture()
def engine() -> FakeQueryEngine:
    return FakeQueryEngine()


@pytest.fixture()
def query_context() -> QueryContext:
    return QueryContext(
        database="tempest_weather",
        output_location="s3://weather-tempest-records/queries/",
        workgroup="primary",
    )


@pytest.fixture()
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture(autouse=True)
def _reset_profile_collector():
    ProfileCollector.reset()
    yield
    ProfileCollector.reset()
