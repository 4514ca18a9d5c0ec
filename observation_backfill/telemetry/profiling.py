"""Timing instrumentation for planner and worker operations.

``@profile_operation(name)`` wraps a function with ``perf_counter_ns`` timing,
records the duration in a thread-safe :class:`ProfileCollector` and logs it
at DEBUG level.  Durations are recorded whether the call returns or raises.

Usage::

    from observation_backfill.telemetry.profiling import profile_operation

    @profile_operation("planner.partitions")
    def plan(...):
        ...

The collector keeps the last ``max_results`` durations per operation and
exposes ``get_stats()`` for p50/p95/mean aggregation, which the CLI prints
after a local run.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class ProfileResult:
    """One timed call."""

    operation: str
    duration_ms: float
    succeeded: bool


class ProfileCollector:
    """Thread-safe store of recent durations per operation name.

    Workers of a local run execute on a thread pool and record into the same
    collector, so every access goes through a lock.
    """

    _instance: ProfileCollector | None = None
    _lock_cls = threading.Lock()

    def __init__(self, max_results: int = 500) -> None:
        self._max_results = max_results
        self._data: dict[str, deque[ProfileResult]] = {}
        self._lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> ProfileCollector:
        """Return the process-wide collector, creating it if needed."""
        if cls._instance is None:
            with cls._lock_cls:
                if cls._instance is None:
                    cls._instance = ProfileCollector()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the process-wide collector (for testing)."""
        with cls._lock_cls:
            cls._instance = None

    def record(self, result: ProfileResult) -> None:
        with self._lock:
            if result.operation not in self._data:
                self._data[result.operation] = deque(maxlen=self._max_results)
            self._data[result.operation].append(result)

    def get_stats(self, operation: str) -> dict[str, Any] | None:
        """Aggregate the recorded calls of *operation*, or ``None`` if there are none."""
        with self._lock:
            results = self._data.get(operation)
            if not results:
                return None
            durations = sorted(r.duration_ms for r in results)
            failures = sum(1 for r in results if not r.succeeded)

        count = len(durations)
        return {
            "operation": operation,
            "count": count,
            "failures": failures,
            "mean_ms": round(sum(durations) / count, 3),
            "p50_ms": round(self._percentile(durations, 50), 3),
            "p95_ms": round(self._percentile(durations, 95), 3),
            "max_ms": round(durations[-1], 3),
        }

    def get_all_stats(self) -> list[dict[str, Any]]:
        """Stats for every tracked operation, sorted by name."""
        with self._lock:
            operations = sorted(self._data.keys())
        results = []
        for op in operations:
            stats = self.get_stats(op)
            if stats is not None:
                results.append(stats)
        return results

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    @staticmethod
    def _percentile(sorted_data: list[float], p: float) -> float:
        """Linear-interpolated p-th percentile of already sorted data."""
        if not sorted_data:
            return 0.0
        n = len(sorted_data)
        k = (p / 100.0) * (n - 1)
        floor_k = int(k)
        ceil_k = min(floor_k + 1, n - 1)
        frac = k - floor_k
        return sorted_data[floor_k] + frac * (sorted_data[ceil_k] - sorted_data[floor_k])


def profile_operation(name: str) -> Callable[[F], F]:
    """Decorator that times a function under the operation *name*."""

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_ns = time.perf_counter_ns()
            succeeded = False
            try:
                value = func(*args, **kwargs)
                succeeded = True
                return value
            finally:
                duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
                ProfileCollector.get_instance().record(
                    ProfileResult(
                        operation=name,
                        duration_ms=round(duration_ms, 3),
                        succeeded=succeeded,
                    )
                )
                logger.debug("PROFILE %s: %.3f ms", name, duration_ms)

        return wrapper  # type: ignore[return-value]

    return decorator
