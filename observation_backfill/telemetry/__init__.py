"""Operation timing for planners and workers."""

from observation_backfill.telemetry.profiling import (
    ProfileCollector,
    ProfileResult,
    profile_operation,
)

__all__ = ["ProfileCollector", "ProfileResult", "profile_operation"]
