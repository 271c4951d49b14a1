"""
Scheduling for Permscope.

Runs per-application analysis through a bounded worker pool with stall
detection.
"""

from permscope.scheduling.scheduler import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_STALL_TIMEOUT,
    BoundedCollectionScheduler,
    ScheduleProgress,
    ScheduleResult,
)

__all__ = [
    "DEFAULT_MAX_WORKERS",
    "DEFAULT_STALL_TIMEOUT",
    "BoundedCollectionScheduler",
    "ScheduleProgress",
    "ScheduleResult",
]
