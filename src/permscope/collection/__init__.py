"""
Activity collection for Permscope.

Queries an activity log for an application's distinct API calls, bisecting
oversized queries into smaller windows.

Features:
- Abstract activity log interface
- Size-aware window bisection with a one-day floor
- Log Analytics backend for Microsoft Graph activity logs
"""

from permscope.collection.base import (
    ActivityLog,
    ActivityQueryError,
    CollectionResult,
    CollectionStatus,
    ResponseSizeExceededError,
)
from permscope.collection.collector import (
    DEFAULT_MIN_WINDOW,
    ResilientActivityCollector,
    merge_activities,
)
from permscope.collection.log_analytics import (
    LogAnalyticsActivityLog,
    is_size_exceeded,
    quote_kql_string,
)

__all__ = [
    # Base classes
    "ActivityLog",
    "ActivityQueryError",
    "CollectionResult",
    "CollectionStatus",
    "ResponseSizeExceededError",
    # Collector
    "DEFAULT_MIN_WINDOW",
    "ResilientActivityCollector",
    "merge_activities",
    # Log Analytics
    "LogAnalyticsActivityLog",
    "is_size_exceeded",
    "quote_kql_string",
]
