"""
Base classes for activity collection.

Provides the abstract activity log interface queried by the collector, the
errors it raises, and the per-application collection result.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from permscope.models.activity import ActivityWindow, RawActivity


class ActivityQueryError(Exception):
    """Raised when an activity log query fails."""

    def __init__(self, message: str, code: str = "") -> None:
        super().__init__(message)
        self.code = code


class ResponseSizeExceededError(ActivityQueryError):
    """Raised when the log store rejects a query because the response is too large."""

    pass


class CollectionStatus(Enum):
    """Outcome of collecting one application's activity."""

    COMPLETED = "completed"
    NO_ACTIVITY = "no_activity"
    FAILED = "failed"


@dataclass
class CollectionResult:
    """
    Result of collecting activity for one principal.

    Attributes:
        principal_id: Identifier the queries were scoped to
        window: The requested window
        status: Collection outcome
        activities: Distinct activities across all queried windows
        windows_queried: Number of queries issued
        splits: Number of windows bisected after a size failure
        dropped_windows: Minimum-width windows abandoned while still oversized
        error: Failure description when status is FAILED
    """

    principal_id: str
    window: ActivityWindow
    status: CollectionStatus = CollectionStatus.COMPLETED
    activities: list[RawActivity] = field(default_factory=list)
    windows_queried: int = 0
    splits: int = 0
    dropped_windows: list[ActivityWindow] = field(default_factory=list)
    error: str = ""

    @property
    def is_success(self) -> bool:
        """Whether collection completed, with or without activity."""
        return self.status != CollectionStatus.FAILED

    @property
    def is_partial(self) -> bool:
        """Whether any window had to be abandoned."""
        return bool(self.dropped_windows)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "principal_id": self.principal_id,
            "window": self.window.to_dict(),
            "status": self.status.value,
            "activity_count": len(self.activities),
            "windows_queried": self.windows_queried,
            "splits": self.splits,
            "dropped_windows": [w.to_dict() for w in self.dropped_windows],
            "error": self.error,
        }


class ActivityLog(ABC):
    """
    Abstract base class for activity log stores.

    Implementations return the distinct successful (method, URI) pairs a
    principal called within a window. The store deduplicates before applying
    the row cap and strips query strings and duplicate slashes; identifier
    tokens are left in place.
    """

    store_name = "unknown"

    @abstractmethod
    def query_activity(
        self,
        principal_id: str,
        window: ActivityWindow,
    ) -> list[RawActivity]:
        """
        Query distinct activity for a principal.

        Args:
            principal_id: Stable identifier of the calling application
            window: Time range and row cap

        Returns:
            Distinct raw activities; empty when nothing matched

        Raises:
            ResponseSizeExceededError: If the response would be too large
            ActivityQueryError: If the query fails for any other reason
        """
        pass
