"""
Resilient activity collector for Permscope.

Collects an application's distinct activity from an activity log that caps
response size. An oversized query is bisected at its temporal midpoint, each
half queried with half the row budget, and the halves recombined, down to a
minimum window width below which the slice is logged and skipped.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Iterable, NamedTuple

from permscope.collection.base import (
    ActivityLog,
    ActivityQueryError,
    CollectionResult,
    CollectionStatus,
    ResponseSizeExceededError,
)
from permscope.models.activity import ActivityWindow, RawActivity
from permscope.observability.logging import get_logger

logger = logging.getLogger(__name__)
events = get_logger(__name__)

DEFAULT_MIN_WINDOW = timedelta(days=1)


class _WindowOutcome(NamedTuple):
    """Immutable result of collecting one window and its sub-windows."""

    activities: tuple[RawActivity, ...]
    windows_queried: int
    splits: int
    dropped: tuple[ActivityWindow, ...]


def merge_activities(*groups: Iterable[RawActivity]) -> list[RawActivity]:
    """
    Union activity groups, keeping the first of each (method, URI) pair.

    Args:
        groups: Activity lists to merge

    Returns:
        Deduplicated activities in first-seen order
    """
    seen: set[tuple[str, str]] = set()
    merged: list[RawActivity] = []
    for group in groups:
        for activity in group:
            key = activity.dedupe_key
            if key in seen:
                continue
            seen.add(key)
            merged.append(activity)
    return merged


class ResilientActivityCollector:
    """
    Collects distinct activity for one principal with adaptive bisection.

    Failure policy:

    - Size exceeded: bisect and recurse; at the minimum window width, log
      and treat the slice as empty
    - Any other failure: no retry; the whole collection is reported failed
    - No rows: a successful, empty collection

    Example:
        >>> collector = ResilientActivityCollector(activity_log)
        >>> result = collector.collect(app_id, ActivityWindow.lookback(30, 100000))
        >>> print(f"{len(result.activities)} distinct calls")
    """

    def __init__(
        self,
        activity_log: ActivityLog,
        min_window: timedelta = DEFAULT_MIN_WINDOW,
    ) -> None:
        """
        Initialize the collector.

        Args:
            activity_log: Log store to query
            min_window: Width at which an oversized window is abandoned
        """
        self._activity_log = activity_log
        self._min_window = min_window

    @property
    def min_window(self) -> timedelta:
        """Width at which bisection stops."""
        return self._min_window

    def collect(self, principal_id: str, window: ActivityWindow) -> CollectionResult:
        """
        Collect distinct activity for a principal.

        Args:
            principal_id: Stable identifier of the application
            window: Requested time range and row cap

        Returns:
            Collection result; never raises for query failures
        """
        result = CollectionResult(principal_id=principal_id, window=window)

        try:
            outcome = self._collect_window(principal_id, window)
        except ActivityQueryError as e:
            result.status = CollectionStatus.FAILED
            result.error = f"Activity query failed: {e}"
            logger.error(f"Activity collection failed for {principal_id}: {e}")
            return result
        except Exception as e:
            result.status = CollectionStatus.FAILED
            result.error = f"Activity query failed: {type(e).__name__}: {e}"
            logger.error(f"Activity collection failed for {principal_id}: {type(e).__name__}: {e}")
            return result

        result.activities = merge_activities(outcome.activities)
        result.windows_queried = outcome.windows_queried
        result.splits = outcome.splits
        result.dropped_windows = list(outcome.dropped)
        result.status = (
            CollectionStatus.COMPLETED if result.activities else CollectionStatus.NO_ACTIVITY
        )

        logger.debug(
            f"Collected {len(result.activities)} distinct activities for {principal_id} "
            f"({result.windows_queried} queries, {result.splits} splits, "
            f"{len(result.dropped_windows)} dropped windows)"
        )
        return result

    def _collect_window(self, principal_id: str, window: ActivityWindow) -> _WindowOutcome:
        """Query one window, bisecting on size failure."""
        try:
            rows = self._activity_log.query_activity(principal_id, window)
        except ResponseSizeExceededError as e:
            if window.duration <= self._min_window:
                events.window_dropped(
                    principal_id,
                    window.start.isoformat(),
                    window.end.isoformat(),
                    str(e),
                )
                return _WindowOutcome((), 1, 0, (window,))

            first, second = window.split()
            events.window_split(
                principal_id,
                window.start.isoformat(),
                window.end.isoformat(),
                first.max_entries,
            )
            earlier = self._collect_window(principal_id, first)
            later = self._collect_window(principal_id, second)
            return _WindowOutcome(
                activities=tuple(merge_activities(earlier.activities, later.activities)),
                windows_queried=1 + earlier.windows_queried + later.windows_queried,
                splits=1 + earlier.splits + later.splits,
                dropped=earlier.dropped + later.dropped,
            )

        return _WindowOutcome(tuple(merge_activities(rows)), 1, 0, ())
