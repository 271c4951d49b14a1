"""
Least-privilege analysis pipeline for Permscope.

Ties the stages together for each application: collect distinct activity,
canonicalize it, match it against the permission reference, select a
covering permission set and compare it with what the application holds.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from permscope.analysis.matcher import LeastPrivilegeMatcher
from permscope.analysis.selector import OptimalPermissionSelector
from permscope.collection.base import ActivityLog, CollectionStatus
from permscope.collection.collector import ResilientActivityCollector
from permscope.config.analysis_config import AnalysisConfiguration
from permscope.models.activity import ActivityKey, ActivityWindow, CanonicalActivity, RawActivity
from permscope.models.application import AnalysisStatus, Application, ApplicationAnalysis
from permscope.observability.logging import get_logger
from permscope.permissions.index import PermissionMapIndex
from permscope.scheduling.scheduler import BoundedCollectionScheduler, ScheduleProgress

logger = logging.getLogger(__name__)
events = get_logger(__name__)


@dataclass
class AnalysisRun:
    """
    Results of analyzing a batch of applications.

    Attributes:
        results: Per-application analyses, in completion order
        total_applications: Applications submitted
        stalled: Whether the batch stopped waiting before every result arrived
        pending_app_ids: Applications abandoned when the batch stalled
        started_at: When the batch started
        completed_at: When the batch ended
    """

    results: list[ApplicationAnalysis] = field(default_factory=list)
    total_applications: int = 0
    stalled: bool = False
    pending_app_ids: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    def count(self, status: AnalysisStatus) -> int:
        """Number of analyses with the given status."""
        return sum(1 for r in self.results if r.status == status)

    @property
    def completed_count(self) -> int:
        """Applications with a recommendation."""
        return self.count(AnalysisStatus.COMPLETED)

    @property
    def no_activity_count(self) -> int:
        """Applications with no observed activity."""
        return self.count(AnalysisStatus.NO_ACTIVITY)

    @property
    def failed_count(self) -> int:
        """Applications whose analysis failed."""
        return self.count(AnalysisStatus.FAILED)

    @property
    def status_counts(self) -> dict[str, int]:
        """Analyses per status value."""
        return {status.value: self.count(status) for status in AnalysisStatus}

    def get(self, app_id: str) -> ApplicationAnalysis | None:
        """Get the analysis for an application, if one arrived."""
        for result in self.results:
            if result.application.app_id == app_id:
                return result
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_applications": self.total_applications,
            "stalled": self.stalled,
            "pending_app_ids": self.pending_app_ids,
            "status_counts": self.status_counts,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "results": [r.to_dict() for r in self.results],
        }


def canonicalize_activities(raw_activities: Iterable[RawActivity]) -> list[CanonicalActivity]:
    """
    Canonicalize raw rows, dropping non-Graph calls and duplicate keys.

    Args:
        raw_activities: Rows from the activity log

    Returns:
        Distinct analyzable activities in first-seen order
    """
    seen: set[ActivityKey] = set()
    activities: list[CanonicalActivity] = []

    for raw in raw_activities:
        activity = CanonicalActivity.from_raw(raw)
        if not activity.is_analyzable:
            logger.debug(f"Skipping non-Graph activity: {raw.method} {raw.uri}")
            continue
        if activity.key in seen:
            continue
        seen.add(activity.key)
        activities.append(activity)

    return activities


class LeastPrivilegeAnalyzer:
    """
    Recommends a minimal Application permission set per application.

    The permission index is shared read-only across workers. Each call to
    ``analyze_application`` builds its own collector, so concurrent
    analyses share no mutable state.

    Example:
        >>> index = PermissionMapIndex.from_documents({"v1.0": v1_docs})
        >>> analyzer = LeastPrivilegeAnalyzer(index, LogAnalyticsActivityLog(workspace_id))
        >>> run = analyzer.analyze_applications(applications)
        >>> for analysis in run.results:
        ...     print(analysis.application.label, analysis.selection.selected_names)
    """

    def __init__(
        self,
        index: PermissionMapIndex,
        activity_log: ActivityLog,
        config: AnalysisConfiguration | None = None,
    ) -> None:
        """
        Initialize the analyzer.

        Args:
            index: Permission map index
            activity_log: Log store queried for activity
            config: Analysis configuration (defaults if omitted)
        """
        self._index = index
        self._activity_log = activity_log
        self._config = config or AnalysisConfiguration()
        self._matcher = LeastPrivilegeMatcher(index)
        self._selector = OptimalPermissionSelector()
        self._progress_callbacks: list[Callable[[ScheduleProgress], None]] = []
        self._scheduler: BoundedCollectionScheduler | None = None

    @property
    def config(self) -> AnalysisConfiguration:
        """Active configuration."""
        return self._config

    def add_progress_callback(self, callback: Callable[[ScheduleProgress], None]) -> None:
        """Add a callback for batch progress updates."""
        self._progress_callbacks.append(callback)

    def get_progress(self) -> ScheduleProgress | None:
        """Get progress of the running or most recent batch."""
        if self._scheduler is None:
            return None
        return self._scheduler.get_progress()

    def analyze_activities(
        self,
        application: Application,
        raw_activities: Iterable[RawActivity],
    ) -> ApplicationAnalysis:
        """
        Analyze already-collected activity for one application.

        Args:
            application: Application the activity belongs to
            raw_activities: Distinct rows from the activity log

        Returns:
            Analysis with matches, selection and grant delta
        """
        analysis = ApplicationAnalysis(application=application)

        analysis.activity = canonicalize_activities(raw_activities)
        analysis.activity_permissions = self._matcher.match_all(analysis.activity)
        analysis.selection = self._selector.select(analysis.activity_permissions)
        analysis.status = (
            AnalysisStatus.COMPLETED if analysis.activity else AnalysisStatus.NO_ACTIVITY
        )
        analysis.completed_at = datetime.now(timezone.utc)
        return analysis

    def analyze_application(
        self,
        application: Application,
        window: ActivityWindow | None = None,
    ) -> ApplicationAnalysis:
        """
        Collect and analyze activity for one application.

        Args:
            application: Application to analyze
            window: Query window (the configured lookback if omitted)

        Returns:
            Analysis; a failed collection yields a failed analysis
        """
        start_time = time.time()
        started_at = datetime.now(timezone.utc)
        window = window or ActivityWindow.lookback(
            self._config.lookback_days,
            self._config.max_entries,
        )

        events.analysis_started(
            application.app_id,
            window.start.isoformat(),
            window.end.isoformat(),
        )

        collector = ResilientActivityCollector(
            self._activity_log,
            min_window=self._config.min_window,
        )
        collection = collector.collect(application.app_id, window)

        if collection.status == CollectionStatus.FAILED:
            events.application_failed(application.app_id, collection.error)
            analysis = ApplicationAnalysis.failed(application, collection.error)
            analysis.started_at = started_at
            analysis.windows_queried = collection.windows_queried
            return analysis

        analysis = self.analyze_activities(application, collection.activities)
        analysis.started_at = started_at
        analysis.windows_queried = collection.windows_queried
        analysis.dropped_windows = len(collection.dropped_windows)

        if collection.is_partial:
            logger.warning(
                f"{analysis.dropped_windows} oversized windows skipped for "
                f"{application.label}; recommendation may be incomplete"
            )

        events.analysis_completed(
            application.app_id,
            analysis.status.value,
            len(analysis.activity),
            len(analysis.optimal_permissions),
            len(analysis.unmatched_activities),
            time.time() - start_time,
        )
        return analysis

    def analyze_applications(self, applications: Iterable[Application]) -> AnalysisRun:
        """
        Analyze many applications through the bounded worker pool.

        Args:
            applications: Applications to analyze

        Returns:
            Batch results, including any applications abandoned on stall
        """
        scheduler = self._scheduler = BoundedCollectionScheduler(
            self.analyze_application,
            max_workers=self._config.max_workers,
            stall_timeout=self._config.stall_timeout_seconds,
        )
        for callback in self._progress_callbacks:
            scheduler.add_progress_callback(callback)

        outcome = scheduler.run(applications)

        run = AnalysisRun(
            results=outcome.results,
            total_applications=outcome.total_submitted,
            stalled=outcome.stalled,
            pending_app_ids=outcome.pending_app_ids,
            started_at=outcome.started_at,
            completed_at=outcome.completed_at,
        )

        events.batch_completed(
            run.total_applications,
            run.completed_count + run.no_activity_count,
            run.failed_count,
            run.stalled,
        )
        return run
