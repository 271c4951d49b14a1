"""
Unit tests for the bounded collection scheduler.

Tests the worker pool width, per-application failure isolation, the
stall timeout and progress reporting.
"""

from __future__ import annotations

import threading
import time

import pytest

from permscope.models import AnalysisStatus, Application, ApplicationAnalysis
from permscope.scheduling import (
    BoundedCollectionScheduler,
    ScheduleProgress,
    ScheduleResult,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def applications():
    """Create sample applications."""
    return [Application(app_id=f"app-{i}", display_name=f"App {i}") for i in range(6)]


def succeed(application: Application) -> ApplicationAnalysis:
    """Process function returning a completed analysis."""
    return ApplicationAnalysis(application=application, status=AnalysisStatus.COMPLETED)


# =============================================================================
# ScheduleProgress Tests
# =============================================================================


class TestScheduleProgress:
    """Tests for ScheduleProgress."""

    def test_defaults(self) -> None:
        """Test default progress."""
        progress = ScheduleProgress()

        assert progress.total_applications == 0
        assert progress.progress_percent == 0.0
        assert progress.is_complete

    def test_counts(self) -> None:
        """Test derived counts."""
        progress = ScheduleProgress(
            total_applications=4,
            completed_applications=2,
            failed_applications=1,
        )

        assert progress.finished_applications == 3
        assert progress.pending_applications == 1
        assert progress.progress_percent == 75.0
        assert not progress.is_complete

    def test_to_dict(self) -> None:
        """Test progress serialization."""
        data = ScheduleProgress(total_applications=2, completed_applications=1).to_dict()

        assert data["pending_applications"] == 1
        assert data["progress_percent"] == 50.0
        assert data["estimated_completion"] is None


# =============================================================================
# BoundedCollectionScheduler Tests
# =============================================================================


class TestBoundedCollectionScheduler:
    """Tests for BoundedCollectionScheduler."""

    def test_invalid_arguments(self) -> None:
        """Test width and timeout are validated."""
        with pytest.raises(ValueError):
            BoundedCollectionScheduler(succeed, max_workers=0)
        with pytest.raises(ValueError):
            BoundedCollectionScheduler(succeed, stall_timeout=0)

    def test_defaults(self) -> None:
        """Test default width and stall timeout."""
        scheduler = BoundedCollectionScheduler(succeed)

        assert scheduler.max_workers == 10
        assert scheduler.stall_timeout == 300.0

    def test_runs_all_applications(self, applications) -> None:
        """Test every application gets a result."""
        scheduler = BoundedCollectionScheduler(succeed, max_workers=3, stall_timeout=5)

        outcome = scheduler.run(applications)

        assert isinstance(outcome, ScheduleResult)
        assert outcome.total_submitted == 6
        assert outcome.completed == 6
        assert not outcome.stalled
        assert outcome.pending_app_ids == []
        assert sorted(r.application.app_id for r in outcome.results) == sorted(
            a.app_id for a in applications
        )
        assert outcome.completed_at is not None

    def test_empty_batch(self) -> None:
        """Test an empty batch returns immediately."""
        outcome = BoundedCollectionScheduler(succeed).run([])

        assert outcome.results == []
        assert outcome.total_submitted == 0
        assert outcome.completed_at is not None

    def test_failure_isolated(self, applications) -> None:
        """Test one application raising does not affect the others."""

        def process(application: Application) -> ApplicationAnalysis:
            if application.app_id == "app-2":
                raise RuntimeError("token expired")
            return succeed(application)

        outcome = BoundedCollectionScheduler(process, max_workers=2, stall_timeout=5).run(
            applications
        )

        assert outcome.completed == 6
        assert outcome.failure_count == 1
        failed = [r for r in outcome.results if r.status == AnalysisStatus.FAILED]
        assert failed[0].application.app_id == "app-2"
        assert "RuntimeError: token expired" in failed[0].error

    def test_width_bounded(self, applications) -> None:
        """Test no more than max_workers applications run at once."""
        lock = threading.Lock()
        active = 0
        peak = 0

        def process(application: Application) -> ApplicationAnalysis:
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.05)
            with lock:
                active -= 1
            return succeed(application)

        outcome = BoundedCollectionScheduler(process, max_workers=2, stall_timeout=5).run(
            applications
        )

        assert outcome.completed == 6
        assert 1 <= peak <= 2

    def test_stall_returns_partial_results(self, applications) -> None:
        """Test the coordinator stops waiting after the stall timeout."""
        release = threading.Event()

        def process(application: Application) -> ApplicationAnalysis:
            if application.app_id == "app-1":
                release.wait(timeout=10)
            return succeed(application)

        scheduler = BoundedCollectionScheduler(process, max_workers=2, stall_timeout=0.5)
        try:
            outcome = scheduler.run(applications)
        finally:
            release.set()

        assert outcome.stalled
        assert outcome.pending_app_ids == ["app-1"]
        assert outcome.completed == 5
        assert "app-1" not in {r.application.app_id for r in outcome.results}

    def test_progress_callbacks(self, applications) -> None:
        """Test progress callbacks receive updates and errors are contained."""
        updates: list[int] = []

        def record(progress: ScheduleProgress) -> None:
            updates.append(progress.finished_applications)

        def broken(progress: ScheduleProgress) -> None:
            raise ValueError("callback failure")

        scheduler = BoundedCollectionScheduler(succeed, max_workers=2, stall_timeout=5)
        scheduler.add_progress_callback(broken)
        scheduler.add_progress_callback(record)

        scheduler.run(applications)

        assert updates
        assert updates[-1] == 6
        progress = scheduler.get_progress()
        assert progress.is_complete
        assert progress.completed_applications == 6
        assert progress.current_applications == []

    def test_to_dict(self, applications) -> None:
        """Test schedule result serialization."""
        outcome = BoundedCollectionScheduler(succeed, max_workers=2, stall_timeout=5).run(
            applications[:2]
        )

        data = outcome.to_dict()

        assert data["total_submitted"] == 2
        assert data["completed"] == 2
        assert data["failed"] == 0
        assert data["stalled"] is False
        assert data["duration_seconds"] is not None
