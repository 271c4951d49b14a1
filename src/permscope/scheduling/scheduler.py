"""
Bounded collection scheduler for Permscope.

Fans application analysis across a fixed-width pool of worker threads fed
from a work queue. A single coordinator drains the results queue and gives
up waiting when no result arrives within the stall timeout, returning
whatever has completed.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

from permscope.models.application import (
    AnalysisStatus,
    Application,
    ApplicationAnalysis,
)
from permscope.observability.logging import get_logger

logger = logging.getLogger(__name__)
events = get_logger(__name__)

DEFAULT_MAX_WORKERS = 10
DEFAULT_STALL_TIMEOUT = 300.0


@dataclass
class ScheduleProgress:
    """
    Real-time progress of a scheduled batch.

    Attributes:
        total_applications: Applications submitted
        completed_applications: Applications analyzed successfully
        failed_applications: Applications whose analysis failed
        current_applications: Applications currently being analyzed
        started_at: When the batch started
        estimated_completion: Estimated completion time
    """

    total_applications: int = 0
    completed_applications: int = 0
    failed_applications: int = 0
    current_applications: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    estimated_completion: datetime | None = None

    @property
    def finished_applications(self) -> int:
        """Applications with a result, successful or not."""
        return self.completed_applications + self.failed_applications

    @property
    def pending_applications(self) -> int:
        """Applications without a result yet."""
        return self.total_applications - self.finished_applications

    @property
    def progress_percent(self) -> float:
        """Get progress as percentage."""
        if self.total_applications == 0:
            return 0.0
        return self.finished_applications / self.total_applications * 100

    @property
    def is_complete(self) -> bool:
        """Check if all applications have a result."""
        return self.pending_applications == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_applications": self.total_applications,
            "completed_applications": self.completed_applications,
            "failed_applications": self.failed_applications,
            "pending_applications": self.pending_applications,
            "current_applications": list(self.current_applications),
            "progress_percent": self.progress_percent,
            "started_at": self.started_at.isoformat(),
            "estimated_completion": self.estimated_completion.isoformat()
            if self.estimated_completion
            else None,
            "is_complete": self.is_complete,
        }


@dataclass
class ScheduleResult:
    """
    Outcome of a scheduled batch.

    Attributes:
        results: Analyses received, in completion order
        total_submitted: Applications submitted
        stalled: Whether the coordinator gave up waiting
        pending_app_ids: Applications without a result when the batch ended
        started_at: When the batch started
        completed_at: When the batch ended
    """

    results: list[ApplicationAnalysis] = field(default_factory=list)
    total_submitted: int = 0
    stalled: bool = False
    pending_app_ids: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None

    @property
    def completed(self) -> int:
        """Number of applications with a result."""
        return len(self.results)

    @property
    def failure_count(self) -> int:
        """Number of failed analyses."""
        return sum(1 for r in self.results if r.status == AnalysisStatus.FAILED)

    @property
    def duration(self) -> timedelta | None:
        """Get batch duration."""
        if self.completed_at:
            return self.completed_at - self.started_at
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_submitted": self.total_submitted,
            "completed": self.completed,
            "failed": self.failure_count,
            "stalled": self.stalled,
            "pending_app_ids": self.pending_app_ids,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration.total_seconds() if self.duration else None,
        }


class BoundedCollectionScheduler:
    """
    Producer/consumer scheduler for per-application analysis.

    Applications go onto a work queue; ``max_workers`` threads each take one
    application at a time and put its analysis on a results queue. A worker
    exception becomes a failed analysis for that application only. The
    coordinator stops waiting after ``stall_timeout`` seconds without a new
    result; workers still busy at that point are abandoned and their results
    discarded.

    Example:
        >>> scheduler = BoundedCollectionScheduler(analyzer.analyze_application)
        >>> outcome = scheduler.run(applications)
        >>> print(f"{outcome.completed}/{outcome.total_submitted} analyzed")
    """

    def __init__(
        self,
        process: Callable[[Application], ApplicationAnalysis],
        max_workers: int = DEFAULT_MAX_WORKERS,
        stall_timeout: float = DEFAULT_STALL_TIMEOUT,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            process: Function analyzing one application
            max_workers: Number of worker threads
            stall_timeout: Seconds to wait for the next result before giving up
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if stall_timeout <= 0:
            raise ValueError("stall_timeout must be positive")

        self._process = process
        self._max_workers = max_workers
        self._stall_timeout = stall_timeout
        self._lock = threading.Lock()
        self._progress: ScheduleProgress | None = None
        self._progress_callbacks: list[Callable[[ScheduleProgress], None]] = []

    @property
    def max_workers(self) -> int:
        """Worker pool width."""
        return self._max_workers

    @property
    def stall_timeout(self) -> float:
        """Seconds the coordinator waits for a result."""
        return self._stall_timeout

    def add_progress_callback(self, callback: Callable[[ScheduleProgress], None]) -> None:
        """Add a callback for progress updates."""
        self._progress_callbacks.append(callback)

    def get_progress(self) -> ScheduleProgress | None:
        """Get current batch progress."""
        return self._progress

    def run(self, applications: Iterable[Application]) -> ScheduleResult:
        """
        Analyze applications through the worker pool.

        Args:
            applications: Applications to analyze

        Returns:
            Results received before completion or stall
        """
        submitted = list(applications)
        outcome = ScheduleResult(total_submitted=len(submitted))
        self._progress = ScheduleProgress(
            total_applications=len(submitted),
            started_at=outcome.started_at,
        )

        if not submitted:
            outcome.completed_at = datetime.now(timezone.utc)
            return outcome

        work: queue.Queue = queue.Queue()
        results: queue.Queue = queue.Queue()
        stop = threading.Event()

        for index, application in enumerate(submitted):
            work.put((index, application))

        width = min(self._max_workers, len(submitted))
        workers = [
            threading.Thread(
                target=self._worker_loop,
                args=(work, results, stop),
                name=f"permscope-worker-{i}",
                daemon=True,
            )
            for i in range(width)
        ]
        for worker in workers:
            worker.start()

        logger.info(f"Analyzing {len(submitted)} applications with {width} workers")
        self._notify_progress()

        finished: set[int] = set()
        while len(finished) < len(submitted):
            try:
                index, analysis = results.get(timeout=self._stall_timeout)
            except queue.Empty:
                outcome.stalled = True
                stop.set()
                events.collection_stalled(self._stall_timeout, len(finished), len(submitted))
                break

            finished.add(index)
            outcome.results.append(analysis)
            self._record_result(analysis)

        if not outcome.stalled:
            for worker in workers:
                worker.join(timeout=1.0)

        outcome.pending_app_ids = [
            application.app_id
            for index, application in enumerate(submitted)
            if index not in finished
        ]
        outcome.completed_at = datetime.now(timezone.utc)

        with self._lock:
            self._progress.current_applications = []
        self._notify_progress()

        logger.debug(
            f"Batch finished: {outcome.completed}/{outcome.total_submitted} analyzed, "
            f"{outcome.failure_count} failed"
            + (f", {len(outcome.pending_app_ids)} abandoned after stall" if outcome.stalled else "")
        )
        return outcome

    def _worker_loop(
        self,
        work: queue.Queue,
        results: queue.Queue,
        stop: threading.Event,
    ) -> None:
        """Pull applications until the work queue is empty or the batch stops."""
        while not stop.is_set():
            try:
                index, application = work.get_nowait()
            except queue.Empty:
                return

            with self._lock:
                if self._progress:
                    self._progress.current_applications.append(application.app_id)
            self._notify_progress()

            try:
                analysis = self._process(application)
            except Exception as e:
                logger.error(f"Analysis failed for {application.label}: {type(e).__name__}: {e}")
                analysis = ApplicationAnalysis.failed(application, f"{type(e).__name__}: {e}")

            results.put((index, analysis))
            work.task_done()

    def _record_result(self, analysis: ApplicationAnalysis) -> None:
        """Update progress for a received result."""
        with self._lock:
            if self._progress:
                if analysis.status == AnalysisStatus.FAILED:
                    self._progress.failed_applications += 1
                else:
                    self._progress.completed_applications += 1
                app_id = analysis.application.app_id
                if app_id in self._progress.current_applications:
                    self._progress.current_applications.remove(app_id)
                self._update_estimated_completion()

        self._notify_progress()

    def _update_estimated_completion(self) -> None:
        """Update estimated completion time based on current progress."""
        if not self._progress:
            return

        finished = self._progress.finished_applications
        if finished == 0:
            return

        now = datetime.now(timezone.utc)
        avg_per_application = (now - self._progress.started_at) / finished
        self._progress.estimated_completion = now + (
            avg_per_application * self._progress.pending_applications
        )

    def _notify_progress(self) -> None:
        """Notify progress callbacks."""
        if not self._progress:
            return

        for callback in self._progress_callbacks:
            try:
                callback(self._progress)
            except Exception as e:
                logger.warning(f"Progress callback error: {e}")
