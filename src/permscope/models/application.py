"""
Application models for Permscope.

An application is the unit of work: its activity is collected, matched and
reduced to a recommended permission set, which is compared against the
permissions it currently holds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from permscope.models.activity import CanonicalActivity
from permscope.models.permission import MatchResult, SelectedPermission, SelectionResult


class AnalysisStatus(Enum):
    """Outcome of analyzing one application."""

    COMPLETED = "completed"
    NO_ACTIVITY = "no_activity"
    FAILED = "failed"


@dataclass
class Application:
    """
    An application to analyze.

    Attributes:
        app_id: Application (client) ID; scopes activity log queries
        display_name: Human-readable name
        service_principal_id: Object ID of the service principal
        current_permissions: Application permission names currently granted
    """

    app_id: str
    display_name: str = ""
    service_principal_id: str = ""
    current_permissions: list[str] = field(default_factory=list)

    @property
    def label(self) -> str:
        """Name for log messages."""
        if self.display_name:
            return f"{self.display_name} ({self.app_id})"
        return self.app_id

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "app_id": self.app_id,
            "display_name": self.display_name,
            "service_principal_id": self.service_principal_id,
            "current_permissions": self.current_permissions,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Application:
        """Create from dictionary."""
        return cls(
            app_id=data["app_id"],
            display_name=data.get("display_name", ""),
            service_principal_id=data.get("service_principal_id", ""),
            current_permissions=list(data.get("current_permissions", [])),
        )


@dataclass
class ApplicationAnalysis:
    """
    Per-application result handed to reporting.

    Attributes:
        application: The analyzed application
        status: Analysis outcome
        activity: Distinct canonical activities observed
        activity_permissions: Match result for each activity
        selection: Greedy covering selection
        error: Failure description when status is FAILED
        started_at: When analysis started
        completed_at: When analysis completed
        windows_queried: Activity log queries issued
        dropped_windows: Windows abandoned because they stayed oversized
    """

    application: Application
    status: AnalysisStatus = AnalysisStatus.COMPLETED
    activity: list[CanonicalActivity] = field(default_factory=list)
    activity_permissions: list[MatchResult] = field(default_factory=list)
    selection: SelectionResult = field(default_factory=SelectionResult)
    error: str = ""
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None
    windows_queried: int = 0
    dropped_windows: int = 0

    @classmethod
    def failed(cls, application: Application, error: str) -> ApplicationAnalysis:
        """Create a failure-annotated result."""
        now = datetime.now(timezone.utc)
        return cls(
            application=application,
            status=AnalysisStatus.FAILED,
            error=error,
            started_at=now,
            completed_at=now,
        )

    @property
    def is_success(self) -> bool:
        """Whether analysis produced a usable result."""
        return self.status != AnalysisStatus.FAILED

    @property
    def optimal_permissions(self) -> list[SelectedPermission]:
        """Recommended permissions in selection order."""
        return self.selection.selected

    @property
    def unmatched_activities(self) -> list[CanonicalActivity]:
        """Activities the recommendation could not explain."""
        return self.selection.unmatched_activities

    @property
    def matched_all_activity(self) -> bool:
        """Whether the recommendation explains all observed activity."""
        return self.is_success and self.selection.matched_all

    @property
    def excess_permissions(self) -> list[str]:
        """Granted permissions the observed activity does not need."""
        if not self.is_success:
            return []
        recommended = set(self.selection.selected_names)
        return sorted(
            {p for p in self.application.current_permissions if p not in recommended}
        )

    @property
    def missing_permissions(self) -> list[str]:
        """Recommended permissions the application is not granted."""
        if not self.is_success:
            return []
        granted = set(self.application.current_permissions)
        return [p for p in self.selection.selected_names if p not in granted]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "application": self.application.to_dict(),
            "status": self.status.value,
            "error": self.error,
            "activity": [a.to_dict() for a in self.activity],
            "activity_permissions": [m.to_dict() for m in self.activity_permissions],
            "optimal_permissions": [s.to_dict() for s in self.optimal_permissions],
            "unmatched_activities": [a.to_dict() for a in self.unmatched_activities],
            "matched_all_activity": self.matched_all_activity,
            "total_activities": self.selection.total_activities,
            "matched_activities": self.selection.matched_activities,
            "excess_permissions": self.excess_permissions,
            "missing_permissions": self.missing_permissions,
            "windows_queried": self.windows_queried,
            "dropped_windows": self.dropped_windows,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
