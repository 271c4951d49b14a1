"""
Data models for Permscope.

Activities, permission reference records, matching and selection results,
and the per-application analysis handed to reporting.
"""

from permscope.models.activity import (
    ActivityKey,
    ActivityWindow,
    CanonicalActivity,
    RawActivity,
)
from permscope.models.permission import (
    EndpointEntry,
    MatchResult,
    PermissionDescriptor,
    ScopeType,
    SelectedPermission,
    SelectionResult,
)
from permscope.models.application import (
    AnalysisStatus,
    Application,
    ApplicationAnalysis,
)

__all__ = [
    # Activity
    "ActivityKey",
    "ActivityWindow",
    "CanonicalActivity",
    "RawActivity",
    # Permissions
    "EndpointEntry",
    "MatchResult",
    "PermissionDescriptor",
    "ScopeType",
    "SelectedPermission",
    "SelectionResult",
    # Applications
    "AnalysisStatus",
    "Application",
    "ApplicationAnalysis",
]
