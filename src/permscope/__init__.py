"""
Permscope - Least-Privilege Microsoft Graph Permission Recommender

Answers one question per application:
"Which Application permissions does this app actually need?"

Key Features:
- Read-only: only queries activity logs, never changes grants
- Activity-based: recommendations come from observed Graph calls
- Least-privilege first: prefers the narrowest permission per endpoint
- Size-aware collection: oversized log queries are split into smaller windows

Quick Start:
    >>> from permscope import LeastPrivilegeAnalyzer, PermissionMapIndex
    >>> from permscope.collection import LogAnalyticsActivityLog
    >>>
    >>> index = PermissionMapIndex.from_documents({"v1.0": v1_docs, "beta": beta_docs})
    >>> analyzer = LeastPrivilegeAnalyzer(index, LogAnalyticsActivityLog(workspace_id))
    >>> run = analyzer.analyze_applications(applications)
    >>> for analysis in run.results:
    ...     print(analysis.application.label, analysis.excess_permissions)
"""

from __future__ import annotations

__version__ = "0.1.0"

# Core models
from permscope.models import (
    ActivityKey,
    ActivityWindow,
    AnalysisStatus,
    Application,
    ApplicationAnalysis,
    CanonicalActivity,
    EndpointEntry,
    MatchResult,
    PermissionDescriptor,
    RawActivity,
    ScopeType,
    SelectedPermission,
    SelectionResult,
)

# URI handling
from permscope.graph import canonicalize_uri

# Permission reference
from permscope.permissions import PermissionMapIndex

# Analysis
from permscope.analysis import (
    AnalysisRun,
    LeastPrivilegeAnalyzer,
    LeastPrivilegeMatcher,
    OptimalPermissionSelector,
)

# Collection
from permscope.collection import (
    ActivityLog,
    ActivityQueryError,
    ResilientActivityCollector,
    ResponseSizeExceededError,
)

# Scheduling
from permscope.scheduling import BoundedCollectionScheduler

# Configuration
from permscope.config import AnalysisConfiguration, load_config_from_env

__all__ = [
    "__version__",
    # Models
    "ActivityKey",
    "ActivityWindow",
    "AnalysisStatus",
    "Application",
    "ApplicationAnalysis",
    "CanonicalActivity",
    "EndpointEntry",
    "MatchResult",
    "PermissionDescriptor",
    "RawActivity",
    "ScopeType",
    "SelectedPermission",
    "SelectionResult",
    # URI handling
    "canonicalize_uri",
    # Permission reference
    "PermissionMapIndex",
    # Analysis
    "AnalysisRun",
    "LeastPrivilegeAnalyzer",
    "LeastPrivilegeMatcher",
    "OptimalPermissionSelector",
    # Collection
    "ActivityLog",
    "ActivityQueryError",
    "ResilientActivityCollector",
    "ResponseSizeExceededError",
    # Scheduling
    "BoundedCollectionScheduler",
    # Configuration
    "AnalysisConfiguration",
    "load_config_from_env",
]
