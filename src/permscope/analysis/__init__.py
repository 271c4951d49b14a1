"""
Analysis for Permscope.

Matches canonical activity to least-privileged permissions and reduces it to
a covering permission set per application.
"""

from permscope.analysis.matcher import LeastPrivilegeMatcher
from permscope.analysis.selector import OptimalPermissionSelector
from permscope.analysis.analyzer import (
    AnalysisRun,
    LeastPrivilegeAnalyzer,
    canonicalize_activities,
)

__all__ = [
    "AnalysisRun",
    "LeastPrivilegeAnalyzer",
    "LeastPrivilegeMatcher",
    "OptimalPermissionSelector",
    "canonicalize_activities",
]
