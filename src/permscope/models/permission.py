"""
Permission models for Permscope.

Defines permission descriptors from the endpoint reference, the endpoint
entries that hold them, and the results of matching activities to
permissions and selecting a covering set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from permscope.models.activity import ActivityKey, CanonicalActivity


class ScopeType(Enum):
    """Context a permission applies to."""

    APPLICATION = "Application"
    DELEGATED = "Delegated"

    @classmethod
    def parse(cls, value: Any) -> ScopeType:
        """
        Parse a scope type from a reference document value.

        Accepts the documented spellings ("Application", "Delegated") as well
        as the "DelegatedWork"/"DelegatedPersonal" variants, which are
        delegated scopes.
        """
        if isinstance(value, ScopeType):
            return value
        text = str(value or "").strip().lower()
        if text == "application":
            return cls.APPLICATION
        if text.startswith("delegated"):
            return cls.DELEGATED
        raise ValueError(f"Unknown scope type: {value!r}")


@dataclass(frozen=True)
class PermissionDescriptor:
    """
    A permission that authorizes an endpoint and method.

    Attributes:
        name: Permission name (e.g., User.Read.All)
        scope_type: Application or Delegated
        is_least_privileged: Whether the reference flags this as the
            narrowest permission for the endpoint
    """

    name: str
    scope_type: ScopeType
    is_least_privileged: bool = False

    @property
    def identity(self) -> tuple[str, ScopeType]:
        """Identity used for coverage: name and scope type."""
        return (self.name, self.scope_type)

    @property
    def is_application(self) -> bool:
        """Whether this is an app-only permission."""
        return self.scope_type == ScopeType.APPLICATION

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "scope_type": self.scope_type.value,
            "is_least_privileged": self.is_least_privileged,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PermissionDescriptor:
        """
        Create from a reference document entry.

        Accepts both this model's keys and the permission reference keys
        ("value", "scopeType", "isLeastPrivilege").
        """
        name = data.get("name") or data.get("value") or data.get("Name") or data.get("Value")
        if not name:
            raise ValueError(f"Permission entry has no name: {data!r}")

        scope = (
            data.get("scope_type")
            or data.get("scopeType")
            or data.get("ScopeType")
        )

        least = data.get("is_least_privileged")
        if least is None:
            least = data.get("isLeastPrivilege", data.get("isLeastPrivileged", False))

        return cls(
            name=str(name),
            scope_type=ScopeType.parse(scope),
            is_least_privileged=bool(least),
        )


@dataclass
class EndpointEntry:
    """
    Permission reference entry for one endpoint path in one API version.

    Attributes:
        canonical_path: Endpoint path as written in the reference
        version: API version ("v1.0" or "beta")
        methods: Permission descriptors per upper-cased HTTP method
    """

    canonical_path: str
    version: str
    methods: dict[str, list[PermissionDescriptor]] = field(default_factory=dict)

    def permissions_for(self, method: str) -> list[PermissionDescriptor] | None:
        """Get descriptors for a method, or None if the method is not listed."""
        return self.methods.get(method.upper())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "canonical_path": self.canonical_path,
            "version": self.version,
            "methods": {
                method: [p.to_dict() for p in permissions]
                for method, permissions in self.methods.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], version: str | None = None) -> EndpointEntry:
        """
        Create from a reference document entry.

        Accepts both ``{"canonical_path", "version", "methods"}`` and the
        reference document shape ``{"Endpoint", "Version", "Method"}``.
        Entries that fail to parse inside a method list are skipped.
        """
        path = data.get("canonical_path") or data.get("Endpoint") or data.get("endpoint")
        if not path:
            raise ValueError(f"Endpoint entry has no path: {data!r}")

        entry_version = version or data.get("version") or data.get("Version") or ""
        raw_methods = data.get("methods") or data.get("Method") or data.get("method") or {}

        methods: dict[str, list[PermissionDescriptor]] = {}
        for method, permissions in raw_methods.items():
            parsed: list[PermissionDescriptor] = []
            for item in permissions or []:
                if isinstance(item, PermissionDescriptor):
                    parsed.append(item)
                    continue
                try:
                    parsed.append(PermissionDescriptor.from_dict(item))
                except (ValueError, AttributeError):
                    continue
            methods[str(method).upper()] = parsed

        return cls(canonical_path=str(path), version=str(entry_version), methods=methods)


@dataclass
class MatchResult:
    """
    Result of matching one activity against the permission reference.

    Attributes:
        activity: The canonical activity
        matched_path: Reference path that matched, if any
        candidate_permissions: Application permissions that would authorize it
        is_matched: Whether a reference entry listed the activity's method
    """

    activity: CanonicalActivity
    matched_path: str | None = None
    candidate_permissions: list[PermissionDescriptor] = field(default_factory=list)
    is_matched: bool = False

    @property
    def key(self) -> ActivityKey:
        """Coverage key of the matched activity."""
        return self.activity.key

    @property
    def has_candidates(self) -> bool:
        """Whether at least one candidate permission was resolved."""
        return self.is_matched and bool(self.candidate_permissions)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "activity": self.activity.to_dict(),
            "matched_path": self.matched_path,
            "candidate_permissions": [p.to_dict() for p in self.candidate_permissions],
            "is_matched": self.is_matched,
        }


@dataclass
class SelectedPermission:
    """
    A permission chosen by the selector.

    Attributes:
        permission: The chosen permission
        marginal_coverage: Activities newly covered when it was chosen
        covered_activities: Keys of those newly covered activities
    """

    permission: PermissionDescriptor
    marginal_coverage: int
    covered_activities: list[ActivityKey] = field(default_factory=list)

    @property
    def name(self) -> str:
        """Permission name."""
        return self.permission.name

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "permission": self.permission.name,
            "scope_type": self.permission.scope_type.value,
            "is_least_privileged": self.permission.is_least_privileged,
            "activities_covered": self.marginal_coverage,
            "covered_activities": [str(k) for k in self.covered_activities],
        }


@dataclass
class SelectionResult:
    """
    Minimal covering permission set for one application.

    The set is a greedy approximation of minimum set cover and is not
    guaranteed to be the smallest possible.

    Attributes:
        selected: Chosen permissions in selection order
        unmatched_activities: Activities no permission could be resolved for
        total_activities: Distinct activities considered
        matched_activities: Distinct activities covered by the selection
    """

    selected: list[SelectedPermission] = field(default_factory=list)
    unmatched_activities: list[CanonicalActivity] = field(default_factory=list)
    total_activities: int = 0
    matched_activities: int = 0

    @property
    def selected_names(self) -> list[str]:
        """Selected permission names, sorted, for diffing against grants."""
        return sorted({s.permission.name for s in self.selected})

    @property
    def covered_keys(self) -> set[ActivityKey]:
        """All activity keys covered by the selection."""
        keys: set[ActivityKey] = set()
        for selection in self.selected:
            keys.update(selection.covered_activities)
        return keys

    @property
    def matched_all(self) -> bool:
        """Whether every observed activity is explained by the selection."""
        return not self.unmatched_activities

    @property
    def coverage_percent(self) -> float:
        """Share of activities covered by the selection."""
        if self.total_activities == 0:
            return 100.0
        return self.matched_activities / self.total_activities * 100

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "selected": [s.to_dict() for s in self.selected],
            "unmatched_activities": [a.to_dict() for a in self.unmatched_activities],
            "total_activities": self.total_activities,
            "matched_activities": self.matched_activities,
            "matched_all": self.matched_all,
        }
