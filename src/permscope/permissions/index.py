"""
Permission map index for Permscope.

Read-only lookup of permission descriptors by API version, endpoint path and
HTTP method, built once per run from the v1.0 and beta endpoint references
and shared by all workers.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from permscope.graph.uri import GRAPH_VERSIONS, normalize_path, split_graph_uri
from permscope.models.permission import EndpointEntry, PermissionDescriptor

logger = logging.getLogger(__name__)


class PermissionMapIndex:
    """
    Immutable index of the endpoint permission reference.

    Lookups are exact: the stored path and the query path both pass through
    the identifier-substitution rule and are then compared case-insensitively.
    There is no prefix or fuzzy matching.

    Example:
        >>> index = PermissionMapIndex.from_documents({"v1.0": v1_doc, "beta": beta_doc})
        >>> entry = index.find("v1.0", "GET", "/users/{id}")
    """

    def __init__(
        self,
        v1_entries: Iterable[EndpointEntry] = (),
        beta_entries: Iterable[EndpointEntry] = (),
    ) -> None:
        """
        Build the index.

        Args:
            v1_entries: Endpoint entries for the v1.0 API
            beta_entries: Endpoint entries for the beta API
        """
        entries: dict[str, dict[str, EndpointEntry]] = {"v1.0": {}, "beta": {}}

        for version, source in (("v1.0", v1_entries), ("beta", beta_entries)):
            for entry in source:
                key = self._entry_key(entry.canonical_path)
                existing = entries[version].get(key)
                if existing is None:
                    entries[version][key] = EndpointEntry(
                        canonical_path=entry.canonical_path,
                        version=version,
                        methods={m.upper(): list(p) for m, p in entry.methods.items()},
                    )
                else:
                    entries[version][key] = self._merge(existing, entry)

        self._entries: Mapping[str, Mapping[str, EndpointEntry]] = MappingProxyType(
            {version: MappingProxyType(by_path) for version, by_path in entries.items()}
        )

        logger.debug(
            f"Permission map index built: {len(entries['v1.0'])} v1.0 endpoints, "
            f"{len(entries['beta'])} beta endpoints"
        )

    @classmethod
    def from_documents(
        cls,
        documents: Mapping[str, Iterable[dict[str, Any]]],
    ) -> PermissionMapIndex:
        """
        Build the index from parsed reference documents.

        Args:
            documents: Reference entries keyed by version ("v1.0", "beta");
                each entry is shaped {"Endpoint", "Version", "Method"}

        Returns:
            PermissionMapIndex
        """
        parsed: dict[str, list[EndpointEntry]] = {"v1.0": [], "beta": []}

        for raw_version, items in documents.items():
            version = GRAPH_VERSIONS.get(str(raw_version).lower())
            if version is None:
                logger.warning(f"Ignoring permission reference for unknown version: {raw_version}")
                continue
            for item in items or []:
                try:
                    parsed[version].append(EndpointEntry.from_dict(item, version=version))
                except (ValueError, AttributeError) as e:
                    logger.debug(f"Skipping malformed reference entry: {e}")

        return cls(parsed["v1.0"], parsed["beta"])

    @staticmethod
    def _entry_key(path: str) -> str:
        """Lookup key for an endpoint path."""
        _, version, bare = split_graph_uri(path)
        if version is None:
            bare = path
        return normalize_path(bare).lower()

    @staticmethod
    def _merge(existing: EndpointEntry, entry: EndpointEntry) -> EndpointEntry:
        """Merge two entries that normalize to the same path."""
        methods = {m: list(p) for m, p in existing.methods.items()}
        for method, permissions in entry.methods.items():
            merged = methods.setdefault(method.upper(), [])
            seen = {p.identity for p in merged}
            for permission in permissions:
                if permission.identity not in seen:
                    merged.append(permission)
                    seen.add(permission.identity)
        return EndpointEntry(
            canonical_path=existing.canonical_path,
            version=existing.version,
            methods=methods,
        )

    def find(self, version: str | None, method: str, path: str) -> EndpointEntry | None:
        """
        Find the reference entry for a call.

        Args:
            version: API version ("v1.0" or "beta")
            method: HTTP method
            path: Endpoint path after the version segment

        Returns:
            Matching entry, or None
        """
        if not version:
            return None
        by_path = self._entries.get(GRAPH_VERSIONS.get(version.lower(), ""))
        if by_path is None:
            return None
        return by_path.get(self._entry_key(path))

    def find_permissions(
        self,
        version: str | None,
        method: str,
        path: str,
    ) -> list[PermissionDescriptor] | None:
        """Get descriptors for a call, or None when the entry or method is absent."""
        entry = self.find(version, method, path)
        if entry is None:
            return None
        return entry.permissions_for(method)

    def entries(self, version: str) -> list[EndpointEntry]:
        """List entries for an API version."""
        return list(self._entries.get(version, {}).values())

    def __len__(self) -> int:
        return sum(len(by_path) for by_path in self._entries.values())

    def summary(self) -> dict[str, dict[str, Any]]:
        """
        Summarize reference coverage per API version.

        Returns:
            Per-version counts of endpoints, endpoint-method pairs, permission
            descriptors, endpoints with permissions, and coverage percent
        """
        result: dict[str, dict[str, Any]] = {}

        for version, by_path in self._entries.items():
            total_endpoints = len(by_path)
            total_methods = 0
            total_permissions = 0
            with_permissions = 0

            for entry in by_path.values():
                total_methods += len(entry.methods)
                counts = [len(p) for p in entry.methods.values()]
                total_permissions += sum(counts)
                if any(counts):
                    with_permissions += 1

            result[version] = {
                "version": version,
                "total_endpoints": total_endpoints,
                "total_methods": total_methods,
                "total_permissions": total_permissions,
                "endpoints_with_permissions": with_permissions,
                "coverage_percent": round(with_permissions / total_endpoints * 100, 2)
                if total_endpoints > 0
                else 0.0,
            }

        return result
