"""
Activity models for Permscope.

Defines the records that flow from the activity log through canonicalization:
raw log rows, their version-independent canonical form, the coverage key used
for deduplication, and the time window a log query covers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, NamedTuple

from permscope.graph.uri import canonicalize_uri, split_graph_uri


class ActivityKey(NamedTuple):
    """Coverage identity of an API call: method, API version and path."""

    method: str
    version: str
    path: str

    def __str__(self) -> str:
        return f"{self.method} /{self.version}{self.path}"


@dataclass(frozen=True)
class RawActivity:
    """
    One distinct successful call returned by the activity log.

    Attributes:
        method: HTTP method as logged
        uri: Request URI as logged (query string may already be stripped)
    """

    method: str
    uri: str

    @property
    def dedupe_key(self) -> tuple[str, str]:
        """Key used to merge rows from different query windows."""
        return (self.method.strip().upper(), self.uri.strip())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"method": self.method, "uri": self.uri}


@dataclass(frozen=True)
class CanonicalActivity:
    """
    An API call reduced to method, version and identifier-free path.

    Attributes:
        method: Upper-cased HTTP method
        uri: Full canonical URI
        version: "v1.0", "beta", or None when the call is not a Graph API call
        path: Path after the version segment, starting with "/"
    """

    method: str
    uri: str
    version: str | None
    path: str

    @classmethod
    def from_raw(cls, raw: RawActivity) -> CanonicalActivity:
        """Canonicalize a raw activity."""
        return cls.from_request(raw.method, raw.uri)

    @classmethod
    def from_request(cls, method: str, uri: str) -> CanonicalActivity:
        """Canonicalize a method and request URI."""
        canonical = canonicalize_uri(uri)
        _, version, path = split_graph_uri(canonical)
        return cls(
            method=(method or "").strip().upper(),
            uri=canonical,
            version=version,
            path=path,
        )

    @property
    def is_analyzable(self) -> bool:
        """Whether the call targets a known Graph API version."""
        return self.version is not None

    @property
    def key(self) -> ActivityKey:
        """
        Coverage key for this activity.

        Graph paths are case-insensitive, so the path is lower-cased the same
        way permission index lookups are.
        """
        return ActivityKey(self.method, self.version or "", self.path.lower())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "method": self.method,
            "uri": self.uri,
            "version": self.version,
            "path": self.path,
        }


@dataclass(frozen=True)
class ActivityWindow:
    """
    A single activity log query request.

    Attributes:
        start: Inclusive start of the time range
        end: Exclusive end of the time range
        max_entries: Maximum number of distinct rows to request
    """

    start: datetime
    end: datetime
    max_entries: int

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError(
                f"Window end {self.end.isoformat()} must be after start {self.start.isoformat()}"
            )
        if self.max_entries < 1:
            raise ValueError("max_entries must be at least 1")

    @property
    def duration(self) -> timedelta:
        """Length of the window."""
        return self.end - self.start

    @property
    def midpoint(self) -> datetime:
        """Temporal midpoint of the window."""
        return self.start + self.duration / 2

    def split(self) -> tuple[ActivityWindow, ActivityWindow]:
        """
        Bisect the window at its midpoint.

        Each half gets half the row budget, never less than one row.

        Returns:
            The earlier and the later half
        """
        midpoint = self.midpoint
        entries = max(1, self.max_entries // 2)
        return (
            ActivityWindow(start=self.start, end=midpoint, max_entries=entries),
            ActivityWindow(start=midpoint, end=self.end, max_entries=entries),
        )

    @classmethod
    def lookback(
        cls,
        days: int,
        max_entries: int,
        now: datetime | None = None,
    ) -> ActivityWindow:
        """Create a window covering the last ``days`` days."""
        end = now or datetime.now(timezone.utc)
        return cls(start=end - timedelta(days=days), end=end, max_entries=max_entries)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "max_entries": self.max_entries,
        }
