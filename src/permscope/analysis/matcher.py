"""
Least-privilege matcher for Permscope.

Resolves each canonical activity to the application permissions that would
authorize it, preferring the permissions the reference flags as least
privileged.
"""

from __future__ import annotations

import logging
from typing import Iterable

from permscope.models.activity import CanonicalActivity
from permscope.models.permission import MatchResult, PermissionDescriptor
from permscope.permissions.index import PermissionMapIndex

logger = logging.getLogger(__name__)


class LeastPrivilegeMatcher:
    """
    Maps activities to their best-fit permission candidates.

    Candidate resolution for a matched entry and method:

    - Application permissions flagged least privileged, if any
    - Otherwise every Application permission, regardless of the flag

    Delegated permissions are never returned. Nothing raises for unmatched
    input; it degrades to an unmatched result with no candidates.
    """

    def __init__(self, index: PermissionMapIndex) -> None:
        """
        Initialize the matcher.

        Args:
            index: Shared read-only permission map index
        """
        self._index = index

    def match(self, activity: CanonicalActivity) -> MatchResult | None:
        """
        Match a single activity.

        Args:
            activity: Canonical activity

        Returns:
            Match result, or None when the activity is not a Graph API call
        """
        if not activity.is_analyzable:
            return None

        entry = self._index.find(activity.version, activity.method, activity.path)
        if entry is None:
            return MatchResult(activity=activity)

        descriptors = entry.permissions_for(activity.method)
        if descriptors is None:
            return MatchResult(activity=activity, matched_path=entry.canonical_path)

        return MatchResult(
            activity=activity,
            matched_path=entry.canonical_path,
            candidate_permissions=self.resolve_candidates(descriptors),
            is_matched=True,
        )

    def match_all(self, activities: Iterable[CanonicalActivity]) -> list[MatchResult]:
        """
        Match many activities, dropping those that are not Graph API calls.

        Args:
            activities: Canonical activities

        Returns:
            Match results for analyzable activities
        """
        results: list[MatchResult] = []
        dropped = 0

        for activity in activities:
            result = self.match(activity)
            if result is None:
                dropped += 1
                continue
            results.append(result)

        if dropped:
            logger.debug(f"Dropped {dropped} activities without a Graph API version")

        return results

    @staticmethod
    def resolve_candidates(
        descriptors: Iterable[PermissionDescriptor],
    ) -> list[PermissionDescriptor]:
        """Pick the application permissions to offer for one endpoint method."""
        application = [d for d in descriptors if d.is_application]
        least = [d for d in application if d.is_least_privileged]
        return least or application
