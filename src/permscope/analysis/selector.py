"""
Optimal permission selector for Permscope.

Reduces an application's matched activities to a small permission set that
covers all of them, using the greedy approximation to minimum set cover.

The greedy result is not guaranteed to be optimal. Minimum set cover is
NP-hard, and a larger-than-minimal selection is expected behavior rather
than a defect.
"""

from __future__ import annotations

import logging
from typing import Iterable

from permscope.models.activity import ActivityKey, CanonicalActivity
from permscope.models.permission import (
    MatchResult,
    PermissionDescriptor,
    ScopeType,
    SelectedPermission,
    SelectionResult,
)

logger = logging.getLogger(__name__)

PermissionIdentity = tuple[str, ScopeType]


class OptimalPermissionSelector:
    """
    Greedy set-cover selection over match results.

    Each round picks the permission that covers the most still-uncovered
    activities. Permissions are ranked once by total coverage, descending,
    keeping first-seen order among equals; on a tie in a round the earliest
    ranked permission wins. There is no preference for least-privileged
    permissions beyond what the matcher already applied.
    """

    def select(self, results: Iterable[MatchResult]) -> SelectionResult:
        """
        Select a covering permission set.

        Args:
            results: Match results for one application

        Returns:
            Selection with marginal coverage per permission, unmatched
            activities, and coverage counts
        """
        coverage: dict[PermissionIdentity, set[ActivityKey]] = {}
        descriptors: dict[PermissionIdentity, PermissionDescriptor] = {}
        unmatched: dict[ActivityKey, CanonicalActivity] = {}
        coverable: set[ActivityKey] = set()
        coverable_activities: dict[ActivityKey, CanonicalActivity] = {}
        all_keys: set[ActivityKey] = set()

        for result in results:
            key = result.key
            all_keys.add(key)

            if not result.has_candidates:
                unmatched.setdefault(key, result.activity)
                continue

            coverable.add(key)
            coverable_activities.setdefault(key, result.activity)
            for permission in result.candidate_permissions:
                identity = permission.identity
                coverage.setdefault(identity, set()).add(key)
                known = descriptors.get(identity)
                if known is None:
                    descriptors[identity] = permission
                elif permission.is_least_privileged and not known.is_least_privileged:
                    descriptors[identity] = PermissionDescriptor(
                        name=known.name,
                        scope_type=known.scope_type,
                        is_least_privileged=True,
                    )

        for key in coverable:
            unmatched.pop(key, None)

        ranked = sorted(coverage, key=lambda identity: len(coverage[identity]), reverse=True)
        selected, uncovered = self._greedy_cover(ranked, coverage, descriptors, coverable)

        unmatched_activities = list(unmatched.values())

        # Unreachable with candidates drawn from the coverage map
        if uncovered:
            logger.warning(f"{len(uncovered)} activities left uncovered by selection")
            unmatched_activities.extend(coverable_activities[k] for k in sorted(uncovered))

        selection = SelectionResult(
            selected=selected,
            unmatched_activities=unmatched_activities,
            total_activities=len(all_keys),
            matched_activities=len(coverable) - len(uncovered),
        )

        logger.debug(
            f"Selected {len(selected)} permissions covering "
            f"{selection.matched_activities}/{selection.total_activities} activities"
        )
        return selection

    @staticmethod
    def _greedy_cover(
        ranked: list[PermissionIdentity],
        coverage: dict[PermissionIdentity, set[ActivityKey]],
        descriptors: dict[PermissionIdentity, PermissionDescriptor],
        coverable: set[ActivityKey],
    ) -> tuple[list[SelectedPermission], set[ActivityKey]]:
        """Run the greedy loop; returns selections and anything left uncovered."""
        uncovered = set(coverable)
        selected: list[SelectedPermission] = []

        while uncovered:
            best: PermissionIdentity | None = None
            best_gain = 0

            for identity in ranked:
                gain = len(coverage[identity] & uncovered)
                if gain > best_gain:
                    best = identity
                    best_gain = gain

            if best is None:
                break

            newly_covered = coverage[best] & uncovered
            selected.append(
                SelectedPermission(
                    permission=descriptors[best],
                    marginal_coverage=len(newly_covered),
                    covered_activities=sorted(newly_covered),
                )
            )
            uncovered -= newly_covered

        return selected, uncovered
