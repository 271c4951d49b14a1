"""
Pytest configuration and fixtures for Permscope tests.

This module provides common fixtures used across unit and integration tests.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Callable

import pytest

from permscope.collection.base import ActivityLog
from permscope.models import ActivityWindow, Application, RawActivity
from permscope.permissions import PermissionMapIndex


GRAPH = "https://graph.microsoft.com"


class FakeActivityLog(ActivityLog):
    """In-memory activity log driven by a handler function."""

    store_name = "fake"

    def __init__(
        self,
        handler: Callable[[str, ActivityWindow], list[RawActivity]] | None = None,
    ) -> None:
        self.handler = handler or (lambda principal_id, window: [])
        self.calls: list[tuple[str, ActivityWindow]] = []
        self._lock = threading.Lock()

    def query_activity(self, principal_id: str, window: ActivityWindow) -> list[RawActivity]:
        with self._lock:
            self.calls.append((principal_id, window))
        return self.handler(principal_id, window)

    @property
    def windows(self) -> list[ActivityWindow]:
        """Queried windows in call order."""
        return [window for _, window in self.calls]


# Sample data fixtures


@pytest.fixture
def window_start() -> datetime:
    """Return a fixed window start."""
    return datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def permission_documents() -> dict[str, list[dict[str, Any]]]:
    """Return reference documents in the endpoint extractor's shape."""
    return {
        "v1.0": [
            {
                "Endpoint": "/users",
                "Version": "v1.0",
                "Method": {
                    "GET": [
                        {"value": "User.Read.All", "scopeType": "Application", "isLeastPrivilege": False},
                        {"value": "User.ReadBasic.All", "scopeType": "Application", "isLeastPrivilege": True},
                        {"value": "User.Read", "scopeType": "DelegatedWork", "isLeastPrivilege": True},
                    ],
                },
            },
            {
                "Endpoint": "/users/{user-id}",
                "Version": "v1.0",
                "Method": {
                    "GET": [
                        {"value": "User.Read.All", "scopeType": "Application", "isLeastPrivilege": True},
                        {"value": "Directory.Read.All", "scopeType": "Application", "isLeastPrivilege": False},
                    ],
                },
            },
            {
                "Endpoint": "/users/{user-id}/messages",
                "Version": "v1.0",
                "Method": {
                    "GET": [
                        {"value": "Mail.ReadBasic.All", "scopeType": "Application", "isLeastPrivilege": True},
                        {"value": "Mail.Read", "scopeType": "Application", "isLeastPrivilege": False},
                    ],
                    "POST": [
                        {"value": "Mail.ReadWrite", "scopeType": "Application", "isLeastPrivilege": True},
                    ],
                },
            },
            {
                "Endpoint": "/groups",
                "Version": "v1.0",
                "Method": {
                    "GET": [
                        {"value": "GroupMember.Read.All", "scopeType": "Application", "isLeastPrivilege": True},
                        {"value": "Group.Read.All", "scopeType": "Application", "isLeastPrivilege": True},
                    ],
                },
            },
            {
                "Endpoint": "/groups/{group-id}/members",
                "Version": "v1.0",
                "Method": {
                    "GET": [
                        {"value": "GroupMember.Read.All", "scopeType": "Application", "isLeastPrivilege": True},
                    ],
                },
            },
            {
                "Endpoint": "/sites/{site-id}",
                "Version": "v1.0",
                "Method": {
                    "GET": [
                        {"value": "Sites.Read.All", "scopeType": "DelegatedWork", "isLeastPrivilege": True},
                    ],
                },
            },
        ],
        "beta": [
            {
                "Endpoint": "/reports/getEmailActivityUserDetail(period='{period_value}')",
                "Version": "beta",
                "Method": {
                    "GET": [
                        {"value": "Reports.Read.All", "scopeType": "Application", "isLeastPrivilege": True},
                    ],
                },
            },
        ],
    }


@pytest.fixture
def permission_index(permission_documents: dict[str, list[dict[str, Any]]]) -> PermissionMapIndex:
    """Return an index built from the sample reference documents."""
    return PermissionMapIndex.from_documents(permission_documents)


@pytest.fixture
def sample_raw_activities() -> list[RawActivity]:
    """Return a realistic set of logged calls for one application."""
    return [
        RawActivity("GET", f"{GRAPH}/v1.0/users?$top=5"),
        RawActivity("GET", f"{GRAPH}/v1.0/users/11111111-1111-1111-1111-111111111111"),
        RawActivity("GET", f"{GRAPH}/v1.0/users/22222222-2222-2222-2222-222222222222/messages"),
        RawActivity("GET", f"{GRAPH}/v1.0/users/33333333-3333-3333-3333-333333333333/messages"),
        RawActivity("GET", f"{GRAPH}/v1.0/groups"),
        RawActivity("GET", f"{GRAPH}/v1.0/groups/44444444-4444-4444-4444-444444444444/members"),
        RawActivity("GET", f"{GRAPH}/v1.0/applications"),
        RawActivity("GET", "https://example.com/other"),
        RawActivity("GET", f"{GRAPH}/beta/reports/getEmailActivityUserDetail(period='D7')"),
    ]


@pytest.fixture
def sample_application() -> Application:
    """Return an application holding one excess grant."""
    return Application(
        app_id="00000000-0000-0000-0000-00000000a001",
        display_name="Mail Sync",
        service_principal_id="00000000-0000-0000-0000-00000000b001",
        current_permissions=["Directory.ReadWrite.All", "User.Read.All"],
    )


@pytest.fixture
def fake_activity_log() -> type[FakeActivityLog]:
    """Return the fake activity log class."""
    return FakeActivityLog
