"""
Unit tests for the permission reference models and index.

Tests descriptor parsing, endpoint entry ingestion, exact path lookup and
the per-version summary.
"""

from __future__ import annotations

import pytest

from permscope.models import EndpointEntry, PermissionDescriptor, ScopeType
from permscope.permissions import PermissionMapIndex


# ============================================================================
# ScopeType Tests
# ============================================================================


class TestScopeType:
    """Tests for ScopeType parsing."""

    def test_values(self) -> None:
        """Test enum values match the reference spelling."""
        assert ScopeType.APPLICATION.value == "Application"
        assert ScopeType.DELEGATED.value == "Delegated"

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Application", ScopeType.APPLICATION),
            ("application", ScopeType.APPLICATION),
            ("Delegated", ScopeType.DELEGATED),
            ("DelegatedWork", ScopeType.DELEGATED),
            ("DelegatedPersonal", ScopeType.DELEGATED),
            (ScopeType.APPLICATION, ScopeType.APPLICATION),
        ],
    )
    def test_parse(self, raw, expected) -> None:
        """Test accepted spellings."""
        assert ScopeType.parse(raw) == expected

    def test_parse_unknown(self) -> None:
        """Test unknown scope types are rejected."""
        with pytest.raises(ValueError):
            ScopeType.parse("Tenant")


# ============================================================================
# PermissionDescriptor Tests
# ============================================================================


class TestPermissionDescriptor:
    """Tests for PermissionDescriptor."""

    def test_from_reference_keys(self) -> None:
        """Test parsing the reference document keys."""
        descriptor = PermissionDescriptor.from_dict(
            {"value": "User.Read.All", "scopeType": "Application", "isLeastPrivilege": True}
        )

        assert descriptor.name == "User.Read.All"
        assert descriptor.is_application
        assert descriptor.is_least_privileged

    def test_from_model_keys(self) -> None:
        """Test parsing this model's own keys."""
        original = PermissionDescriptor("Mail.Read", ScopeType.DELEGATED, True)

        assert PermissionDescriptor.from_dict(original.to_dict()) == original

    def test_least_privileged_defaults_false(self) -> None:
        """Test a missing flag means not least privileged."""
        descriptor = PermissionDescriptor.from_dict({"value": "Mail.Read", "scopeType": "Application"})

        assert descriptor.is_least_privileged is False

    def test_missing_name(self) -> None:
        """Test entries without a name are rejected."""
        with pytest.raises(ValueError):
            PermissionDescriptor.from_dict({"scopeType": "Application"})

    def test_identity(self) -> None:
        """Test identity ignores the least-privileged flag."""
        a = PermissionDescriptor("Mail.Read", ScopeType.APPLICATION, False)
        b = PermissionDescriptor("Mail.Read", ScopeType.APPLICATION, True)

        assert a.identity == b.identity
        assert a.identity != PermissionDescriptor("Mail.Read", ScopeType.DELEGATED).identity


# ============================================================================
# EndpointEntry Tests
# ============================================================================


class TestEndpointEntry:
    """Tests for EndpointEntry."""

    def test_from_reference_document(self) -> None:
        """Test parsing the extractor's document shape."""
        entry = EndpointEntry.from_dict(
            {
                "Endpoint": "/users/{user-id}",
                "Version": "v1.0",
                "Method": {
                    "get": [{"value": "User.Read.All", "scopeType": "Application", "isLeastPrivilege": True}],
                },
            }
        )

        assert entry.canonical_path == "/users/{user-id}"
        assert entry.version == "v1.0"
        assert [p.name for p in entry.permissions_for("GET")] == ["User.Read.All"]

    def test_method_lookup_case_insensitive(self) -> None:
        """Test methods are stored upper-cased."""
        entry = EndpointEntry.from_dict(
            {"Endpoint": "/users", "Method": {"Get": []}}, version="beta"
        )

        assert entry.permissions_for("get") == []
        assert entry.version == "beta"

    def test_absent_method(self) -> None:
        """Test an unlisted method returns None rather than an empty list."""
        entry = EndpointEntry.from_dict({"Endpoint": "/users", "Method": {"GET": []}})

        assert entry.permissions_for("DELETE") is None

    def test_malformed_descriptors_skipped(self) -> None:
        """Test bad descriptors are skipped without dropping the entry."""
        entry = EndpointEntry.from_dict(
            {
                "Endpoint": "/users",
                "Method": {
                    "GET": [
                        {"value": "User.Read.All", "scopeType": "Application"},
                        {"value": "Broken", "scopeType": "Nonsense"},
                        {"scopeType": "Application"},
                    ],
                },
            }
        )

        assert [p.name for p in entry.permissions_for("GET")] == ["User.Read.All"]

    def test_missing_path(self) -> None:
        """Test entries without a path are rejected."""
        with pytest.raises(ValueError):
            EndpointEntry.from_dict({"Method": {}})


# ============================================================================
# PermissionMapIndex Tests
# ============================================================================


class TestPermissionMapIndex:
    """Tests for PermissionMapIndex."""

    def test_find_with_placeholder(self, permission_index) -> None:
        """Test reference placeholders line up with canonical placeholders."""
        entry = permission_index.find("v1.0", "GET", "/users/{id}/messages")

        assert entry is not None
        assert entry.canonical_path == "/users/{user-id}/messages"

    def test_find_is_exact(self, permission_index) -> None:
        """Test no prefix matching is performed."""
        assert permission_index.find("v1.0", "GET", "/users/{id}/messages/{id}") is None
        assert permission_index.find("v1.0", "GET", "/user") is None

    def test_find_case_insensitive(self, permission_index) -> None:
        """Test path comparison ignores case."""
        assert permission_index.find("v1.0", "GET", "/Groups/{id}/Members") is not None

    def test_find_respects_version(self, permission_index) -> None:
        """Test entries are kept per version."""
        assert permission_index.find("beta", "GET", "/users") is None
        assert permission_index.find(None, "GET", "/users") is None
        assert permission_index.find("v2.0", "GET", "/users") is None

    def test_find_function_endpoint(self, permission_index) -> None:
        """Test a function-call reference path matches its canonical form."""
        entry = permission_index.find("beta", "GET", "/reports/getEmailActivityUserDetail/{id}")

        assert entry is not None

    def test_find_permissions(self, permission_index) -> None:
        """Test descriptor lookup by method."""
        permissions = permission_index.find_permissions("v1.0", "POST", "/users/{id}/messages")

        assert [p.name for p in permissions] == ["Mail.ReadWrite"]
        assert permission_index.find_permissions("v1.0", "DELETE", "/users/{id}/messages") is None
        assert permission_index.find_permissions("v1.0", "GET", "/nothing") is None

    def test_versioned_reference_path(self) -> None:
        """Test a version prefix on a reference path is ignored."""
        index = PermissionMapIndex(
            v1_entries=[EndpointEntry("/v1.0/users/{user-id}", "v1.0", {"GET": []})]
        )

        assert index.find("v1.0", "GET", "/users/{id}") is not None

    def test_duplicate_paths_merged(self) -> None:
        """Test entries normalizing to one path are merged without duplicates."""
        read_all = PermissionDescriptor("User.Read.All", ScopeType.APPLICATION, True)
        directory = PermissionDescriptor("Directory.Read.All", ScopeType.APPLICATION)
        index = PermissionMapIndex(
            v1_entries=[
                EndpointEntry("/users/{user-id}", "v1.0", {"GET": [read_all]}),
                EndpointEntry("/users/{id}", "v1.0", {"GET": [read_all, directory], "PATCH": []}),
            ]
        )

        entry = index.find("v1.0", "GET", "/users/{id}")

        assert len(index) == 1
        assert [p.name for p in entry.permissions_for("GET")] == ["User.Read.All", "Directory.Read.All"]
        assert entry.permissions_for("PATCH") == []

    def test_unknown_document_version_skipped(self) -> None:
        """Test documents for unknown versions are ignored."""
        index = PermissionMapIndex.from_documents(
            {"v2.0": [{"Endpoint": "/users", "Method": {"GET": []}}]}
        )

        assert len(index) == 0

    def test_malformed_document_entry_skipped(self) -> None:
        """Test malformed reference entries are skipped."""
        index = PermissionMapIndex.from_documents(
            {"v1.0": [{"Method": {"GET": []}}, {"Endpoint": "/users", "Method": {"GET": []}}]}
        )

        assert len(index) == 1

    def test_entries_and_len(self, permission_index) -> None:
        """Test entry listing per version."""
        assert len(permission_index.entries("v1.0")) == 6
        assert len(permission_index.entries("beta")) == 1
        assert permission_index.entries("v2.0") == []
        assert len(permission_index) == 7

    def test_index_is_read_only(self, permission_index) -> None:
        """Test the internal mapping cannot be mutated."""
        with pytest.raises(TypeError):
            permission_index._entries["v1.0"]["/new"] = None

    def test_summary(self, permission_index) -> None:
        """Test per-version statistics."""
        summary = permission_index.summary()

        v1 = summary["v1.0"]
        assert v1["total_endpoints"] == 6
        assert v1["total_methods"] == 7
        assert v1["total_permissions"] == 12
        assert v1["endpoints_with_permissions"] == 6
        assert v1["coverage_percent"] == 100.0
        assert summary["beta"]["total_endpoints"] == 1

    def test_summary_empty(self) -> None:
        """Test an empty index reports zero coverage."""
        summary = PermissionMapIndex().summary()

        assert summary["v1.0"]["total_endpoints"] == 0
        assert summary["v1.0"]["coverage_percent"] == 0.0
