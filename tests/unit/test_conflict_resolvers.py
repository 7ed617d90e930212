"""
Tests unitarios para las politicas de resolucion.

Tablas de decision de last_write_wins y version_based.
"""
from datetime import datetime, timezone

import pytest

from docsync.application.services.conflict_resolvers import (
    LastWriteWinsResolver,
    VersionBasedResolver,
    get_default_resolvers,
)
from docsync.domain.entities.resolution import Resolution, WinningSource

OLD = datetime(2024, 1, 1, tzinfo=timezone.utc)
NEW = datetime(2024, 6, 1, tzinfo=timezone.utc)


class TestLastWriteWinsResolver:
    """Tests para LastWriteWinsResolver."""

    @pytest.fixture
    def resolver(self):
        return LastWriteWinsResolver()

    def test_no_conflict_when_only_audit_fields_differ(self, resolver):
        remote = {"name": "Ana", "updated_at": NEW, "created_at": NEW}
        local = {"id": "rec1", "name": "Ana", "updated_at": OLD, "created_at": OLD}

        assert resolver.has_conflict(remote, local) is False

    def test_missing_key_equals_null(self, resolver):
        assert resolver.has_conflict({"name": "Ana"}, {"name": "Ana", "nickname": None}) is False

    def test_numbers_compare_with_epsilon(self, resolver):
        assert resolver.has_conflict({"score": 1.00001}, {"score": 1.0}) is False
        assert resolver.has_conflict({"score": 1.01}, {"score": 1.0}) is True

    @pytest.mark.parametrize("remote_ts,local_ts,action,source,confidence", [
        (None, None, "default_to_remote", WinningSource.REMOTE, "low"),
        (NEW, None, "remote_has_timestamp", WinningSource.REMOTE, "high"),
        (None, NEW, "local_has_timestamp", WinningSource.LOCAL, "high"),
        (NEW, OLD, "remote_newer", WinningSource.REMOTE, "high"),
        (OLD, NEW, "local_newer", WinningSource.LOCAL, "high"),
        (NEW, NEW, "timestamps_equal", WinningSource.REMOTE, "low"),
    ])
    def test_decision_table(self, resolver, remote_ts, local_ts, action, source, confidence):
        remote = {"name": "Remote", "updated_at": remote_ts}
        local = {"name": "Local", "updated_at": local_ts}

        resolution = resolver.resolve(remote, local)

        assert resolution.action == action
        assert resolution.winning_source == source
        assert resolution.confidence == confidence
        assert resolution.requires_manual_intervention is False
        expected = remote if source is WinningSource.REMOTE else local
        assert resolution.resolved_data == expected

    def test_tie_break_is_deterministic(self, resolver):
        remote = {"name": "Remote", "updated_at": NEW}
        local = {"name": "Local", "updated_at": NEW}

        first = resolver.resolve(remote, local)
        second = resolver.resolve(remote, local)

        assert first.to_dict() == second.to_dict()
        assert first.metadata["tie_break"] is True

    def test_string_and_naive_timestamps_are_normalized(self, resolver):
        remote = {"name": "Remote", "updated_at": "2024-06-01T00:00:00Z"}
        local = {"name": "Local", "updated_at": datetime(2024, 1, 1)}

        assert resolver.resolve(remote, local).action == "remote_newer"

    def test_unparsable_timestamp_is_treated_as_absent(self, resolver):
        remote = {"name": "Remote", "updated_at": "no es fecha"}
        local = {"name": "Local", "updated_at": OLD}

        assert resolver.resolve(remote, local).action == "local_has_timestamp"

    def test_custom_timestamp_field(self):
        resolver = LastWriteWinsResolver(timestamp_field="modified")
        remote = {"name": "Remote", "modified": NEW}
        local = {"name": "Local", "modified": OLD}

        assert resolver.resolve(remote, local).action == "remote_newer"


class TestVersionBasedResolver:
    """Tests para VersionBasedResolver."""

    @pytest.fixture
    def resolver(self):
        return VersionBasedResolver()

    def test_conflict_when_versions_differ_even_with_same_data(self, resolver):
        assert resolver.has_conflict({"name": "Ana", "_version": 2}, {"name": "Ana", "_version": 1}) is True

    def test_no_conflict_with_same_version_and_data(self, resolver):
        assert resolver.has_conflict({"name": "Ana", "_version": 2}, {"name": "Ana", "_version": 2}) is False

    def test_initializes_version_when_absent(self, resolver):
        resolution = resolver.resolve({"name": "Remote"}, {"name": "Local"})

        assert resolution.action == "initialize_version"
        assert resolution.winning_source == WinningSource.REMOTE
        assert resolution.resolved_data == {"name": "Remote", "_version": 1}

    @pytest.mark.parametrize("remote_version,local_version,action,source,resolved_version", [
        (3, None, "remote_has_version", WinningSource.REMOTE, 4),
        (None, 3, "local_has_version", WinningSource.LOCAL, 4),
        (5, 2, "remote_newer_version", WinningSource.REMOTE, 6),
        (2, 5, "local_newer_version", WinningSource.LOCAL, 6),
    ])
    def test_decision_table(self, resolver, remote_version, local_version, action, source, resolved_version):
        remote = {"name": "Remote", "_version": remote_version}
        local = {"name": "Local", "_version": local_version}

        resolution = resolver.resolve(remote, local)

        assert resolution.action == action
        assert resolution.winning_source == source
        assert resolution.resolved_data["_version"] == resolved_version
        assert resolution.requires_manual_intervention is False

    def test_without_auto_increment_keeps_version(self):
        resolver = VersionBasedResolver(auto_increment=False)

        resolution = resolver.resolve({"name": "Remote", "_version": 5}, {"name": "Local", "_version": 2})

        assert resolution.resolved_data["_version"] == 5

    def test_same_version_same_data(self, resolver):
        resolution = resolver.resolve({"name": "Ana", "_version": 2}, {"name": "Ana", "_version": 2})

        assert resolution.action == "same_version_same_data"
        assert resolution.requires_manual_intervention is False

    def test_version_collision_requires_manual_intervention(self, resolver):
        resolution = resolver.resolve({"name": "Remote", "_version": 3}, {"name": "Local", "_version": 3})

        assert resolution.action == "version_conflict"
        assert resolution.winning_source == WinningSource.REMOTE
        assert resolution.requires_manual_intervention is True
        assert resolution.resolved_data["_version"] == 4
        assert resolution.resolved_data["_conflict_detected"] is True
        assert "_conflict_timestamp" in resolution.resolved_data
        assert resolution.metadata["conflict_type"] == "version_mismatch"
        assert resolution.metadata["remote_version"] == 3
        assert resolution.metadata["local_version"] == 3

    @pytest.mark.parametrize("raw,expected", [
        ("7", 7),
        (7.0, 7),
        (True, None),
        ("abc", None),
        (float("inf"), None),
    ])
    def test_version_parsing(self, resolver, raw, expected):
        assert resolver._extract_version({"_version": raw}) == expected


def test_default_resolvers_order_and_config():
    resolvers = get_default_resolvers(timestamp_field="modified", version_field="rev", auto_increment=False)

    assert [r.name for r in resolvers] == ["version_based", "last_write_wins"]
    assert resolvers[0].priority > resolvers[1].priority
    assert resolvers[0].version_field == "rev"
    assert resolvers[0].auto_increment is False
    assert resolvers[1].timestamp_field == "modified"


class TestResolution:
    """La entidad Resolution no comparte estado con sus entradas."""

    def test_resolved_data_is_copied(self):
        source = {"name": "Ana", "tags": ["a"]}
        resolution = Resolution(
            resolved_data=source,
            action="remote_newer",
            winning_source="remote",
            description="test",
        )
        source["tags"].append("b")

        assert resolution.resolved_data == {"name": "Ana", "tags": ["a"]}
        assert resolution.winning_source is WinningSource.REMOTE
        assert resolution.confidence == "high"

    def test_metadata_can_be_extended(self):
        resolution = Resolution(
            resolved_data={},
            action="timestamps_equal",
            winning_source=WinningSource.REMOTE,
            description="test",
        )
        resolution.add_metadata("resolver", "last_write_wins")
        resolution.set_metadata({"confidence": "low", "tie_break": True})

        assert resolution.confidence == "low"
        assert resolution.summary()["metadata"] == {
            "confidence": "low",
            "resolver": "last_write_wins",
            "tie_break": True,
        }
