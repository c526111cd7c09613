"""Tests for the version freshness comparator and the MTTU collector."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from scorecard_clients.errors import api_error
from scorecard_clients.models import Package, PackageVersion

from scorecard_raw.data import Ecosystem
from scorecard_raw.mttu_dependencies import (
    checker_ecosystem,
    depsdev_system,
    is_pseudo_version,
    mttu_dependencies,
    newest_info_for,
    parse_published_at,
)


def _ts(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _versions(*pairs):
    return [PackageVersion(version=v, published_at=p) for v, p in pairs]


class TestIsPseudoVersion:
    @pytest.mark.parametrize(
        "version",
        [
            "v1.2.0-0.20250916002408-abc123def456",
            "v0.0.0-20241213102144-19d51d7fe467",
            "1.2.0-0.20250916002408-abc123def",
            "v1.2.3.0.20240101120000-abcdef123456",
            "v2.0.0-20231217203849-220c5c2851b7",
            "v1.2.0-20240101120000-20240202130000-abc",
        ],
    )
    def test_pseudo_versions(self, version):
        assert is_pseudo_version(version)

    @pytest.mark.parametrize(
        "version",
        [
            "v1.2.3",
            "v2.0.0+incompatible",
            "v1.2.3-rc.1",
            "v1.2.3-beta",
            "v0.1.0-alpha.2",
            "v1.2.3-20250916",
            "v1.2.3-202509160024-abc",
            "v1.2.3-20250916002408abc",
            "v1.2.3-0.abcdefghijklmn-hash",
            "",
            "v",
            "invalid",
            "20250916002408-abc123",
        ],
    )
    def test_not_pseudo_versions(self, version):
        assert not is_pseudo_version(version)


class TestNewestInfoFor:
    def test_current_is_latest(self):
        versions = _versions(
            ("v1.0.0", "2024-01-01T00:00:00Z"),
            ("v1.1.0", "2024-02-01T00:00:00Z"),
            ("v1.2.0", "2024-03-01T00:00:00Z"),
            ("v1.3.0", "2024-04-01T00:00:00Z"),
        )
        assert newest_info_for("v1.3.0", versions) == (True, None)

    def test_reports_oldest_newer_not_latest(self):
        versions = _versions(
            ("v1.0.0", "2024-01-01T00:00:00Z"),
            ("v1.1.0", "2024-03-01T00:00:00Z"),
            ("v1.2.0", "2024-06-01T00:00:00Z"),
            ("v1.3.0", "2024-09-01T00:00:00Z"),
        )
        assert newest_info_for("v1.0.0", versions) == (False, _ts("2024-03-01T00:00:00Z"))

    def test_unprefixed_scenario_returns_t1(self):
        versions = _versions(
            ("1.0.0", "2024-01-01T00:00:00Z"),
            ("1.1.0", "2024-02-01T00:00:00Z"),
            ("1.2.0", "2024-03-01T00:00:00Z"),
        )
        assert newest_info_for("1.0.0", versions) == (False, _ts("2024-02-01T00:00:00Z"))

    def test_pseudo_version_published_later_is_ignored(self):
        versions = _versions(
            ("1.2.0", "2024-01-01T00:00:00Z"),
            ("1.2.1-0.20250916002408-abc123", "2025-09-16T00:24:08Z"),
        )
        assert newest_info_for("1.2.0", versions) == (True, None)

    def test_pseudo_versions_ignored_with_real_newer(self):
        versions = _versions(
            ("v1.0.0", "2024-01-01T00:00:00Z"),
            ("v1.0.1-0.20240215000000-abc", "2024-02-15T00:00:00Z"),
            ("v1.1.0", "2024-03-01T00:00:00Z"),
            ("v1.2.0-0.20240401000000-def", "2024-04-01T00:00:00Z"),
        )
        assert newest_info_for("v1.0.0", versions) == (False, _ts("2024-03-01T00:00:00Z"))

    def test_mixed_v_prefix(self):
        versions = _versions(
            ("1.2.0", "2024-01-01T00:00:00Z"),
            ("v1.3.0", "2024-02-01T00:00:00Z"),
            ("1.4.0", "2024-03-01T00:00:00Z"),
        )
        assert newest_info_for("v1.2.0", versions) == (False, _ts("2024-02-01T00:00:00Z"))

    def test_empty_list(self):
        assert newest_info_for("v1.0.0", []) == (False, None)

    def test_invalid_timestamps_skipped(self):
        versions = _versions(
            ("v1.0.0", "2024-01-01T00:00:00Z"),
            ("v1.1.0", "invalid-timestamp"),
            ("v1.2.0", "2024-03-01T00:00:00Z"),
        )
        assert newest_info_for("v1.0.0", versions) == (False, _ts("2024-03-01T00:00:00Z"))

    def test_current_above_every_release_falls_back_to_latest(self):
        versions = _versions(("v1.0.0", "2024-01-01T00:00:00Z"), ("v1.1.0", "2024-02-01T00:00:00Z"))
        assert newest_info_for("v1.5.0", versions) == (False, _ts("2024-02-01T00:00:00Z"))

    def test_v0_pseudo_filtered(self):
        versions = _versions(
            ("v0.0.0-20241213102144-19d51d7fe467", "2024-01-01T00:00:00Z"),
            ("v1.0.0", "2024-02-01T00:00:00Z"),
            ("v1.1.0", "2024-03-01T00:00:00Z"),
        )
        assert newest_info_for("v1.0.0", versions) == (False, _ts("2024-03-01T00:00:00Z"))

    def test_all_pseudo_versions_falls_back_to_time(self):
        versions = _versions(
            ("v1.0.0-0.20240101000000-abc", "2024-01-01T00:00:00Z"),
            ("v1.1.0-0.20240201000000-def", "2024-02-01T00:00:00Z"),
        )
        assert newest_info_for("v1.0.0-0.20240101000000-abc", versions) == (True, None)

    def test_oldest_of_several_newer(self):
        versions = _versions(
            ("v1.0.0", "2024-01-01T00:00:00Z"),
            ("v1.0.1", "2024-01-15T00:00:00Z"),
            ("v1.0.2", "2024-02-01T00:00:00Z"),
            ("v1.1.0", "2024-03-01T00:00:00Z"),
            ("v1.2.0", "2024-04-01T00:00:00Z"),
            ("v2.0.0", "2024-05-01T00:00:00Z"),
        )
        assert newest_info_for("v1.0.0", versions) == (False, _ts("2024-01-15T00:00:00Z"))

    def test_non_semver_current_uses_publish_times(self):
        versions = _versions(("2023.01.05", "2023-01-05T00:00:00Z"), ("2024.01.10", "2024-01-10T00:00:00Z"))
        assert newest_info_for("2024.01.10", versions) == (True, None)
        assert newest_info_for("2023.01.05", versions) == (False, _ts("2024-01-10T00:00:00Z"))

    def test_non_semver_current_missing_from_list(self):
        versions = _versions(("2024.01.10", "2024-01-10T00:00:00Z"))
        assert newest_info_for("2022.01.01", versions) == (False, _ts("2024-01-10T00:00:00Z"))


class TestParsePublishedAt:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2024-03-01T10:00:00Z", datetime(2024, 3, 1, 10, tzinfo=timezone.utc)),
            ("2024-03-01T10:00:00.5Z", datetime(2024, 3, 1, 10, 0, 0, 500000, tzinfo=timezone.utc)),
            ("2024-03-01T10:00:00.123456789Z", datetime(2024, 3, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)),
            (
                "2024-03-01T12:00:00.12+02:00",
                datetime(2024, 3, 1, 10, 0, 0, 120000, tzinfo=timezone.utc),
            ),
        ],
    )
    def test_rfc3339(self, value, expected):
        assert parse_published_at(value) == expected

    @pytest.mark.parametrize("value", ["", "yesterday", "2024-03-01T10:00:00", "2024-03-01T10:00:00.123"])
    def test_rejected(self, value):
        assert parse_published_at(value) is None


class TestEcosystemMapping:
    @pytest.mark.parametrize(
        "name, system",
        [
            ("golang", "GO"),
            ("Go", "GO"),
            ("npm", "NPM"),
            ("PyPI", "PYPI"),
            ("maven", "MAVEN"),
            ("cargo", "CARGO"),
            ("nuget", "NUGET"),
            ("gem", "RUBYGEMS"),
            (" npm ", "NPM"),
            ("unknown", ""),
        ],
    )
    def test_depsdev_system(self, name, system):
        assert depsdev_system(name) == system

    def test_checker_ecosystem(self):
        assert checker_ecosystem("golang") is Ecosystem.GO
        assert checker_ecosystem("gem") is Ecosystem.RUBYGEMS
        assert checker_ecosystem("conda") is None


NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)

GO_MOD = """module example.com/app

go 1.22

require (
\tgithub.com/foo/bar v1.0.0
\tgithub.com/baz/qux v0.3.0 // indirect
)
"""


class TestMTTUDependencies:
    def _package_client(self, packages):
        client = MagicMock()

        def get_package(system, name):
            if (system, name) not in packages:
                raise api_error(f"{system}/{name} not found")
            return packages[(system, name)]

        client.get_package.side_effect = get_package
        return client

    def test_outdated_dependency_records_time_since_oldest_newer(self, make_client):
        repo = make_client(files={"go.mod": GO_MOD})
        packages = {
            ("GO", "github.com/foo/bar"): Package(
                system="GO",
                name="github.com/foo/bar",
                versions=tuple(
                    _versions(
                        ("v1.0.0", "2024-01-01T00:00:00Z"),
                        ("v1.1.0", "2024-05-01T00:00:00Z"),
                        ("v1.2.0", "2024-05-20T00:00:00Z"),
                    )
                ),
            )
        }

        data = mttu_dependencies(repo, self._package_client(packages), now=NOW)

        (dep,) = data.dependencies
        assert dep.name == "github.com/foo/bar"
        assert dep.version == "v1.0.0"
        assert dep.ecosystem is Ecosystem.GO
        assert dep.is_latest is False
        assert dep.time_since_oldest_newer_release == timedelta(days=31)
        assert dep.location.path == "go.mod"

    def test_up_to_date_dependency_has_no_delta(self, make_client):
        repo = make_client(files={"requirements.txt": "requests==2.31.0\n"})
        packages = {
            ("PYPI", "requests"): Package(
                system="PYPI", name="requests", versions=tuple(_versions(("2.31.0", "2023-05-22T00:00:00Z")))
            )
        }

        (dep,) = mttu_dependencies(repo, self._package_client(packages), now=NOW).dependencies

        assert dep.is_latest is True
        assert dep.time_since_oldest_newer_release is None

    def test_future_publish_time_clamped_to_zero(self, make_client):
        repo = make_client(files={"requirements.txt": "requests==2.30.0\n"})
        packages = {
            ("PYPI", "requests"): Package(
                system="PYPI",
                name="requests",
                versions=tuple(_versions(("2.30.0", "2023-01-01T00:00:00Z"), ("2.31.0", "2025-01-01T00:00:00Z"))),
            )
        }

        (dep,) = mttu_dependencies(repo, self._package_client(packages), now=NOW).dependencies

        assert dep.time_since_oldest_newer_release == timedelta(0)

    def test_registry_failures_skip_and_are_cached(self, make_client):
        repo = make_client(
            files={"requirements.txt": "missing==1.0\n", "tools/requirements.txt": "missing==1.0\n"}
        )
        package_client = self._package_client({})

        data = mttu_dependencies(repo, package_client, now=NOW)

        assert data.dependencies == []
        package_client.get_package.assert_called_once_with("PYPI", "missing")

    def test_package_without_versions_skipped(self, make_client):
        repo = make_client(files={"requirements.txt": "empty==1.0\n"})
        packages = {("PYPI", "empty"): Package(system="PYPI", name="empty")}
        assert mttu_dependencies(repo, self._package_client(packages), now=NOW).dependencies == []

    def test_no_manifests(self, make_client):
        package_client = MagicMock()
        data = mttu_dependencies(make_client(files={"README.md": "hi"}), package_client, now=NOW)
        assert data.dependencies == []
        package_client.get_package.assert_not_called()
