"""Mean-time-to-update data for direct dependencies.

For each direct dependency found in the repository's manifests, ask the
package registry for every published version and work out whether the
pinned version is the newest tagged release. If it is not, record how long
ago the oldest newer release came out. That is the time the dependency has
been updatable, which is a fairer measure of lag than the distance to the
very latest release.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Iterable

from scorecard_clients.errors import ScorecardError

from scorecard_raw.data import Ecosystem, File, FileType, LockDependency, MTTUDependenciesData
from scorecard_raw.utils import semver
from scorecard_raw.utils.manifests import collect_direct_dependencies

if TYPE_CHECKING:
    from scorecard_clients.base import PackageClient, RepoClient
    from scorecard_clients.models import Package, PackageVersion

logger = logging.getLogger(__name__)

# A 14-digit yyyymmddhhmmss timestamp after "." or "-" and followed by "-<hash>".
_PSEUDO_TIMESTAMP_RE = re.compile(r"[.-]\d{14}-.")
_PSEUDO_MIN_LENGTH = 25
# Fractional seconds; fromisoformat before 3.11 takes only 3 or 6 digits.
_FRACTION_RE = re.compile(r"(?<=:\d\d)\.(\d+)")

_DEPSDEV_SYSTEMS = {
    "golang": "GO",
    "go": "GO",
    "npm": "NPM",
    "pypi": "PYPI",
    "maven": "MAVEN",
    "cargo": "CARGO",
    "nuget": "NUGET",
    "gem": "RUBYGEMS",
}

_ECOSYSTEMS = {
    "golang": Ecosystem.GO,
    "go": Ecosystem.GO,
    "npm": Ecosystem.NPM,
    "pypi": Ecosystem.PYPI,
    "maven": Ecosystem.MAVEN,
    "cargo": Ecosystem.CARGO,
    "nuget": Ecosystem.NUGET,
    "gem": Ecosystem.RUBYGEMS,
}


def depsdev_system(ecosystem: str) -> str:
    """Map a manifest ecosystem name to its deps.dev system, or "" if unknown."""
    return _DEPSDEV_SYSTEMS.get(ecosystem.strip().lower(), "")


def checker_ecosystem(ecosystem: str) -> Ecosystem | None:
    return _ECOSYSTEMS.get(ecosystem.strip().lower())


def is_pseudo_version(version: str) -> bool:
    """Return True for Go pseudo-versions such as ``v1.2.1-0.20250916002408-014fb9c9e8f7``.

    Pseudo-versions name untagged commits, not releases.
    """
    if len(version) < _PSEUDO_MIN_LENGTH:
        return False
    return _PSEUDO_TIMESTAMP_RE.search(version) is not None


def _with_v(version: str) -> str:
    if version and not version.startswith("v"):
        return "v" + version
    return version


def parse_published_at(value: str) -> datetime | None:
    """Parse an RFC 3339 timestamp; return None if it is not one.

    Fractional seconds of any length are accepted and cut to microseconds.
    """
    if not value:
        return None
    value = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00").replace("z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        # RFC 3339 requires an offset.
        return None
    return parsed


def newest_info_for(current: str, versions: Iterable[PackageVersion]) -> tuple[bool, datetime | None]:
    """Decide whether ``current`` is the newest release among ``versions``.

    Returns ``(True, None)`` when it is. Otherwise returns ``False`` with the
    publish time of the oldest release newer than ``current``, falling back to
    the newest release's publish time, or None when nothing is known.

    Versions are compared as Go semver after adding a missing ``v`` prefix.
    Pseudo-versions and records with unparseable timestamps are ignored. When
    ``current`` or every release is outside semver, the decision is made on
    publish times instead.
    """
    versions = list(versions)
    cur = _with_v(current)
    cur_valid = semver.is_valid(cur)

    latest_semver = ""
    latest_pub: datetime | None = None
    oldest_newer_semver = ""
    oldest_newer_pub: datetime | None = None

    for record in versions:
        pub = parse_published_at(record.published_at)
        if pub is None:
            logger.debug("Ignoring %s: bad publish time %r", record.version, record.published_at)
            continue
        v = _with_v(record.version)
        if is_pseudo_version(v):
            continue

        if semver.is_valid(v):
            if not latest_semver or semver.compare(v, latest_semver) > 0:
                latest_semver, latest_pub = v, pub
            if cur_valid and semver.compare(v, cur) > 0:
                if not oldest_newer_semver or semver.compare(v, oldest_newer_semver) < 0:
                    oldest_newer_semver, oldest_newer_pub = v, pub
        elif latest_pub is None or pub > latest_pub:
            # Not semver: only the publish time says anything about recency.
            latest_pub = pub
            latest_semver = ""

    if latest_semver and cur_valid:
        if semver.compare(cur, latest_semver) == 0:
            return True, None
        if oldest_newer_pub is not None:
            return False, oldest_newer_pub
        return False, latest_pub

    cur_pub = None
    for record in versions:
        if record.version == current:
            cur_pub = parse_published_at(record.published_at)
            if cur_pub is not None:
                break
    if cur_pub is not None and (latest_pub is None or cur_pub >= latest_pub):
        return True, None
    return False, latest_pub


def mttu_dependencies(
    client: RepoClient,
    package_client: PackageClient,
    now: datetime | None = None,
    exclude_paths: list[str] | None = None,
) -> MTTUDependenciesData:
    data = MTTUDependenciesData()
    deps = collect_direct_dependencies(client, exclude_paths)
    if not deps:
        logger.info("No direct dependencies found")
        return data
    logger.info("Detected %d direct dependencies", len(deps))

    now = now or datetime.now(timezone.utc)
    # One registry query per package, failures included.
    cache: dict[str, Package | None] = {}

    for dep in deps:
        if not dep.name or not dep.version:
            continue
        system = depsdev_system(dep.ecosystem)
        if not system:
            continue

        key = f"{system}||{dep.name}"
        if key not in cache:
            try:
                cache[key] = package_client.get_package(system, dep.name)
            except ScorecardError as e:
                logger.debug("Registry lookup for %s failed: %s", key, e)
                cache[key] = None
        package = cache[key]
        if package is None or not package.versions:
            continue

        is_latest, oldest_newer = newest_info_for(dep.version, package.versions)
        lock_dep = LockDependency(
            name=dep.name,
            version=dep.version,
            ecosystem=checker_ecosystem(dep.ecosystem),
            location=File(path=dep.path, type=FileType.SOURCE),
            is_latest=is_latest,
        )
        if oldest_newer is not None:
            lock_dep.time_since_oldest_newer_release = max(now - oldest_newer, timedelta(0))
        data.dependencies.append(lock_dep)

    up_to_date = sum(1 for d in data.dependencies if d.is_latest)
    logger.info(
        "Summary: %d dependencies up-to-date, %d outdated", up_to_date, len(data.dependencies) - up_to_date
    )
    return data
