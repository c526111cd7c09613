"""Known vulnerabilities in the direct dependencies of recent releases.

For each of the newest releases, the injected ReleaseDependencyClient lists
the direct dependencies declared in that release's snapshot, and the
injected VulnerabilityClient answers which OSV advisories affect them.
Lookups are cached across releases, so a dependency pinned at the same
version in several releases is queried once.

When a release has a publish time, only advisories published at or before
it are kept.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, NamedTuple

from scorecard_clients.errors import ScorecardError, unsupported_feature
from scorecard_clients.models import VulnerabilityQuery

from scorecard_raw.data import DependencyVulnerabilities, ReleaseDependencyVulns, ReleaseDirectDepsVulnsData

if TYPE_CHECKING:
    from scorecard_clients.base import ReleaseDependencyClient, RepoClient, VulnerabilityClient
    from scorecard_clients.models import DirectDependency

logger = logging.getLogger(__name__)

MAX_RELEASES = 10
MAX_IDS_PER_DEPENDENCY = 5

_OSV_ECOSYSTEMS = {
    "gomod": "Go",
    "go": "Go",
    "golang": "Go",
    "npm": "npm",
    "node": "npm",
    "packagejson": "npm",
    "pypi": "PyPI",
    "python": "PyPI",
    "pyproject": "PyPI",
    "requirements": "PyPI",
    "maven": "Maven",
    "pomxml": "Maven",
    "gradle": "Maven",
    "cargo": "Crates.io",
    "rust": "Crates.io",
    "cargotoml": "Crates.io",
    "crates.io": "Crates.io",
    "nuget": "NuGet",
    ".net": "NuGet",
    "nugetproj": "NuGet",
    "gem": "RubyGems",
    "ruby": "RubyGems",
    "rubygems": "RubyGems",
    "gemfile": "RubyGems",
}


class _DependencyKey(NamedTuple):
    ecosystem: str
    name: str
    version: str
    purl: str


def to_osv_ecosystem(ecosystem: str) -> str:
    """Map a scanner's ecosystem label to the OSV ecosystem name; unknown labels pass through."""
    return _OSV_ECOSYSTEMS.get(ecosystem.strip().lower(), ecosystem)


def to_osv_query(ecosystem: str, name: str, version: str, purl: str = "") -> VulnerabilityQuery:
    if purl.strip():
        return VulnerabilityQuery(purl=purl)
    ecosystem = to_osv_ecosystem(ecosystem)
    version = version.strip()
    # OSV expects v-prefixed Go versions
    if ecosystem.lower() == "go" and version and not version.lower().startswith("v"):
        version = f"v{version}"
    return VulnerabilityQuery(ecosystem=ecosystem, name=name, version=version)


def filter_vulns_by_publish_time(
    vulnerability_client: VulnerabilityClient, vuln_ids: list[str], release_time: datetime
) -> list[str]:
    """Keep the IDs published at or before ``release_time``.

    An ID whose record cannot be fetched is kept; one with no publish time is dropped.
    """
    kept = []
    for vuln_id in vuln_ids:
        try:
            vuln = vulnerability_client.get_vulnerability(vuln_id)
        except ScorecardError as e:
            logger.debug("Keeping %s, record unavailable: %s", vuln_id, e)
            kept.append(vuln_id)
            continue
        if vuln.published is not None and vuln.published <= release_time:
            kept.append(vuln_id)
    return kept


def _key(dep: DirectDependency) -> _DependencyKey:
    return _DependencyKey(to_osv_ecosystem(dep.ecosystem), dep.name, dep.version, dep.purl)


def _queryable(dep: DirectDependency) -> bool:
    name = dep.name.strip()
    return bool(name) and bool(dep.version.strip()) and name.lower() != "stdlib"


def releases_deps_vulnfree(
    client: RepoClient,
    dependency_client: ReleaseDependencyClient | None,
    vulnerability_client: VulnerabilityClient | None,
) -> ReleaseDirectDepsVulnsData:
    data = ReleaseDirectDepsVulnsData()
    releases = client.list_releases()[:MAX_RELEASES]
    if not releases:
        return data
    if dependency_client is None or vulnerability_client is None:
        raise unsupported_feature("release dependency scanning needs a dependency and a vulnerability client")

    cache: dict[_DependencyKey, list[str]] = {}

    for release in releases:
        tag = release.tag_name.strip()
        if not tag:
            continue

        deps = sorted(
            dependency_client.get_release_dependencies(release), key=lambda d: (d.ecosystem, d.name, d.version)
        )

        pending: list[_DependencyKey] = []
        for dep in deps:
            key = _key(dep)
            if _queryable(dep) and key not in cache and key not in pending:
                pending.append(key)
        if pending:
            results = vulnerability_client.query_batch([to_osv_query(*key) for key in pending])
            for key, ids in zip(pending, results):
                cache[key] = list(ids)
            logger.debug("Queried %d dependencies for release %s", len(pending), tag)

        findings = []
        for dep in deps:
            key = _key(dep)
            ids = cache.get(key)
            if not ids:
                continue
            if release.published_at is not None:
                ids = filter_vulns_by_publish_time(vulnerability_client, ids, release.published_at)
            ids = ids[:MAX_IDS_PER_DEPENDENCY]
            if not ids:
                continue
            findings.append(
                DependencyVulnerabilities(
                    ecosystem=key.ecosystem,
                    name=key.name,
                    version=key.version,
                    purl=key.purl,
                    osv_ids=list(ids),
                    manifest_path=dep.location,
                )
            )

        data.releases.append(
            ReleaseDependencyVulns(
                tag=tag,
                commit_sha=release.target_commitish.strip(),
                published_at=release.published_at,
                direct_dependencies=deps,
                findings=findings,
            )
        )

    return data
