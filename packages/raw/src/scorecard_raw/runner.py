"""Run the configured collectors against one repository."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from scorecard_clients.depsdev import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, DepsDevClient
from scorecard_clients.errors import ScorecardError, internal_error
from scorecard_clients.github import DEFAULT_COMMIT_DEPTH, GithubRepoClient

from scorecard_raw.binary_artifacts import binary_artifacts
from scorecard_raw.branch_protection import branch_protection
from scorecard_raw.ci_tests import ci_tests
from scorecard_raw.code_review import code_review
from scorecard_raw.config import CHECK_NAMES
from scorecard_raw.contributors import contributors
from scorecard_raw.dangerous_workflow import dangerous_workflow
from scorecard_raw.data import RawResults
from scorecard_raw.dependency_update_tool import dependency_update_tool
from scorecard_raw.license import LicenseTable, licenses
from scorecard_raw.mttu_dependencies import mttu_dependencies
from scorecard_raw.pinned_dependencies import pinned_dependencies
from scorecard_raw.releases_deps_vulnfree import releases_deps_vulnfree
from scorecard_raw.security_policy import security_policy
from scorecard_raw.signed_releases import signed_releases
from scorecard_raw.tag_protection import tag_protection
from scorecard_raw.webhooks import webhooks

if TYPE_CHECKING:
    from scorecard_clients.base import PackageClient, ReleaseDependencyClient, RepoClient, VulnerabilityClient

logger = logging.getLogger(__name__)


def _collectors(
    config: dict,
    package_client: PackageClient,
    license_table: LicenseTable,
    dependency_client: ReleaseDependencyClient | None,
    vulnerability_client: VulnerabilityClient | None,
) -> dict[str, Callable[[RepoClient], object]]:
    exclude_paths = config.get("exclude_paths")
    return {
        "branch_protection": lambda client: branch_protection(client, exclude_paths=exclude_paths),
        "code_review": code_review,
        "ci_tests": ci_tests,
        "dangerous_workflow": lambda client: dangerous_workflow(client, exclude_paths=exclude_paths),
        "license": lambda client: licenses(client, license_table),
        "mttu_dependencies": lambda client: mttu_dependencies(client, package_client, exclude_paths=exclude_paths),
        "pinned_dependencies": lambda client: pinned_dependencies(client, exclude_paths=exclude_paths),
        "tag_protection": tag_protection,
        "webhooks": webhooks,
        "contributors": contributors,
        "security_policy": security_policy,
        "binary_artifacts": lambda client: binary_artifacts(client, exclude_paths=exclude_paths),
        "dependency_update_tool": dependency_update_tool,
        "signed_releases": signed_releases,
        "releases_deps_vulnfree": lambda client: releases_deps_vulnfree(
            client, dependency_client, vulnerability_client
        ),
    }


def collect_raw_results(
    client: RepoClient,
    config: dict,
    package_client: PackageClient | None = None,
    license_table: LicenseTable | None = None,
    dependency_client: ReleaseDependencyClient | None = None,
    vulnerability_client: VulnerabilityClient | None = None,
) -> RawResults:
    """Run every check named in ``config["checks"]`` and gather what each found.

    Checks run in a fixed order whatever order the config lists them in. A
    check that raises leaves its field as None and its error in
    ``RawResults.errors``; the remaining checks still run. Anything other
    than a ScorecardError is recorded as an INTERNAL error.

    ``dependency_client`` and ``vulnerability_client`` are only needed by
    ``releases_deps_vulnfree``; without them that check fails with
    UNSUPPORTED_FEATURE on a repository that has releases.

    Raises:
        ValueError: ``config["checks"]`` names a check that does not exist.
    """
    requested = set(config.get("checks", CHECK_NAMES))
    unknown = sorted(name for name in requested if name not in CHECK_NAMES)
    if unknown:
        raise ValueError(f"Unknown checks: {', '.join(unknown)}. Valid checks: {', '.join(CHECK_NAMES)}")

    if package_client is None and "mttu_dependencies" in requested:
        package_client = DepsDevClient(
            base_url=config.get("depsdev_base_url", DEFAULT_BASE_URL),
            timeout=config.get("http_timeout", DEFAULT_TIMEOUT),
        )
    if license_table is None:
        license_table = LicenseTable.default()

    collectors = _collectors(config, package_client, license_table, dependency_client, vulnerability_client)
    results = RawResults()

    for name in CHECK_NAMES:
        if name not in requested:
            continue
        logger.info("Running %s on %s", name, client.uri())
        try:
            setattr(results, name, collectors[name](client))
        except ScorecardError as e:
            logger.error("%s failed: %s", name, e)
            results.errors[name] = e
        except Exception as e:
            logger.exception("%s failed unexpectedly", name)
            results.errors[name] = internal_error(f"{name}: unexpected error", e)

    logger.info(
        "Collected %d of %d checks for %s",
        len(requested) - len(results.errors),
        len(requested),
        client.uri(),
    )
    return results


def collect_for_repo(repo_name: str, config: dict) -> RawResults:
    """Collect raw results for a GitHub repository given as ``owner/name``."""
    client = GithubRepoClient.from_name(
        repo_name,
        config.get("github_token"),
        commit_depth=config.get("commit_depth", DEFAULT_COMMIT_DEPTH),
    )
    return collect_raw_results(client, config)
