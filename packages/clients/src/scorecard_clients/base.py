"""Client interfaces consumed by the raw data collectors.

RepoClient is the core, host-agnostic interface. Methods that only some
hosts can answer have a default implementation raising an
UNSUPPORTED_FEATURE error, so collectors can fall back without knowing which
host they talk to.

Host-specific extensions are separate ABCs (ProtectedTagClient for GitLab's
protected tag patterns). A collector that wants one checks the client with
isinstance() and simply skips that data source when it is absent.

ReleaseDependencyClient and VulnerabilityClient are not tied to a host; the
caller injects them for release vulnerability scanning.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

from scorecard_clients.errors import unsupported_feature

if TYPE_CHECKING:
    from scorecard_clients.models import (
        BranchRef,
        CheckRun,
        Commit,
        Contributor,
        DirectDependency,
        License,
        Package,
        ProtectedTagPattern,
        Release,
        Status,
        TagRef,
        Vulnerability,
        VulnerabilityQuery,
        Webhook,
        WorkflowRun,
    )


class RepoClient(ABC):
    """Read-only view of one repository on a source hosting service.

    Every method either returns a value or raises ScorecardError; list
    methods return an empty list rather than None when there is nothing to
    report.
    """

    @abstractmethod
    def uri(self) -> str:
        """Return the repository as ``host/owner/name``, e.g. ``github.com/ossf/scorecard``."""

    @abstractmethod
    def get_default_branch(self) -> BranchRef | None:
        """Return the default branch with its protection settings."""

    @abstractmethod
    def get_default_branch_name(self) -> str:
        """Return the default branch name without fetching protection settings."""

    @abstractmethod
    def get_branch(self, name: str) -> BranchRef | None:
        """Return the named branch, or None when it does not exist."""

    @abstractmethod
    def list_branches(self) -> list[BranchRef]:
        """Return all branches of the repository."""

    @abstractmethod
    def list_commits(self) -> list[Commit]:
        """Return recent default-branch commits, newest first."""

    @abstractmethod
    def list_releases(self) -> list[Release]:
        """Return published releases."""

    @abstractmethod
    def list_webhooks(self) -> list[Webhook]:
        """Return configured webhooks."""

    @abstractmethod
    def list_contributors(self) -> list[Contributor]:
        """Return contributors ordered by number of contributions."""

    @abstractmethod
    def list_files(self, predicate: Callable[[str], bool]) -> list[str]:
        """Return repository file paths for which ``predicate(path)`` is true."""

    @abstractmethod
    def get_file_content(self, path: str) -> bytes:
        """Return the raw bytes of a file on the default branch."""

    @abstractmethod
    def list_check_runs_for_ref(self, ref: str) -> list[CheckRun]:
        """Return CI check runs reported against a commit SHA or ref."""

    @abstractmethod
    def list_statuses(self, ref: str) -> list[Status]:
        """Return commit statuses reported against a commit SHA or ref."""

    def get_tag(self, name: str) -> TagRef | None:
        raise unsupported_feature("GetTag")

    def list_tags(self) -> list[TagRef]:
        raise unsupported_feature("ListTags")

    def list_licenses(self) -> list[License]:
        raise unsupported_feature("ListLicenses")

    def local_path(self) -> str:
        raise unsupported_feature("LocalPath")

    def list_successful_workflow_runs(self, filename: str) -> list[WorkflowRun]:
        """Return successful runs of the workflow defined in ``.github/workflows/<filename>``."""
        raise unsupported_feature("ListSuccessfulWorkflowRuns")

    def org_health_client(self) -> RepoClient | None:
        """Return a client for the owner's shared ``.github`` repository, or None when there is none."""
        raise unsupported_feature("OrgHealthRepository")


class ProtectedTagClient(ABC):
    """GitLab extension: protected tag patterns and access levels."""

    @abstractmethod
    def get_protected_tag_patterns(self) -> list[ProtectedTagPattern]:
        """Return the protected-tag rules configured on the project."""

    @abstractmethod
    def get_minimum_access_level(self, levels: list[int]) -> int:
        """Return the least privileged access level among ``levels``."""


class PackageClient(ABC):
    """Package registry lookups used to judge dependency freshness."""

    @abstractmethod
    def get_package(self, system: str, name: str) -> Package:
        """Return every known version of a package with its publish time.

        ``system`` is the registry identifier (``GO``, ``NPM``, ``PYPI``, ...).
        Raises ScorecardError(API) when the registry does not know the package.
        """


class ReleaseDependencyClient(ABC):
    """Direct dependencies of the source snapshot behind a release."""

    @abstractmethod
    def get_release_dependencies(self, release: Release) -> list[DirectDependency]:
        """Return the dependencies declared in the manifests of ``release``'s snapshot.

        Raises ScorecardError(API) when the snapshot cannot be fetched.
        """


class VulnerabilityClient(ABC):
    """OSV-style vulnerability database lookups."""

    @abstractmethod
    def query_batch(self, queries: list[VulnerabilityQuery]) -> list[list[str]]:
        """Return the vulnerability IDs affecting each query, in query order."""

    @abstractmethod
    def get_vulnerability(self, vuln_id: str) -> Vulnerability:
        """Return one vulnerability record, including its publish time when known."""
