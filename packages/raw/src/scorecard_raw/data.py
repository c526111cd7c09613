"""Raw result records produced by the collectors.

One record per check, flat and behaviour-free. Downstream scoring reads
these; nothing here decides pass or fail.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from scorecard_clients.errors import ScorecardError
from scorecard_clients.models import (
    BranchRef,
    CheckRun,
    Commit,
    Contributor,
    DirectDependency,
    Release,
    Review,
    Status,
    TagRef,
    User,
    Webhook,
)


class ReviewPlatform(str, Enum):
    GITHUB = "GitHub"
    PROW = "Prow"
    GERRIT = "Gerrit"
    PHABRICATOR = "Phabricator"
    PIPER = "Piper"
    UNKNOWN = "Unknown"


class FileType(str, Enum):
    NONE = "none"
    SOURCE = "source"
    BINARY = "binary"
    TEXT = "text"
    URL = "url"


@dataclass
class File:
    """A location in the repository that a finding points at."""

    path: str
    type: FileType = FileType.SOURCE
    offset: int = 0  # 1-based line for source and text files
    end_offset: int = 0
    snippet: str = ""


# ---------------------------------------------------------------------------
# Code review
# ---------------------------------------------------------------------------


@dataclass
class Changeset:
    """Commits that were reviewed and merged together as one unit."""

    review_platform: ReviewPlatform
    revision_id: str
    commits: list[Commit] = field(default_factory=list)
    reviews: list[Review] = field(default_factory=list)
    authors: list[User] = field(default_factory=list)


@dataclass
class CodeReviewData:
    default_branch_changesets: list[Changeset] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Branch / tag protection, webhooks
# ---------------------------------------------------------------------------


@dataclass
class BranchProtectionsData:
    branches: list[BranchRef] = field(default_factory=list)
    codeowners_files: list[str] = field(default_factory=list)


@dataclass
class GitLabProtectedTag:
    pattern: str
    create_access_level: int


@dataclass
class TagProtectionsData:
    tags: list[TagRef] = field(default_factory=list)
    gitlab_branches: list[str] = field(default_factory=list)
    gitlab_protected_tags: list[GitLabProtectedTag] = field(default_factory=list)


@dataclass
class WebhooksData:
    webhooks: list[Webhook] = field(default_factory=list)


# ---------------------------------------------------------------------------
# License
# ---------------------------------------------------------------------------


class LicenseAttributionType(str, Enum):
    REPOSITORY_API = "repositoryAPI"
    BUILTIN_HEURISTICS = "builtinHeuristics"


@dataclass
class LicenseInfo:
    approved: bool = False
    key: str = ""
    name: str = ""
    spdx_id: str = ""
    attribution: LicenseAttributionType | None = None


@dataclass
class LicenseFile:
    file: File
    license: LicenseInfo = field(default_factory=LicenseInfo)


@dataclass
class LicenseData:
    license_files: list[LicenseFile] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Workflows and pinning
# ---------------------------------------------------------------------------


class DangerousWorkflowType(str, Enum):
    SCRIPT_INJECTION = "scriptInjection"
    UNTRUSTED_CHECKOUT = "untrustedCheckout"


@dataclass
class WorkflowJob:
    name: str | None = None
    id: str | None = None


@dataclass
class DangerousWorkflow:
    type: DangerousWorkflowType
    file: File
    job: WorkflowJob | None = None


@dataclass
class DangerousWorkflowData:
    workflows: list[DangerousWorkflow] = field(default_factory=list)
    num_workflows: int = 0


class DependencyUseType(str, Enum):
    GITHUB_ACTION = "GitHubAction"
    DOCKERFILE_CONTAINER_IMAGE = "containerImage"
    DOWNLOAD_THEN_RUN = "downloadThenRun"
    GO_COMMAND = "goCommand"
    CHOCO_COMMAND = "chocoCommand"
    NPM_COMMAND = "npmCommand"
    PIP_COMMAND = "pipCommand"


@dataclass
class Remediation:
    text: str
    markdown: str


@dataclass
class Dependency:
    name: str | None
    location: File
    type: DependencyUseType
    pinned_at: str | None = None
    pinned: bool = False
    remediation: Remediation | None = None


@dataclass
class ElementError:
    """A file or job that could not be analysed; results for it may be incomplete."""

    element: File
    message: str


@dataclass
class PinningDependenciesData:
    dependencies: list[Dependency] = field(default_factory=list)
    processing_errors: list[ElementError] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Dependency freshness
# ---------------------------------------------------------------------------


class Ecosystem(str, Enum):
    GO = "Go"
    NPM = "npm"
    PYPI = "PyPI"
    MAVEN = "Maven"
    CARGO = "crates.io"
    NUGET = "NuGet"
    RUBYGEMS = "RubyGems"


@dataclass
class LockDependency:
    name: str
    version: str
    ecosystem: Ecosystem | None
    location: File | None = None
    is_latest: bool | None = None
    # Time elapsed since the oldest release newer than ``version``; None when up to date.
    time_since_oldest_newer_release: timedelta | None = None


@dataclass
class MTTUDependenciesData:
    dependencies: list[LockDependency] = field(default_factory=list)


# ---------------------------------------------------------------------------
# CI tests
# ---------------------------------------------------------------------------


@dataclass
class RevisionCIInfo:
    head_sha: str
    pull_request_number: int
    check_runs: list[CheckRun] = field(default_factory=list)
    statuses: list[Status] = field(default_factory=list)


@dataclass
class CITestData:
    ci_info: list[RevisionCIInfo] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Release dependency vulnerabilities
# ---------------------------------------------------------------------------


@dataclass
class DependencyVulnerabilities:
    """OSV IDs affecting one direct dependency, as of its release."""

    ecosystem: str
    name: str
    version: str
    purl: str = ""
    osv_ids: list[str] = field(default_factory=list)
    manifest_path: str = ""


@dataclass
class ReleaseDependencyVulns:
    tag: str
    commit_sha: str = ""
    published_at: datetime | None = None
    direct_dependencies: list[DirectDependency] = field(default_factory=list)
    findings: list[DependencyVulnerabilities] = field(default_factory=list)


@dataclass
class ReleaseDirectDepsVulnsData:
    releases: list[ReleaseDependencyVulns] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Repository files and metadata
# ---------------------------------------------------------------------------


@dataclass
class ContributorsData:
    contributors: list[Contributor] = field(default_factory=list)


class SecurityPolicyInformationType(str, Enum):
    EMAIL = "emailAddress"
    LINK = "httpLink"
    TEXT = "vulnDisclosureText"


@dataclass
class SecurityPolicyInformation:
    type: SecurityPolicyInformationType
    match: str
    line_number: int  # 1-based
    offset: int  # 0-based column of the match


@dataclass
class SecurityPolicyFile:
    file: File
    information: list[SecurityPolicyInformation] = field(default_factory=list)
    size: int = 0  # bytes


@dataclass
class SecurityPolicyData:
    policy_files: list[SecurityPolicyFile] = field(default_factory=list)


@dataclass
class BinaryArtifactData:
    files: list[File] = field(default_factory=list)


@dataclass
class Tool:
    name: str
    url: str = ""
    description: str = ""
    files: list[File] = field(default_factory=list)


@dataclass
class DependencyUpdateToolData:
    tools: list[Tool] = field(default_factory=list)


@dataclass
class SignedReleasesData:
    releases: list[Release] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


@dataclass
class RawResults:
    """Everything one collection run produced.

    A check that failed has no data and an entry in ``errors`` keyed by its
    name; checks that were not requested have neither.
    """

    branch_protection: BranchProtectionsData | None = None
    code_review: CodeReviewData | None = None
    ci_tests: CITestData | None = None
    dangerous_workflow: DangerousWorkflowData | None = None
    license: LicenseData | None = None
    mttu_dependencies: MTTUDependenciesData | None = None
    pinned_dependencies: PinningDependenciesData | None = None
    tag_protection: TagProtectionsData | None = None
    webhooks: WebhooksData | None = None
    contributors: ContributorsData | None = None
    security_policy: SecurityPolicyData | None = None
    binary_artifacts: BinaryArtifactData | None = None
    dependency_update_tool: DependencyUpdateToolData | None = None
    signed_releases: SignedReleasesData | None = None
    releases_deps_vulnfree: ReleaseDirectDepsVulnsData | None = None
    errors: dict[str, ScorecardError] = field(default_factory=dict)
