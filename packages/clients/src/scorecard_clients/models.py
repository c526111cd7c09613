"""Value records returned by repository and package-registry clients.

These mirror hosting-API responses closely and carry no behaviour beyond a
couple of convenience properties. They are frozen: once a client has built
one, collectors only read it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class User:
    login: str = ""
    id: int = 0


@dataclass(frozen=True)
class Label:
    name: str


@dataclass(frozen=True)
class Review:
    state: str  # "APPROVED" | "CHANGES_REQUESTED" | "COMMENTED" | ...
    author: User | None = None
    body: str = ""


@dataclass(frozen=True)
class PullRequest:
    """The merge request a commit landed through.

    An unmerged or absent merge request has ``merged_at`` set to None and
    ``number`` set to 0.
    """

    number: int = 0
    merged_at: datetime | None = None
    head_sha: str = ""
    author: User | None = None
    merged_by: User | None = None
    labels: tuple[Label, ...] = ()
    reviews: tuple[Review, ...] = ()

    @property
    def is_merged(self) -> bool:
        return self.merged_at is not None


@dataclass(frozen=True)
class Commit:
    sha: str
    message: str = ""
    committed_date: datetime | None = None
    committer: User | None = None
    associated_merge_request: PullRequest = field(default_factory=PullRequest)


@dataclass(frozen=True)
class BranchProtectionRule:
    allow_deletions: bool | None = None
    allow_force_pushes: bool | None = None
    enforce_admins: bool | None = None
    require_linear_history: bool | None = None
    required_approving_review_count: int | None = None
    dismiss_stale_reviews: bool | None = None
    require_code_owner_reviews: bool | None = None
    require_up_to_date_branch: bool | None = None
    status_check_contexts: tuple[str, ...] = ()


@dataclass(frozen=True)
class BranchRef:
    name: str
    protected: bool = False
    protection_rule: BranchProtectionRule = field(default_factory=BranchProtectionRule)


@dataclass(frozen=True)
class TagProtectionRule:
    allow_deletions: bool | None = None
    allow_force_pushes: bool | None = None
    enforce_admins: bool | None = None
    allow_updates: bool | None = None
    restrict_creation: bool | None = None
    require_signatures: bool | None = None


@dataclass(frozen=True)
class TagRef:
    name: str
    protected: bool = False
    protection_rule: TagProtectionRule = field(default_factory=TagProtectionRule)


@dataclass(frozen=True)
class ReleaseAsset:
    name: str
    url: str = ""


@dataclass(frozen=True)
class Release:
    tag_name: str
    url: str = ""
    target_commitish: str = ""
    assets: tuple[ReleaseAsset, ...] = ()
    published_at: datetime | None = None


@dataclass(frozen=True)
class Webhook:
    id: int
    path: str = ""
    uses_auth_secret: bool = False


@dataclass(frozen=True)
class License:
    key: str = ""
    name: str = ""
    spdx_id: str = ""
    path: str = ""
    size: int = 0


@dataclass(frozen=True)
class Contributor:
    user: User
    num_contributions: int = 0
    companies: tuple[str, ...] = ()
    organizations: tuple[User, ...] = ()


@dataclass(frozen=True)
class CheckRun:
    status: str = ""  # "queued" | "in_progress" | "completed"
    conclusion: str = ""  # "success" | "failure" | "neutral" | ...
    url: str = ""
    app_slug: str = ""


@dataclass(frozen=True)
class Status:
    state: str = ""  # "success" | "failure" | "error" | "pending"
    context: str = ""
    url: str = ""
    target_url: str = ""


@dataclass(frozen=True)
class ProtectedTagPattern:
    """A GitLab protected-tag rule: a wildcard name pattern plus who may create matching tags."""

    pattern: str
    create_access_levels: tuple[int, ...] = ()


@dataclass(frozen=True)
class PackageVersion:
    version: str
    published_at: str = ""  # RFC 3339 as returned by the registry; parsed by consumers


@dataclass(frozen=True)
class Package:
    system: str
    name: str
    versions: tuple[PackageVersion, ...] = ()


@dataclass(frozen=True)
class DirectDependency:
    """A dependency declared directly in one manifest of a release snapshot."""

    ecosystem: str
    name: str
    version: str
    purl: str = ""
    location: str = ""  # manifest path inside the snapshot


@dataclass(frozen=True)
class VulnerabilityQuery:
    """One package version to look up. ``purl``, when set, identifies the package on its own."""

    ecosystem: str = ""
    name: str = ""
    version: str = ""
    purl: str = ""


@dataclass(frozen=True)
class Vulnerability:
    id: str
    published: datetime | None = None
    aliases: tuple[str, ...] = ()


@dataclass(frozen=True)
class WorkflowRun:
    head_sha: str
    url: str = ""
