"""Group default-branch commits into reviewed changesets.

Each commit is attributed to the review platform that accepted it by a
fixed sequence of heuristics; commits with the same platform and revision
ID belong to one changeset.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Callable, NamedTuple

from scorecard_clients.models import Review, User

from scorecard_raw.data import Changeset, CodeReviewData, ReviewPlatform

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient
    from scorecard_clients.models import Commit

logger = logging.getLogger(__name__)

_PROW_LABELS = ("lgtm", "approved")
# URL form, e.g. "Differential Revision: https://reviews.llvm.org/D12345"
_PHABRICATOR_URL_RE = re.compile(r"Differential Revision:[^\r\n]*/(D\d+)")
_PHABRICATOR_RE = re.compile(r"Differential Revision:\s*(\w+)")
_PIPER_RE = re.compile(r"PiperOrigin-RevId:\s*(\d{3,})")


class RevisionInfo(NamedTuple):
    platform: ReviewPlatform
    revision_id: str


def prow_revision_id(commit: Commit) -> str:
    mr = commit.associated_merge_request
    if mr.is_merged and mr.number != 0 and any(label.name in _PROW_LABELS for label in mr.labels):
        return str(mr.number)
    return ""


def github_revision_id(commit: Commit) -> str:
    mr = commit.associated_merge_request
    if mr.is_merged and mr.number != 0:
        return str(mr.number)
    return ""


def phabricator_revision_id(commit: Commit) -> str:
    match = _PHABRICATOR_URL_RE.search(commit.message) or _PHABRICATOR_RE.search(commit.message)
    return match.group(1) if match else ""


def gerrit_revision_id(commit: Commit) -> str:
    if "Reviewed-on:" in commit.message and "Reviewed-by:" in commit.message:
        return commit.sha
    return ""


def piper_revision_id(commit: Commit) -> str:
    match = _PIPER_RE.search(commit.message)
    return match.group(1) if match else ""


# Order matters: a Prow-labelled PR is also a merged GitHub PR, and a Gerrit
# trailer may sit next to a Phabricator one. The first rule that matches wins.
_DETECTORS: tuple[tuple[ReviewPlatform, Callable[[Commit], str]], ...] = (
    (ReviewPlatform.PROW, prow_revision_id),
    (ReviewPlatform.GITHUB, github_revision_id),
    (ReviewPlatform.PHABRICATOR, phabricator_revision_id),
    (ReviewPlatform.GERRIT, gerrit_revision_id),
    (ReviewPlatform.PIPER, piper_revision_id),
)


def detect_revision(commit: Commit) -> RevisionInfo:
    """Return the review platform and revision ID for a commit, or (UNKNOWN, "")."""
    for platform, detector in _DETECTORS:
        revision_id = detector(commit)
        if revision_id:
            return RevisionInfo(platform, revision_id)
    return RevisionInfo(ReviewPlatform.UNKNOWN, "")


def _prow_reviews(commit: Commit) -> list[Review]:
    """Prow records approval as labels; turn each into a synthetic APPROVED review."""
    names = {label.name for label in commit.associated_merge_request.labels}
    return [
        Review(state="APPROVED", author=User(login=f"prow-{label}"))
        for label in _PROW_LABELS
        if label in names
    ]


def _new_changeset(commit: Commit, rev: RevisionInfo) -> Changeset:
    changeset = Changeset(review_platform=rev.platform, revision_id=rev.revision_id, commits=[commit])
    mr = commit.associated_merge_request
    if rev.platform is ReviewPlatform.GITHUB:
        changeset.reviews = list(mr.reviews)
    elif rev.platform is ReviewPlatform.PROW:
        changeset.reviews = _prow_reviews(commit)
    if rev.platform in (ReviewPlatform.GITHUB, ReviewPlatform.PROW) and mr.author is not None:
        changeset.authors = [mr.author]
    return changeset


def get_changesets(commits: list[Commit]) -> list[Changeset]:
    """Partition commits into changesets.

    Changesets come out in the order their first commit appears in
    ``commits``; commits inside a changeset keep input order. A commit with
    no detectable platform becomes its own changeset, keyed by its SHA.
    """
    changesets: list[Changeset] = []
    by_revision: dict[RevisionInfo, Changeset] = {}

    for commit in commits:
        rev = detect_revision(commit)
        if rev.platform is ReviewPlatform.UNKNOWN:
            changesets.append(_new_changeset(commit, RevisionInfo(rev.platform, commit.sha)))
            continue

        existing = by_revision.get(rev)
        if existing is None:
            changeset = _new_changeset(commit, rev)
            by_revision[rev] = changeset
            changesets.append(changeset)
        else:
            existing.commits.append(commit)

    return changesets


def code_review(client: RepoClient) -> CodeReviewData:
    commits = client.list_commits()
    changesets = get_changesets(commits)
    logger.debug("Grouped %d commits into %d changesets", len(commits), len(changesets))
    return CodeReviewData(default_branch_changesets=changesets)
