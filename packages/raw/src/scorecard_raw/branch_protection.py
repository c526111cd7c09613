"""Collect the branches whose protection settings matter.

That is the default branch plus every branch a release was cut from, each
fetched once, along with any CODEOWNERS files in the repository.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from scorecard_clients.errors import ScorecardError, internal_error

from scorecard_raw.data import BranchProtectionsData
from scorecard_raw.errors import ERR_COMMITISH_NIL
from scorecard_raw.utils.fileparser import PathMatcher, iter_matching_files

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient
    from scorecard_clients.models import BranchRef

logger = logging.getLogger(__name__)

_COMMIT_SHA_RE = re.compile(r"^[a-f0-9]{40}$")
_CODEOWNERS = PathMatcher(pattern="CODEOWNERS", case_sensitive=True)

# Renamed default branches GitHub redirects to. Only master -> main is handled.
_BRANCH_REDIRECTS = {"master": "main"}


def branch_redirect(name: str) -> str:
    return _BRANCH_REDIRECTS.get(name, "")


class _BranchSet:
    """Insertion-ordered set of branches keyed by name."""

    def __init__(self):
        self.branches: list[BranchRef] = []
        self._names: set[str] = set()

    def add(self, branch: BranchRef | None) -> bool:
        if branch is None or not branch.name or branch.name in self._names:
            return False
        self.branches.append(branch)
        self._names.add(branch.name)
        return True

    def __contains__(self, name: str) -> bool:
        return name in self._names


def _get_branch(client: RepoClient, name: str) -> BranchRef | None:
    try:
        return client.get_branch(name)
    except ScorecardError as e:
        raise ScorecardError(e.kind, f"GetBranch({name})", e) from e


def branch_protection(client: RepoClient, exclude_paths: list[str] | None = None) -> BranchProtectionsData:
    branches = _BranchSet()
    branches.add(client.get_default_branch())

    for release in client.list_releases():
        commitish = release.target_commitish
        if not commitish:
            raise internal_error(ERR_COMMITISH_NIL)

        # TODO: resolve a SHA commitish to the branch that contains it.
        if _COMMIT_SHA_RE.match(commitish):
            continue

        redirect = branch_redirect(commitish)
        if commitish in branches or (redirect and redirect in branches):
            continue

        if branches.add(_get_branch(client, commitish)):
            continue

        if not redirect:
            logger.debug("Release branch %s not found", commitish)
            continue
        # The branch may have been renamed; GitHub keeps the old name as a redirect.
        branches.add(_get_branch(client, redirect))

    codeowners_files = [path for path, _ in iter_matching_files(client, _CODEOWNERS, exclude_paths)]
    logger.debug("Found CODEOWNERS files: %s", codeowners_files)

    return BranchProtectionsData(branches=branches.branches, codeowners_files=codeowners_files)
