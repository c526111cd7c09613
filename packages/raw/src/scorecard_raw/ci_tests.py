"""Gather CI signals for the pull requests behind recent default-branch commits."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from scorecard_raw.data import CITestData, RevisionCIInfo

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient

logger = logging.getLogger(__name__)


def ci_tests(client: RepoClient) -> CITestData:
    """Return check runs and commit statuses for each merged pull request's head commit.

    Several commits can share one pull request; its head is queried once.
    """
    data = CITestData()
    seen = set()
    for commit in client.list_commits():
        mr = commit.associated_merge_request
        if not mr.is_merged or not mr.head_sha or mr.head_sha in seen:
            continue
        seen.add(mr.head_sha)
        data.ci_info.append(
            RevisionCIInfo(
                head_sha=mr.head_sha,
                pull_request_number=mr.number,
                check_runs=list(client.list_check_runs_for_ref(mr.head_sha)),
                statuses=list(client.list_statuses(mr.head_sha)),
            )
        )
    logger.debug("Collected CI results for %d merged pull requests", len(data.ci_info))
    return data
