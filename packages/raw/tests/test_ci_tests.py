"""Tests for the CI tests collector."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from scorecard_clients.errors import ScorecardError, api_error
from scorecard_clients.models import CheckRun, Commit, PullRequest, Status

from scorecard_raw.ci_tests import ci_tests

MERGED = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _commit(sha, number=0, head_sha="", merged=True):
    pr = PullRequest(number=number, merged_at=MERGED if merged else None, head_sha=head_sha)
    return Commit(sha=sha, associated_merge_request=pr)


class TestCITests:
    def test_collects_per_merged_pr_head(self, make_client):
        run = CheckRun(status="completed", conclusion="success", app_slug="github-actions")
        status = Status(state="success", context="ci/circleci")
        client = make_client(
            commits=[
                _commit("c3", number=12, head_sha="h12"),
                _commit("c2", number=12, head_sha="h12"),
                _commit("c1", number=11, head_sha="h11"),
            ],
            check_runs={"h12": [run]},
            statuses={"h11": [status]},
        )

        data = ci_tests(client)

        assert [(i.head_sha, i.pull_request_number) for i in data.ci_info] == [("h12", 12), ("h11", 11)]
        assert data.ci_info[0].check_runs == [run]
        assert data.ci_info[0].statuses == []
        assert data.ci_info[1].statuses == [status]
        assert client.calls.count(("list_check_runs_for_ref", "h12")) == 1

    def test_skips_unmerged_and_direct_pushes(self, make_client):
        client = make_client(
            commits=[
                _commit("c2", number=5, head_sha="h5", merged=False),
                _commit("c1"),
            ]
        )
        assert ci_tests(client).ci_info == []
        assert not any(call[0] == "list_statuses" for call in client.calls)

    def test_errors_propagate(self, make_client):
        client = make_client(
            commits=[_commit("c1", number=1, head_sha="h1")],
            errors={"list_statuses": api_error("boom")},
        )
        with pytest.raises(ScorecardError):
            ci_tests(client)
