"""Shared fixtures for collector tests."""

from __future__ import annotations

import pytest

from scorecard_clients.base import RepoClient
from scorecard_clients.models import BranchRef


class FakeRepoClient(RepoClient):
    """In-memory RepoClient.

    Every list/get method answers from the constructor arguments. ``errors``
    maps a method name to an exception that method raises instead.
    """

    def __init__(
        self,
        uri="github.com/ossf/scorecard",
        default_branch="main",
        branches=None,
        commits=None,
        releases=None,
        webhooks=None,
        contributors=None,
        files=None,
        check_runs=None,
        statuses=None,
        tags=None,
        licenses=None,
        workflow_runs=None,
        org_client=None,
        errors=None,
    ):
        self._uri = uri
        self._default_branch = default_branch
        self.branches = {b.name: b for b in (branches or [BranchRef(name=default_branch)])}
        self.commits = commits or []
        self.releases = releases or []
        self.webhooks = webhooks or []
        self.contributors = contributors or []
        self.files = files or {}
        self.check_runs = check_runs or {}
        self.statuses = statuses or {}
        self.tags = tags
        self.licenses = licenses
        self.workflow_runs = workflow_runs
        self.org_client = org_client
        self.errors = errors or {}
        self.calls: list[tuple] = []

    def _record(self, method, *args):
        self.calls.append((method, *args))
        if method in self.errors:
            raise self.errors[method]

    def uri(self):
        return self._uri

    def get_default_branch_name(self):
        return self._default_branch

    def get_default_branch(self):
        self._record("get_default_branch")
        return self.branches.get(self._default_branch)

    def get_branch(self, name):
        self._record("get_branch", name)
        return self.branches.get(name)

    def list_branches(self):
        self._record("list_branches")
        return list(self.branches.values())

    def list_commits(self):
        self._record("list_commits")
        return list(self.commits)

    def list_releases(self):
        self._record("list_releases")
        return list(self.releases)

    def list_webhooks(self):
        self._record("list_webhooks")
        return list(self.webhooks)

    def list_contributors(self):
        self._record("list_contributors")
        return list(self.contributors)

    def list_files(self, predicate):
        self._record("list_files")
        return [path for path in self.files if predicate(path)]

    def get_file_content(self, path):
        self._record("get_file_content", path)
        content = self.files[path]
        return content.encode() if isinstance(content, str) else content

    def list_check_runs_for_ref(self, ref):
        self._record("list_check_runs_for_ref", ref)
        return list(self.check_runs.get(ref, []))

    def list_statuses(self, ref):
        self._record("list_statuses", ref)
        return list(self.statuses.get(ref, []))

    def get_tag(self, name):
        self._record("get_tag", name)
        if self.tags is None:
            return super().get_tag(name)
        return self.tags.get(name)

    def list_licenses(self):
        self._record("list_licenses")
        if self.licenses is None:
            return super().list_licenses()
        return list(self.licenses)

    def list_successful_workflow_runs(self, filename):
        self._record("list_successful_workflow_runs", filename)
        if self.workflow_runs is None:
            return super().list_successful_workflow_runs(filename)
        return list(self.workflow_runs.get(filename, []))

    def org_health_client(self):
        self._record("org_health_client")
        if self.org_client is None:
            return super().org_health_client()
        return self.org_client


@pytest.fixture
def make_client():
    return FakeRepoClient
