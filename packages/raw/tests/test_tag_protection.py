"""Tests for the tag protection and webhook collectors."""

from __future__ import annotations

import pytest

from scorecard_clients.base import ProtectedTagClient
from scorecard_clients.errors import ErrorKind, ScorecardError, api_error, unsupported_feature
from scorecard_clients.models import (
    BranchRef,
    ProtectedTagPattern,
    Release,
    TagProtectionRule,
    TagRef,
    Webhook,
)

from scorecard_raw.tag_protection import release_tag_names, tag_protection
from scorecard_raw.webhooks import webhooks

from conftest import FakeRepoClient

MAINTAINER = 40
OWNER = 50

V1 = TagRef(name="v1.0.0", protected=True, protection_rule=TagProtectionRule(allow_deletions=False))
V2 = TagRef(name="v2.0.0", protected=False)


class FakeGitLabClient(FakeRepoClient, ProtectedTagClient):
    def __init__(self, patterns=(), **kwargs):
        super().__init__(**kwargs)
        self.patterns = list(patterns)

    def get_protected_tag_patterns(self):
        return list(self.patterns)

    def get_minimum_access_level(self, levels):
        return min(levels) if levels else 0


class TestReleaseTagNames:
    def test_dedupes_and_drops_empty(self, make_client):
        client = make_client(
            releases=[
                Release(tag_name="v1.0.0"),
                Release(tag_name=""),
                Release(tag_name="v2.0.0"),
                Release(tag_name="v1.0.0"),
            ]
        )
        assert release_tag_names(client) == ["v1.0.0", "v2.0.0"]


class TestTagProtection:
    def test_collects_tags(self, make_client):
        client = make_client(
            releases=[Release(tag_name="v1.0.0"), Release(tag_name="v2.0.0"), Release(tag_name="v1.0.0")],
            tags={"v1.0.0": V1, "v2.0.0": V2},
        )
        data = tag_protection(client)
        assert data.tags == [V1, V2]
        assert client.calls.count(("get_tag", "v1.0.0")) == 1

    def test_missing_tag_skipped(self, make_client):
        client = make_client(releases=[Release(tag_name="v1.0.0"), Release(tag_name="gone")], tags={"v1.0.0": V1})
        assert tag_protection(client).tags == [V1]

    def test_unsupported_get_tag_propagates(self, make_client):
        client = make_client(releases=[Release(tag_name="v1.0.0")])  # no tags configured: base raises
        with pytest.raises(ScorecardError) as exc_info:
            tag_protection(client)
        assert exc_info.value.kind is ErrorKind.UNSUPPORTED_FEATURE

    def test_other_get_tag_errors_skip_the_tag(self, make_client):
        client = make_client(releases=[Release(tag_name="v1.0.0")], tags={}, errors={"get_tag": api_error("boom")})
        assert tag_protection(client).tags == []

    def test_list_releases_error_propagates(self, make_client):
        client = make_client(errors={"list_releases": api_error("boom")})
        with pytest.raises(ScorecardError):
            tag_protection(client)

    def test_no_releases(self, make_client):
        data = tag_protection(make_client(tags={}))
        assert data.tags == []
        assert data.gitlab_branches == []

    def test_non_gitlab_client_has_no_gitlab_data(self, make_client):
        client = make_client(releases=[Release(tag_name="v1.0.0")], tags={"v1.0.0": V1})
        data = tag_protection(client)
        assert data.gitlab_branches == []
        assert data.gitlab_protected_tags == []


class TestTagProtectionGitLab:
    def test_collects_branches_and_patterns(self):
        client = FakeGitLabClient(
            branches=[BranchRef(name="main"), BranchRef(name="stable")],
            releases=[Release(tag_name="v1.0.0")],
            tags={"v1.0.0": V1},
            patterns=[
                ProtectedTagPattern(pattern="v*", create_access_levels=(OWNER, MAINTAINER)),
                ProtectedTagPattern(pattern="release-*", create_access_levels=(OWNER,)),
            ],
        )

        data = tag_protection(client)

        assert data.gitlab_branches == ["main", "stable"]
        assert [(t.pattern, t.create_access_level) for t in data.gitlab_protected_tags] == [
            ("v*", MAINTAINER),
            ("release-*", OWNER),
        ]

    def test_nothing_gitlab_specific_without_tags(self):
        client = FakeGitLabClient(
            branches=[BranchRef(name="main")],
            tags={},
            patterns=[ProtectedTagPattern(pattern="v*", create_access_levels=(MAINTAINER,))],
        )
        data = tag_protection(client)
        assert data.tags == []
        assert data.gitlab_branches == []
        assert data.gitlab_protected_tags == []


class TestWebhooks:
    def test_copies_webhooks(self, make_client):
        hooks = [Webhook(id=1, path="https://hook", uses_auth_secret=True)]
        assert webhooks(make_client(webhooks=hooks)).webhooks == hooks

    def test_error_propagates(self, make_client):
        with pytest.raises(ScorecardError):
            webhooks(make_client(errors={"list_webhooks": unsupported_feature("ListWebhooks")}))
