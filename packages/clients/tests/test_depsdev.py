"""Tests for the deps.dev package client."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from scorecard_clients.depsdev import DepsDevClient
from scorecard_clients.errors import ErrorKind, ScorecardError


def _response(status_code=200, payload=None, json_error=None):
    resp = MagicMock()
    resp.status_code = status_code
    if json_error is not None:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = payload or {}
    return resp


@pytest.fixture
def session():
    s = MagicMock()
    s.headers = {}
    return s


class TestGetPackage:
    def test_parses_versions(self, session):
        session.get.return_value = _response(
            payload={
                "versions": [
                    {"versionKey": {"system": "GO", "name": "x", "version": "v1.0.0"}, "publishedAt": "2024-01-01T00:00:00Z"},
                    {"versionKey": {"system": "GO", "name": "x", "version": "v1.1.0"}},
                ]
            }
        )
        client = DepsDevClient(session=session)

        pkg = client.get_package("go", "github.com/foo/bar")

        assert pkg.system == "GO"
        assert [v.version for v in pkg.versions] == ["v1.0.0", "v1.1.0"]
        assert pkg.versions[0].published_at == "2024-01-01T00:00:00Z"
        assert pkg.versions[1].published_at == ""

    def test_url_escapes_package_name(self, session):
        session.get.return_value = _response(payload={"versions": []})
        DepsDevClient(base_url="https://api.deps.dev/v3alpha/", session=session).get_package("GO", "github.com/foo/bar")
        url = session.get.call_args.args[0]
        assert url == "https://api.deps.dev/v3alpha/systems/GO/packages/github.com%2Ffoo%2Fbar"

    def test_uses_timeout(self, session):
        session.get.return_value = _response(payload={})
        DepsDevClient(timeout=3, session=session).get_package("NPM", "left-pad")
        assert session.get.call_args.kwargs["timeout"] == 3

    def test_not_found(self, session):
        session.get.return_value = _response(status_code=404)
        with pytest.raises(ScorecardError) as exc_info:
            DepsDevClient(session=session).get_package("NPM", "nope")
        assert exc_info.value.kind is ErrorKind.API
        assert "not found" in str(exc_info.value)

    def test_server_error(self, session):
        session.get.return_value = _response(status_code=503)
        with pytest.raises(ScorecardError) as exc_info:
            DepsDevClient(session=session).get_package("NPM", "x")
        assert exc_info.value.kind is ErrorKind.API

    def test_transport_error(self, session):
        session.get.side_effect = requests.exceptions.ConnectionError("down")
        with pytest.raises(ScorecardError) as exc_info:
            DepsDevClient(session=session).get_package("NPM", "x")
        assert exc_info.value.kind is ErrorKind.API

    def test_bad_json(self, session):
        session.get.return_value = _response(json_error=ValueError("bad json"))
        with pytest.raises(ScorecardError) as exc_info:
            DepsDevClient(session=session).get_package("NPM", "x")
        assert exc_info.value.kind is ErrorKind.INVALID_INPUT

    def test_versions_without_version_are_dropped(self, session):
        session.get.return_value = _response(payload={"versions": [{"versionKey": {}}, {"publishedAt": "x"}]})
        assert DepsDevClient(session=session).get_package("NPM", "x").versions == ()
