"""Tests for the tagged error type."""

from scorecard_clients.errors import (
    ErrorKind,
    ScorecardError,
    api_error,
    internal_error,
    is_kind,
    unsupported_feature,
)


class TestScorecardError:
    def test_kind_and_message(self):
        err = internal_error("commitish nil")
        assert err.kind is ErrorKind.INTERNAL
        assert err.message == "commitish nil"
        assert str(err) == "internal: commitish nil"

    def test_cause_is_chained(self):
        cause = ValueError("boom")
        err = api_error("list_commits", cause)
        assert err.__cause__ is cause
        assert "boom" in str(err)

    def test_unsupported_feature_helper(self):
        assert unsupported_feature("ListTags").kind is ErrorKind.UNSUPPORTED_FEATURE


class TestIsKind:
    def test_direct_match(self):
        assert is_kind(unsupported_feature("x"), ErrorKind.UNSUPPORTED_FEATURE)

    def test_no_match_for_other_kind(self):
        assert not is_kind(api_error("x"), ErrorKind.UNSUPPORTED_FEATURE)

    def test_match_through_cause_chain(self):
        inner = unsupported_feature("GetTag")
        outer = ScorecardError(ErrorKind.API, "wrapped", inner)
        assert is_kind(outer, ErrorKind.UNSUPPORTED_FEATURE)

    def test_plain_exception(self):
        assert not is_kind(RuntimeError("x"), ErrorKind.API)

    def test_none(self):
        assert not is_kind(None, ErrorKind.API)
