"""Tagged error type shared by clients and collectors.

Every failure a client or collector reports is a ScorecardError carrying one
ErrorKind. Callers decide between skipping and aborting by switching on the
kind; the underlying exception, when there is one, rides along as ``cause``
and as ``__cause__``.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INTERNAL = "internal"
    UNSUPPORTED_FEATURE = "unsupported_feature"
    API = "api"
    INVALID_INPUT = "invalid_input"


class ScorecardError(Exception):
    def __init__(self, kind: ErrorKind, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.kind.value}: {self.message}: {self.cause}"
        return f"{self.kind.value}: {self.message}"


def unsupported_feature(message: str) -> ScorecardError:
    return ScorecardError(ErrorKind.UNSUPPORTED_FEATURE, message)


def internal_error(message: str, cause: BaseException | None = None) -> ScorecardError:
    return ScorecardError(ErrorKind.INTERNAL, message, cause)


def api_error(message: str, cause: BaseException | None = None) -> ScorecardError:
    return ScorecardError(ErrorKind.API, message, cause)


def invalid_input(message: str, cause: BaseException | None = None) -> ScorecardError:
    return ScorecardError(ErrorKind.INVALID_INPUT, message, cause)


def is_kind(exc: BaseException | None, kind: ErrorKind) -> bool:
    """Return True if ``exc`` or anything in its cause chain is a ScorecardError of ``kind``."""
    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        if isinstance(exc, ScorecardError) and exc.kind is kind:
            return True
        exc = exc.__cause__
    return False
