"""Go module flavoured semantic versions.

Versions must start with ``v``. The shorthands ``vMAJOR`` and
``vMAJOR.MINOR`` are accepted and mean ``.0`` for the missing parts, but
cannot carry a prerelease or build suffix. Numeric parts and numeric
prerelease identifiers may not have leading zeros. Build metadata is
ignored when comparing.
"""

from __future__ import annotations

import re
from typing import NamedTuple

_NUM = r"(0|[1-9][0-9]*)"
_IDENTS = r"[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*"
_SEMVER_RE = re.compile(
    rf"^v{_NUM}(?:\.{_NUM}(?:\.{_NUM}(?:-(?P<pre>{_IDENTS}))?(?:\+(?P<build>{_IDENTS}))?)?)?$"
)


class Version(NamedTuple):
    major: str
    minor: str
    patch: str
    prerelease: tuple[str, ...]


def parse(v: str) -> Version | None:
    m = _SEMVER_RE.match(v)
    if not m:
        return None
    pre = m.group("pre")
    prerelease = tuple(pre.split(".")) if pre else ()
    for ident in prerelease:
        if ident.isdigit() and len(ident) > 1 and ident[0] == "0":
            return None
    return Version(m.group(1), m.group(2) or "0", m.group(3) or "0", prerelease)


def is_valid(v: str) -> bool:
    return parse(v) is not None


def _compare_int(x: str, y: str) -> int:
    # Both are canonical decimal strings, so length orders them before lexical order does.
    if x == y:
        return 0
    if (len(x), x) < (len(y), y):
        return -1
    return 1


def _compare_ident(x: str, y: str) -> int:
    x_num, y_num = x.isdigit(), y.isdigit()
    if x_num and y_num:
        return _compare_int(x, y)
    if x_num:
        return -1
    if y_num:
        return 1
    if x == y:
        return 0
    return -1 if x < y else 1


def _compare_prerelease(x: tuple[str, ...], y: tuple[str, ...]) -> int:
    if x == y:
        return 0
    # A version without a prerelease has higher precedence.
    if not x:
        return 1
    if not y:
        return -1
    for a, b in zip(x, y):
        c = _compare_ident(a, b)
        if c:
            return c
    return -1 if len(x) < len(y) else 1


def compare(v: str, w: str) -> int:
    """Return -1, 0 or 1 as ``v`` is lower than, equal to or greater than ``w``.

    Invalid versions compare lower than every valid one and equal to each other.
    """
    pv, pw = parse(v), parse(w)
    if pv is None and pw is None:
        return 0
    if pv is None:
        return -1
    if pw is None:
        return 1
    for a, b in ((pv.major, pw.major), (pv.minor, pw.minor), (pv.patch, pw.patch)):
        c = _compare_int(a, b)
        if c:
            return c
    return _compare_prerelease(pv.prerelease, pw.prerelease)
