"""Helpers for finding and reading repository files through a RepoClient."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient


@dataclass(frozen=True)
class PathMatcher:
    pattern: str
    case_sensitive: bool = False

    def matches(self, path: str) -> bool:
        """Match the pattern against the full path, then against the file name alone."""
        pattern = self.pattern
        if not self.case_sensitive:
            pattern = pattern.lower()
            path = path.lower()
        return fnmatchcase(path, pattern) or fnmatchcase(posixpath.basename(path), pattern)


def is_testdata_file(path: str) -> bool:
    return (
        path.startswith("testdata/")
        or "/testdata/" in path
        or path.startswith("src/test/")
        or "/src/test/" in path
    )


def is_excluded(path: str, exclude_paths: list[str] | None) -> bool:
    """Return True if ``path`` sits under one of the directory prefixes in ``exclude_paths``."""
    if not exclude_paths:
        return False
    return any(path.startswith(prefix) or f"/{prefix}" in path for prefix in exclude_paths)


def iter_matching_files(
    client: RepoClient, matcher: PathMatcher, exclude_paths: list[str] | None = None
) -> Iterator[tuple[str, bytes]]:
    """Yield ``(path, content)`` for every non-test file the matcher accepts.

    Paths under a prefix in ``exclude_paths`` are skipped as well. Files are
    fetched lazily, so a caller that stops early does not pay for the rest.
    """
    paths = client.list_files(
        lambda p: not is_testdata_file(p) and not is_excluded(p, exclude_paths) and matcher.matches(p)
    )
    for path in paths:
        yield path, client.get_file_content(path)


def file_contains_commands(content: bytes | str, comment: str = "#") -> bool:
    """Return True if any line is neither blank nor a comment."""
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    for line in content.splitlines():
        line = line.strip()
        if line and not line.startswith(comment):
            return True
    return False


def is_template_file(path: str) -> bool:
    name = posixpath.basename(path)
    for sep in "-_":
        name = name.replace(sep, ".")
    return any(part.lower() in ("template", "tmpl", "tpl") for part in name.split("."))
