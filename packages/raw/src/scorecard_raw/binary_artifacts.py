"""Find binary files checked into the repository.

A file is binary when its content sniffs as one of the known binary
formats, or when it has a binary extension and its content is not
printable text. Gradle wrapper JARs are dropped when a workflow validates
them and that workflow last succeeded on the newest commit.
"""

from __future__ import annotations

import logging
import posixpath
import re
from typing import TYPE_CHECKING

import filetype

from scorecard_clients.errors import ErrorKind, ScorecardError

from scorecard_raw.data import BinaryArtifactData, File, FileType
from scorecard_raw.utils import semver
from scorecard_raw.utils.fileparser import PathMatcher, iter_matching_files
from scorecard_raw.utils.workflow import is_workflow_file, parse_workflow

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient

logger = logging.getLogger(__name__)

_ALL_FILES = PathMatcher(pattern="*")
_WORKFLOW_FILES = PathMatcher(pattern=".github/workflows/*")

_BINARY_EXTENSIONS = frozenset(
    {
        "crx",
        "deb",
        "dex",
        "dey",
        "elf",
        "o",
        "so",
        "macho",
        "iso",
        "class",
        "jar",
        "bundle",
        "dylib",
        "lib",
        "msi",
        "dll",
        "drv",
        "efi",
        "exe",
        "ocx",
        "pyc",
        "pyo",
        "par",
        "rpm",
        "whl",
    }
)

_GRADLE_WRAPPER = "gradle-wrapper.jar"
_GRADLE_VALIDATION_ACTION_RE = re.compile(r"^gradle/wrapper-validation-action@v?(.+)$")
_GRADLE_VALIDATION_MIN_VERSION = "v1.0.0"


def is_text(content: bytes) -> bool:
    """Return True if every character is printable or a tab, newline or carriage return."""
    text = content.decode("utf-8", errors="replace")
    return all(ch in "\t\n\r" or ch.isprintable() for ch in text)


def is_binary_content(path: str, content: bytes) -> bool:
    if not content:
        return False
    kind = filetype.guess(content)
    if kind is not None and kind.extension in _BINARY_EXTENSIONS:
        return True
    extension = posixpath.splitext(path)[1].replace(".", "")
    return extension in _BINARY_EXTENSIONS and not is_text(content)


def _validation_action_version_ok(version: str) -> bool:
    version = f"v{version}"
    return semver.is_valid(version) and semver.compare(version, _GRADLE_VALIDATION_MIN_VERSION) >= 0


def gradle_validation_workflow(client: RepoClient) -> str | None:
    """Return the file name of a workflow that runs the Gradle wrapper validation action."""
    for path, content in iter_matching_files(client, _WORKFLOW_FILES):
        if not is_workflow_file(path):
            continue
        try:
            workflow = parse_workflow(content)
        except ScorecardError as e:
            if e.kind is not ErrorKind.INVALID_INPUT:
                raise
            logger.warning("Skipping workflow %s: %s", path, e)
            continue
        for job in workflow.jobs:
            for step in job.steps:
                m = _GRADLE_VALIDATION_ACTION_RE.match(step.uses or "")
                if m and _validation_action_version_ok(m.group(1)):
                    return posixpath.basename(path)
    return None


def gradle_wrapper_validated(client: RepoClient) -> bool:
    """Return True if the wrapper validation workflow succeeded on the newest commit."""
    workflow = gradle_validation_workflow(client)
    if workflow is None:
        return False
    try:
        runs = client.list_successful_workflow_runs(workflow)
    except ScorecardError as e:
        if e.kind is ErrorKind.UNSUPPORTED_FEATURE:
            logger.debug("Cannot list workflow runs for %s: %s", client.uri(), e)
            return False
        raise
    commits = client.list_commits()
    if not commits or not runs:
        return False
    return any(run.head_sha == commits[0].sha for run in runs)


def binary_artifacts(client: RepoClient, exclude_paths: list[str] | None = None) -> BinaryArtifactData:
    files = [
        File(path=path, type=FileType.BINARY)
        for path, content in iter_matching_files(client, _ALL_FILES, exclude_paths)
        if is_binary_content(path, content)
    ]

    if any(posixpath.basename(f.path) == _GRADLE_WRAPPER for f in files) and gradle_wrapper_validated(client):
        files = [f for f in files if posixpath.basename(f.path) != _GRADLE_WRAPPER]

    return BinaryArtifactData(files=files)
