"""Find third-party code pulled in by mutable reference.

GitHub Actions ``uses:`` entries and Dockerfile ``FROM`` images are
collected and marked pinned when they name an immutable digest. Shell code
is scanned too: workflow ``run:`` steps, Dockerfile ``RUN`` instructions and
shell script files, for downloads piped into an interpreter and package
installs without a hash or exact version.
"""

from __future__ import annotations

import json
import logging
import posixpath
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator

from scorecard_clients.errors import ErrorKind, ScorecardError

from scorecard_raw.data import (
    Dependency,
    DependencyUseType,
    ElementError,
    File,
    FileType,
    PinningDependenciesData,
)
from scorecard_raw.errors import ERR_INVALID_DOCKERFILE
from scorecard_raw.remediation import RemediationMetadata
from scorecard_raw.utils.fileparser import (
    PathMatcher,
    file_contains_commands,
    is_template_file,
    iter_matching_files,
)
from scorecard_raw.utils.shell import (
    SUPPORTED_SHELLS,
    is_shell_script,
    is_supported_shell,
    is_supported_shell_script,
    scan_script,
)
from scorecard_raw.utils.workflow import is_workflow_file, parse_workflow, shell_for_step

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient

logger = logging.getLogger(__name__)

_WORKFLOW_FILES = PathMatcher(".github/workflows/*", case_sensitive=True)
_DOCKERFILES = PathMatcher("*Dockerfile*", case_sensitive=False)

_LOCAL_ACTION_RE = re.compile(r"^\..+[^/]")
_PUBLIC_ACTION_RE = re.compile(r"@[a-fA-F\d]{40,}")
_DOCKERHUB_ACTION_RE = re.compile(r"docker://.*@sha256:[a-fA-F\d]{64}")
# FROM image@sha256:<digest> or FROM image@sha256:${ARG}
_PINNED_IMAGE_RE = re.compile(r"@sha256:([a-f\d]{64}|\$\{.*\})")
# ${{ github.event.x }} is not shell syntax.
_GITHUB_EXPRESSION_RE = re.compile(r"\{\{[^{}]*\}\}")

# Files matching the Dockerfile pattern that are plainly something else.
_NOT_DOCKERFILE_SUFFIXES = (".go", ".c", ".cpp", ".rs", ".js", ".py", ".pyc", ".java")
_VENDOR_DIRS = ("vendor", "third_party")


def is_action_dependency_pinned(uses: str) -> bool:
    return (
        _LOCAL_ACTION_RE.search(uses) is not None
        or _PUBLIC_ACTION_RE.search(uses) is not None
        or _DOCKERHUB_ACTION_RE.search(uses) is not None
    )


def is_image_pinned(image: str) -> bool:
    return _PINNED_IMAGE_RE.search(image) is not None


def _action_dependency(uses: str, path: str, line: int) -> Dependency:
    name, sep, pinned_at = uses.partition("@")
    return Dependency(
        name=name,
        pinned_at=pinned_at if sep else None,
        # A uses: value always sits on one line.
        location=File(path=path, type=FileType.SOURCE, offset=line, end_offset=line, snippet=uses),
        type=DependencyUseType.GITHUB_ACTION,
        pinned=is_action_dependency_pinned(uses),
    )


def _script_error(path: str, line: int, error: ScorecardError) -> ElementError:
    return ElementError(element=File(path=path, type=FileType.SOURCE, offset=line), message=str(error))


def _collect_workflow_pinning(
    client: RepoClient, data: PinningDependenciesData, exclude_paths: list[str] | None
) -> None:
    found = []
    downloads = []
    for path, content in iter_matching_files(client, _WORKFLOW_FILES, exclude_paths):
        if not is_workflow_file(path) or not file_contains_commands(content, "#"):
            continue
        try:
            workflow = parse_workflow(content)
        except ScorecardError as e:
            if e.kind is not ErrorKind.INVALID_INPUT:
                raise
            logger.warning("Skipping workflow %s: %s", path, e)
            data.processing_errors.append(ElementError(element=File(path=path), message=str(e)))
            continue

        for job in workflow.jobs:
            # ./ references point into this repository.
            if job.uses is not None and not job.uses.startswith("./"):
                found.append(_action_dependency(job.uses, path, job.uses_line))

            downloaded: set[str] = set()
            for step in job.steps:
                if step.uses is not None and not step.uses.startswith("./"):
                    found.append(_action_dependency(step.uses, path, step.uses_line))
                if step.run is None or not is_supported_shell(shell_for_step(job, step)):
                    continue
                script = _GITHUB_EXPRESSION_RE.sub("GITHUB_REDACTED_VAR", step.run)
                try:
                    downloads.extend(scan_script(path, script, start_line=step.script_line, downloaded=downloaded))
                except ScorecardError as e:
                    if e.kind is not ErrorKind.INVALID_INPUT:
                        raise
                    logger.warning("Skipping run step in %s:%d: %s", path, step.run_line, e)
                    data.processing_errors.append(_script_error(path, step.run_line, e))

    if any(not dep.pinned for dep in found):
        try:
            metadata = RemediationMetadata.from_client(client)
        except ScorecardError as e:
            logger.debug("No remediation links: %s", e)
            metadata = RemediationMetadata()
        for dep in found:
            if not dep.pinned:
                dep.remediation = metadata.workflow_pinning(dep.location.path)

    data.dependencies.extend(found)
    data.dependencies.extend(downloads)


@dataclass
class _Instruction:
    start_line: int
    end_line: int
    text: str
    keyword: str
    args: list[str]

    @property
    def value(self) -> str:
        """Everything after the keyword, spacing kept."""
        parts = self.text.split(None, 1)
        return parts[1] if len(parts) > 1 else ""


def _instructions(content: str) -> Iterator[_Instruction]:
    """Split a Dockerfile into instructions, joining ``\\`` continuations and dropping comments."""
    lines = content.splitlines()
    i = 0
    while i < len(lines):
        line = lines[i].strip()
        if not line or line.startswith("#"):
            i += 1
            continue

        start = i
        parts = []
        while line.endswith("\\"):
            parts.append(line[:-1].strip())
            i += 1
            # Blank and comment lines inside a continuation are skipped.
            while i < len(lines) and (not lines[i].strip() or lines[i].strip().startswith("#")):
                i += 1
            if i == len(lines):
                line = ""
                break
            line = lines[i].strip()
        parts.append(line)
        end = min(i, len(lines) - 1)
        i += 1

        text = " ".join(p for p in parts if p)
        tokens = text.split()
        if not tokens:
            continue
        yield _Instruction(
            start_line=start + 1,
            end_line=end + 1,
            text=text,
            keyword=tokens[0].upper(),
            args=tokens[1:],
        )


def _from_args(args: list[str]) -> list[str]:
    # Drop leading flags such as --platform=linux/amd64.
    i = 0
    while i < len(args) and args[i].startswith("--"):
        i += 1
    return args[i:]


def _run_script(inst: _Instruction) -> str:
    # RUN ["sh", "-c", "..."] runs the joined array, like the shell form.
    value = inst.value
    if value.startswith("["):
        try:
            argv = json.loads(value)
        except ValueError:
            return value
        if isinstance(argv, list) and all(isinstance(arg, str) for arg in argv):
            return " ".join(argv)
    return value


def is_dockerfile(path: str, content: bytes = b"") -> bool:
    if path.endswith(_NOT_DOCKERFILE_SUFFIXES) or is_shell_script(path, content):
        return False
    directories = posixpath.dirname(path).split("/")
    return not any(d.lower() in _VENDOR_DIRS for d in directories)


def _split_image(image: str) -> tuple[str, str | None]:
    """Split ``name[:tag][@digest]`` into the name and the tag or digest it is pinned at.

    A registry port (``host:5000/img``) stays part of the name.
    """
    name, sep, digest = image.partition("@")
    tag = None
    colon = name.rfind(":")
    if colon > name.rfind("/"):
        name, tag = name[:colon], name[colon + 1 :]
    return name, digest if sep else tag


def dockerfile_dependencies(path: str, content: str) -> list[Dependency]:
    """Return the base images a Dockerfile builds from.

    ``FROM scratch`` and ``FROM <stage>`` for a stage built from a pinned
    image are treated as pinned.

    Raises:
        ValueError: a ``FROM`` instruction has an unexpected shape.
    """
    deps = []
    pinned_stages: dict[str, bool] = {}

    for inst in _instructions(content):
        if inst.keyword != "FROM":
            continue
        values = _from_args(inst.args)
        location = File(
            path=path,
            type=FileType.SOURCE,
            offset=inst.start_line,
            end_offset=inst.end_line,
            snippet=inst.text,
        )

        if values and values[0].lower() == "scratch":
            if len(values) == 3 and values[1].lower() == "as":
                pinned_stages[values[2]] = True
            continue

        if len(values) == 3 and values[1].lower() == "as":
            name, alias = values[0], values[2]
            pinned_stages[alias] = pinned_stages.get(name, False) or is_image_pinned(name)
            deps.append(
                Dependency(
                    name=name,
                    pinned_at=alias,
                    location=location,
                    type=DependencyUseType.DOCKERFILE_CONTAINER_IMAGE,
                    pinned=pinned_stages[alias],
                )
            )
        elif len(values) == 1:
            image = values[0]
            name, pinned_at = _split_image(image)
            deps.append(
                Dependency(
                    name=name,
                    pinned_at=pinned_at,
                    location=location,
                    type=DependencyUseType.DOCKERFILE_CONTAINER_IMAGE,
                    pinned=pinned_stages.get(image, False) or is_image_pinned(image),
                )
            )
        else:
            raise ValueError(f"line {inst.start_line}: {inst.text}")

    return deps


def dockerfile_downloads(path: str, content: str) -> tuple[list[Dependency], list[ElementError]]:
    """Scan every ``RUN`` instruction of a Dockerfile as a shell script.

    Files downloaded by one ``RUN`` and executed by a later one are caught.
    An instruction the shell parser rejects is reported as an ElementError
    and the rest of the file is still scanned.
    """
    deps: list[Dependency] = []
    errors: list[ElementError] = []
    downloaded: set[str] = set()
    for inst in _instructions(content):
        if inst.keyword != "RUN":
            continue
        try:
            deps.extend(
                scan_script(path, _run_script(inst), inst.start_line, inst.end_line, downloaded=downloaded)
            )
        except ScorecardError as e:
            if e.kind is not ErrorKind.INVALID_INPUT:
                raise
            logger.warning("Skipping RUN in %s:%d: %s", path, inst.start_line, e)
            errors.append(_script_error(path, inst.start_line, e))
    return deps, errors


def _collect_dockerfile_pinning(
    client: RepoClient, data: PinningDependenciesData, exclude_paths: list[str] | None
) -> None:
    images = []
    downloads = []
    for path, raw in iter_matching_files(client, _DOCKERFILES, exclude_paths):
        if not is_dockerfile(path, raw) or is_template_file(path):
            continue
        if not file_contains_commands(raw, "#"):
            continue
        try:
            content = raw.decode("utf-8")
            images.extend(dockerfile_dependencies(path, content))
        except (UnicodeDecodeError, ValueError) as e:
            logger.warning("Skipping Dockerfile %s: %s", path, e)
            data.processing_errors.append(
                ElementError(element=File(path=path), message=f"{ERR_INVALID_DOCKERFILE}: {e}")
            )
            continue
        found, errors = dockerfile_downloads(path, content)
        downloads.extend(found)
        data.processing_errors.extend(errors)

    data.dependencies.extend(images)
    data.dependencies.extend(downloads)


class _ShellScriptCandidates:
    """Paths worth fetching to look for shell scripts.

    A shell extension, or no extension at all since the shebang decides for
    extensionless scripts.
    """

    def matches(self, path: str) -> bool:
        name = posixpath.basename(path)
        return "." not in name or any(name.endswith("." + shell) for shell in SUPPORTED_SHELLS)


def _collect_shell_script_downloads(
    client: RepoClient, data: PinningDependenciesData, exclude_paths: list[str] | None
) -> None:
    for path, raw in iter_matching_files(client, _ShellScriptCandidates(), exclude_paths):
        if not is_supported_shell_script(path, raw):
            continue
        try:
            data.dependencies.extend(scan_script(path, raw.decode("utf-8", errors="replace")))
        except ScorecardError as e:
            if e.kind is not ErrorKind.INVALID_INPUT:
                raise
            logger.warning("Skipping shell script %s: %s", path, e)
            data.processing_errors.append(_script_error(path, 0, e))


def pinned_dependencies(client: RepoClient, exclude_paths: list[str] | None = None) -> PinningDependenciesData:
    data = PinningDependenciesData()
    _collect_workflow_pinning(client, data, exclude_paths)
    _collect_dockerfile_pinning(client, data, exclude_paths)
    _collect_shell_script_downloads(client, data, exclude_paths)
    logger.debug(
        "Found %d dependencies (%d unpinned), %d files not analysed",
        len(data.dependencies),
        sum(1 for dep in data.dependencies if not dep.pinned),
        len(data.processing_errors),
    )
    return data
