"""Find unpinned downloads in shell scripts.

Scripts are parsed with bashlex and every command in the tree is checked
for two kinds of risky use:

* download then run: ``curl ... | bash``, ``bash <(wget -qO- ...)``, or a
  file fetched earlier in the same script and executed afterwards;
* unpinned package installs: ``pip install``, ``npm install``,
  ``go install``/``go get`` and ``choco install`` without a hash or an
  exact version.

Each finding becomes an unpinned Dependency whose location is the command's
line in the file the script came from.
"""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Iterator
from urllib.parse import urlparse

import bashlex
from bashlex import ast as bash_ast
from bashlex import errors as bash_errors

from scorecard_clients.errors import ErrorKind, ScorecardError, invalid_input

from scorecard_raw.data import Dependency, DependencyUseType, File, FileType
from scorecard_raw.utils.fileparser import file_contains_commands

logger = logging.getLogger(__name__)

SUPPORTED_SHELLS = ("sh", "bash", "mksh")
_OTHER_SHELLS = ("dash", "ksh")
_SHELLS = SUPPORTED_SHELLS + _OTHER_SHELLS
_PYTHON_INTERPRETERS = ("python", "python3", "python2.7")
SHELL_INTERPRETERS = ("exec", "su") + _SHELLS
_OTHER_INTERPRETERS = ("perl", "ruby", "php", "node", "nodejs", "java")
_INTERPRETERS = _OTHER_INTERPRETERS + SHELL_INTERPRETERS + _PYTHON_INTERPRETERS

# aws is matched separately: only ``aws s3api get-object`` downloads.
_DOWNLOAD_UTILS = ("curl", "wget", "gsutil")

_GO_FLAGS = ("-d", "-f", "-t", "-u", "-v", "-fix", "-insecure")
_HASH_RE = re.compile(r"^[A-Fa-f0-9]{40,}$")
_GO_SEMVER_RE = re.compile(r"^v\d+\.\d+\.\d+(-[0-9A-Za-z-.]+)?(\+[0-9A-Za-z-.]+)?$")
# Anything without a host-like prefix is a local package.
_GO_REMOTE_PACKAGE_RE = re.compile(r"\w+\.\w+/\w+")
_VCS_SOURCE_RE = re.compile(r"^(git|svn|hg|bzr).+$")
_PINNED_GIT_SOURCE_RE = re.compile(r"^git(\+(https?|ssh|git))?://.*(.git)?@[a-fA-F0-9]{40}(#egg=.*)?$")
_CHOCO_CHECKSUM_FLAGS = ("--requirechecksum", "--requirechecksums", "--require-checksums")


def _is_binary(expected: str, name: str) -> bool:
    return posixpath.basename(name).lower() == expected.lower()


def _is_any_binary(names: tuple[str, ...], name: str) -> bool:
    return any(_is_binary(n, name) for n in names)


def _same_file(a: str, b: str) -> bool:
    return posixpath.normpath(a).lower() == posixpath.normpath(b).lower()


# ---------------------------------------------------------------------------
# Script files
# ---------------------------------------------------------------------------


def _is_matching_shell_script(path: str, content: bytes, shells: tuple[str, ...]) -> bool:
    has_extension = any(path.endswith("." + name) for name in shells)

    lines = content.decode("utf-8", errors="replace").splitlines()
    if not lines or not lines[0].startswith("#!"):
        return has_extension

    # #!/bin/bash, #!bash -e, #!/usr/bin/env bash
    parts = lines[0][2:].split(" ")
    for name in shells:
        if _is_binary(name, parts[0]):
            return True
        if len(parts) >= 2 and _is_binary("env", parts[0]) and _is_binary(name, parts[1]):
            return True
    # A shebang for some other interpreter overrides the extension.
    return False


def is_shell_script(path: str, content: bytes) -> bool:
    return _is_matching_shell_script(path, content, SHELL_INTERPRETERS)


def is_supported_shell_script(path: str, content: bytes) -> bool:
    """Return True for scripts bashlex can parse: sh, bash and mksh."""
    return _is_matching_shell_script(path, content, SUPPORTED_SHELLS)


def is_supported_shell(name: str) -> bool:
    return _is_any_binary(SUPPORTED_SHELLS, name)


# ---------------------------------------------------------------------------
# Command predicates
# ---------------------------------------------------------------------------


def is_download_utility(cmd: list[str]) -> bool:
    if not cmd:
        return False
    if _is_any_binary(_DOWNLOAD_UTILS, cmd[0]):
        return True
    return _is_binary("aws", cmd[0]) and len(cmd) >= 3 and cmd[1].lower() == "s3api" and cmd[2].lower() == "get-object"


def is_interpreter(cmd: list[str]) -> bool:
    return bool(cmd) and _is_any_binary(_INTERPRETERS, cmd[0])


def _is_interpreter_with_file(cmd: list[str], filename: str) -> bool:
    return is_interpreter(cmd) and any(_same_file(arg, filename) for arg in cmd[1:])


def _is_execute_file(cmd: list[str], filename: str) -> bool:
    return bool(cmd) and _same_file(cmd[0], filename)


def _url_basename(url: str) -> str | None:
    try:
        return posixpath.basename(urlparse(url).path)
    except ValueError:
        return None


def _wget_output_file(cmd: list[str]) -> str | None:
    for i in range(1, len(cmd) - 1):
        if cmd[i].lower() == "-o":
            return cmd[i + 1]
    for arg in cmd[1:]:
        if arg.startswith("http"):
            return _url_basename(arg)
    return None


def _gsutil_output_file(cmd: list[str]) -> str | None:
    for i in range(1, len(cmd) - 1):
        if not cmd[i].startswith("gs://"):
            continue
        target = cmd[i + 1]
        if posixpath.normpath(posixpath.dirname(target)) == posixpath.normpath(target):
            name = _url_basename(cmd[i])
            return posixpath.join(posixpath.dirname(target), name) if name is not None else None
        return target
    return None


def _aws_output_file(cmd: list[str]) -> str | None:
    if len(cmd) < 5:
        return None
    source, target = cmd[-2], cmd[-1]
    if posixpath.normpath(posixpath.dirname(target)) == posixpath.normpath(target):
        name = _url_basename(source)
        return posixpath.join(posixpath.dirname(target), name) if name is not None else None
    return target


def download_output_file(cmd: list[str]) -> str | None:
    """Return where a download command writes, when its arguments say so."""
    if not cmd:
        return None
    if _is_binary("wget", cmd[0]):
        return _wget_output_file(cmd)
    if _is_binary("gsutil", cmd[0]):
        return _gsutil_output_file(cmd)
    if _is_binary("aws", cmd[0]) and is_download_utility(cmd):
        return _aws_output_file(cmd)
    return None


def is_npm_unpinned_download(cmd: list[str]) -> bool:
    # ``npm ci`` verifies the lockfile hashes.
    if not cmd or not _is_binary("npm", cmd[0]):
        return False
    return any(arg.lower() in ("install", "i", "install-test", "update") for arg in cmd[1:])


def is_go_unpinned_download(cmd: list[str]) -> bool:
    # A bare ``go install`` builds from go.mod and go.sum.
    if not cmd or not _is_binary("go", cmd[0]) or len(cmd) <= 2:
        return False

    found = False
    insecure = False
    i = 1
    while i < len(cmd) - 1:
        if cmd[i] in ("get", "install"):
            found = True
        if not found:
            i += 1
            continue

        while i < len(cmd) - 1 and cmd[i + 1] in _GO_FLAGS:
            if cmd[i + 1] == "-insecure":
                insecure = True
            i += 1
        if i + 1 >= len(cmd):
            # go get -d -v
            return False

        package = cmd[i + 1]
        if not _GO_REMOTE_PACKAGE_RE.search(package):
            return False
        parts = package.split("@")
        if len(parts) == 2:
            version = parts[1]
            # @none removes the dependency.
            if version == "none" or _HASH_RE.match(version) or (not insecure and _GO_SEMVER_RE.match(version)):
                return False
        i += 1

    return found


def _is_pinned_editable_source(source: str) -> bool:
    if not _VCS_SOURCE_RE.match(source):
        return True
    # Only git sources are checked for a commit hash; svn, hg and bzr count as unpinned.
    return _PINNED_GIT_SOURCE_RE.match(source) is not None


def is_unpinned_pip_install(cmd: list[str]) -> bool:
    if not cmd or not (_is_binary("pip", cmd[0]) or _is_binary("pip3", cmd[0])):
        return False

    is_install = False
    no_deps = False
    editable = False
    pinned_editable = False
    require_hashes = False
    other_args = False
    wheel = False

    i = 1
    while i < len(cmd):
        arg = cmd[i]
        i += 1
        if arg.lower() == "install":
            is_install = True
            continue
        if not is_install:
            break
        if arg.lower() == "--no-deps":
            no_deps = True
        elif arg in ("-e", "--editable"):
            editable = True
            if i < len(cmd):
                pinned_editable = _is_pinned_editable_source(cmd[i])
                i += 1
        elif arg.lower() == "--require-hashes":
            require_hashes = True
            break
        elif arg.endswith(".whl"):
            # Local wheels are mostly test fixtures.
            wheel = True
        else:
            other_args = True

    # An editable install is pinned only when its source is and its dependencies are not installed.
    if editable:
        return not no_deps or not pinned_editable
    if require_hashes:
        return False
    if other_args:
        return True
    if wheel:
        return False
    return is_install


def _is_python_command(cmd: list[str]) -> bool:
    return bool(cmd) and _is_any_binary(_PYTHON_INTERPRETERS, cmd[0])


def _python_pip_command(cmd: list[str]) -> list[str] | None:
    # python -m pip ...
    for i in range(1, len(cmd) - 1):
        if cmd[i].lower() == "-m" and cmd[i + 1].lower() == "pip":
            return cmd[i + 1 :]
    return None


def is_pip_unpinned_download(cmd: list[str]) -> bool:
    if is_unpinned_pip_install(cmd):
        return True
    if not _is_python_command(cmd):
        return False
    pip = _python_pip_command(cmd)
    return pip is not None and is_unpinned_pip_install(pip)


def is_choco_unpinned_download(cmd: list[str]) -> bool:
    if len(cmd) < 2 or not (_is_binary("choco", cmd[0]) or _is_binary("choco.exe", cmd[0])):
        return False
    if cmd[1].lower() != "install":
        return False
    return not any(arg.split("=", 1)[0].lower() in _CHOCO_CHECKSUM_FLAGS for arg in cmd[1:])


_PACKAGE_MANAGER_CHECKS = (
    (is_go_unpinned_download, DependencyUseType.GO_COMMAND),
    (is_pip_unpinned_download, DependencyUseType.PIP_COMMAND),
    (is_npm_unpinned_download, DependencyUseType.NPM_COMMAND),
    (is_choco_unpinned_download, DependencyUseType.CHOCO_COMMAND),
)


def _shell_interpreter_command(cmd: list[str]) -> bool:
    """Return True for ``<shell> ... -c`` style invocations."""
    for name in _INTERPRETERS:
        seen = False
        for arg in cmd:
            if _is_binary(name, arg):
                seen = True
            elif seen and arg.startswith("-") and "c" in arg:
                return name not in _PYTHON_INTERPRETERS and name not in _OTHER_INTERPRETERS
    return False


# ---------------------------------------------------------------------------
# Tree walking
# ---------------------------------------------------------------------------


def _walk(node: bash_ast.node) -> Iterator[bash_ast.node]:
    yield node
    for attr in ("parts", "list"):
        for child in getattr(node, attr, None) or ():
            if isinstance(child, bash_ast.node):
                yield from _walk(child)
    for attr in ("command", "output"):
        child = getattr(node, attr, None)
        if isinstance(child, bash_ast.node):
            yield from _walk(child)


def _words(node: bash_ast.node) -> list[str]:
    """Literal arguments of a simple command, without ``sudo`` and without words that expand anything."""
    return [
        part.word
        for part in node.parts
        if part.kind == "word" and not part.parts and part.word.lower() != "sudo"
    ]


def _first_command(node: bash_ast.node) -> bash_ast.node | None:
    for child in _walk(node):
        if child.kind == "command":
            return child
    return None


@dataclass
class ScriptScanner:
    """Scan one script and add what it finds to ``dependencies``.

    ``start_line`` is the line of the enclosing file the script starts on.
    ``end_line`` is set when the whole script was joined from several lines,
    as a Dockerfile ``RUN`` with continuations is. ``downloaded`` carries
    files fetched by earlier scripts of the same Dockerfile or job.
    """

    path: str
    start_line: int = 1
    end_line: int | None = None
    downloaded: set[str] = field(default_factory=set)
    dependencies: list[Dependency] = field(default_factory=list)

    def scan(self, script: str) -> list[Dependency]:
        """Parse ``script`` and collect its findings.

        Raises:
            ScorecardError: INVALID_INPUT if bashlex cannot parse the script.
        """
        if not file_contains_commands(script, "#"):
            return self.dependencies
        try:
            trees = bashlex.parse(script)
        except (bash_errors.ParsingError, NotImplementedError) as e:
            raise invalid_input("unable to parse shell script", e) from e

        for tree in trees:
            for node in _walk(tree):
                self._visit(script, node)
        return self.dependencies

    def _lines(self, script: str, node: bash_ast.node) -> tuple[int, int]:
        line = self.start_line + script.count("\n", 0, node.pos[0])
        if self.end_line is not None and self.end_line >= self.start_line:
            return line, self.end_line + script.count("\n", 0, node.pos[0])
        return line, line

    def _add(self, script: str, node: bash_ast.node, use_type: DependencyUseType) -> None:
        start, end = self._lines(script, node)
        self.dependencies.append(
            Dependency(
                name=None,
                location=File(
                    path=self.path,
                    type=FileType.SOURCE,
                    offset=start,
                    end_offset=end,
                    snippet=script[node.pos[0] : node.pos[1]],
                ),
                type=use_type,
            )
        )

    def _visit(self, script: str, node: bash_ast.node) -> None:
        if node.kind == "pipeline":
            self._fetch_pipe_execute(script, node)
            return
        if node.kind != "command":
            return

        cmd = _words(node)
        if _shell_interpreter_command(cmd):
            self._interpreter_script(script, node)
        if any(_is_interpreter_with_file(cmd, f) or _is_execute_file(cmd, f) for f in self.downloaded):
            self._add(script, node, DependencyUseType.DOWNLOAD_THEN_RUN)
        self._fetch_process_substitution(script, node, cmd)
        for check, use_type in _PACKAGE_MANAGER_CHECKS:
            if check(cmd):
                self._add(script, node, use_type)
                break
        self._record_download(node, cmd)

    def _fetch_pipe_execute(self, script: str, node: bash_ast.node) -> None:
        # curl -s url | bash
        commands = [part for part in node.parts if part.kind == "command"]
        for left, right in zip(commands, commands[1:]):
            if is_download_utility(_words(left)) and is_interpreter(_words(right)):
                self._add(script, node, DependencyUseType.DOWNLOAD_THEN_RUN)
                return

    def _fetch_process_substitution(self, script: str, node: bash_ast.node, cmd: list[str]) -> None:
        # bash <(wget -qO- url)
        if not is_interpreter(cmd):
            return
        for part in node.parts:
            if part.kind != "word" or not part.word.startswith("<("):
                continue
            for sub in part.parts:
                if sub.kind != "processsubstitution":
                    continue
                inner = _first_command(sub.command)
                if inner is not None and is_download_utility(_words(inner)):
                    self._add(script, node, DependencyUseType.DOWNLOAD_THEN_RUN)
                    return

    def _interpreter_script(self, script: str, node: bash_ast.node) -> None:
        # bash -c "curl url | sh": scan the quoted argument as a script of its own.
        for part in node.parts:
            if part.kind == "word" and not part.parts and script[part.pos[0]] in "'\"":
                start, end = self._lines(script, node)
                inner = ScriptScanner(self.path, start, end, self.downloaded, self.dependencies)
                try:
                    inner.scan(part.word)
                except ScorecardError as e:
                    if e.kind is not ErrorKind.INVALID_INPUT:
                        raise
                    logger.debug("%s:%d: %s", self.path, start, e)
                return

    def _record_download(self, node: bash_ast.node, cmd: list[str]) -> None:
        if not is_download_utility(cmd):
            return
        for part in node.parts:
            # curl url > file
            if part.kind == "redirect" and part.type == ">" and isinstance(part.output, bash_ast.node):
                if part.output.kind == "word" and not part.output.parts:
                    self.downloaded.add(part.output.word)
                    return
        target = download_output_file(cmd)
        if target:
            self.downloaded.add(target)


def scan_script(
    path: str,
    script: str,
    start_line: int = 1,
    end_line: int | None = None,
    downloaded: set[str] | None = None,
) -> list[Dependency]:
    """Return the unpinned downloads found in one shell script.

    Raises:
        ScorecardError: INVALID_INPUT if the script cannot be parsed.
    """
    scanner = ScriptScanner(path, start_line, end_line, downloaded if downloaded is not None else set())
    return scanner.scan(script)
