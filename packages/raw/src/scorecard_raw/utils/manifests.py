"""Direct-dependency discovery from manifest files.

Only exact, directly declared versions are reported: ``require`` lines in
go.mod that are not marked ``// indirect``, ``name==version`` pins in
requirements files, and exact versions in package.json. Ranges and
transitive dependencies are ignored.
"""

from __future__ import annotations

import json
import logging
import posixpath
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from scorecard_clients.errors import ErrorKind, ScorecardError, invalid_input

from scorecard_raw.utils.fileparser import is_excluded

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient

logger = logging.getLogger(__name__)

_GO_REQUIRE_LINE_RE = re.compile(r"^\s*(?:require\s+)?(?P<name>[^\s()]+)\s+(?P<version>v[^\s]+)(?P<rest>.*)$")
_REQUIREMENT_PIN_RE = re.compile(
    r"^\s*(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)(?:\[[^\]]*\])?\s*===?\s*(?P<version>[A-Za-z0-9][A-Za-z0-9.+!_-]*)\s*(?:;.*)?$"
)
_NPM_EXACT_VERSION_RE = re.compile(r"^v?\d+\.\d+\.\d+(?:[-+][0-9A-Za-z.-]+)?$")


@dataclass(frozen=True)
class ManifestDependency:
    name: str
    version: str
    ecosystem: str  # "golang" | "npm" | "pypi"
    path: str


def parse_go_mod(content: str, path: str = "go.mod") -> list[ManifestDependency]:
    deps = []
    in_block = False
    for raw in content.splitlines():
        line = raw.strip()
        if line.startswith("require ("):
            in_block = True
            continue
        if in_block and line == ")":
            in_block = False
            continue
        if not (in_block or line.startswith("require ")):
            continue
        m = _GO_REQUIRE_LINE_RE.match(line)
        if not m or "// indirect" in m.group("rest"):
            continue
        deps.append(ManifestDependency(m.group("name"), m.group("version"), "golang", path))
    return deps


def parse_requirements_txt(content: str, path: str = "requirements.txt") -> list[ManifestDependency]:
    deps = []
    for raw in content.splitlines():
        line = raw.split(" #", 1)[0].strip()
        if not line or line.startswith(("#", "-")):
            continue
        m = _REQUIREMENT_PIN_RE.match(line)
        if m:
            deps.append(ManifestDependency(m.group("name"), m.group("version"), "pypi", path))
    return deps


def parse_package_json(content: str, path: str = "package.json") -> list[ManifestDependency]:
    try:
        manifest = json.loads(content)
    except ValueError as e:
        raise invalid_input(f"{path}: not valid JSON", e) from e
    if not isinstance(manifest, dict):
        raise invalid_input(f"{path}: expected a JSON object")

    deps = []
    for section in ("dependencies", "devDependencies"):
        entries = manifest.get(section) or {}
        if not isinstance(entries, dict):
            raise invalid_input(f"{path}: {section} must be an object, got {type(entries).__name__}")
        for name, version in entries.items():
            if isinstance(version, str) and _NPM_EXACT_VERSION_RE.match(version):
                deps.append(ManifestDependency(name, version, "npm", path))
    return deps


_PARSERS: dict[str, Callable[[str, str], list[ManifestDependency]]] = {
    "go.mod": parse_go_mod,
    "requirements.txt": parse_requirements_txt,
    "package.json": parse_package_json,
}


def is_manifest(path: str) -> bool:
    return posixpath.basename(path) in _PARSERS and "node_modules/" not in path


def collect_direct_dependencies(client: RepoClient, exclude_paths: list[str] | None = None) -> list[ManifestDependency]:
    """Read every supported manifest in the repository and return its direct dependencies.

    A manifest that cannot be decoded or parsed is skipped with a warning.
    """
    deps: list[ManifestDependency] = []
    for path in client.list_files(is_manifest):
        if is_excluded(path, exclude_paths):
            continue
        try:
            content = client.get_file_content(path).decode("utf-8")
            deps.extend(_PARSERS[posixpath.basename(path)](content, path))
        except UnicodeDecodeError as e:
            logger.warning("Skipping %s: not UTF-8 (%s)", path, e)
        except ScorecardError as e:
            if e.kind is not ErrorKind.INVALID_INPUT:
                raise
            logger.warning("Skipping %s: %s", path, e)
    return deps
