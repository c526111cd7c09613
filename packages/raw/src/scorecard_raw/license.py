"""Find the repository's license and whether it is FSF or OSI approved.

The hosting API is asked first. Hosts that cannot answer fall back to a
file-name heuristic over top-level LICENSE / COPYING / COPYRIGHT / PATENTS
files, optionally carrying an SPDX identifier in the name
(``GPL-2.0-LICENSE``, ``LICENSE_Apache-1.1``) and a text extension.
"""

from __future__ import annotations

import logging
import re
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping

from scorecard_clients.errors import ErrorKind, ScorecardError

from scorecard_raw.data import File, FileType, LicenseAttributionType, LicenseData, LicenseFile, LicenseInfo
from scorecard_raw.license_names import APPROVED_LICENSE_NAMES

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient

logger = logging.getLogger(__name__)

# An SPDX-ish identifier: alphanumerics, then up to five "-1", ".2c" style version parts, then a tail.
_SPDX = r"([0-9A-Za-z]+)((([-_.])[0-9]{1,2}[A-Za-z]{0,1}){0,5})"
_LICENSE_FILE_RE = re.compile(
    r"^(?P<lp>"
    rf"(?P<preSpdx>{_SPDX}(?P<preSpdxExt>(([_-])?[0-9A-Za-z.])*))?"
    r"(?P<pre>([-_]))?"
    r"(?P<detectedFile>(patent(s)?|copy(ing|right)|LICEN[SC]E(S)?))"
    r"(?P<suf>([-_./]))?"
    rf"(?P<sufSpdx>{_SPDX}(?P<sufSpdxExt>(([_-])?[0-9A-Za-z.])*))?"
    r"(?P<ext>([.]?[A-Za-z]+))?"
    r")",
    re.IGNORECASE,
)
# Extensions of files that plausibly hold license text.
_LICENSE_FILE_EXT_RE = re.compile(
    r"(\.adoc|\.asc|\.doc(x)?|\.ext|\.html|\.markdown|\.md|\.rst|\.txt|\.xml)",
    re.IGNORECASE,
)


class LicenseTable:
    """Immutable, case-insensitive SPDX identifier to license name lookup.

    The Unlicense is stored under ``UN``: the file-name pattern reads
    ``UNLICENSE`` as SPDX ``UN`` followed by ``LICENSE``. Lookups accept
    either spelling.
    """

    def __init__(self, names: Mapping[str, str]):
        table = {}
        for spdx_id, name in names.items():
            table[self._key(spdx_id)] = name
        self._names = MappingProxyType(table)

    @staticmethod
    def _key(spdx_id: str) -> str:
        key = spdx_id.upper()
        return "UN" if key == "UNLICENSE" else key

    @classmethod
    def default(cls) -> LicenseTable:
        return cls(APPROVED_LICENSE_NAMES)

    def name(self, spdx_id: str) -> str:
        return self._names.get(self._key(spdx_id), "")

    def is_approved(self, spdx_id: str) -> bool:
        return bool(self.name(spdx_id))

    def __len__(self) -> int:
        return len(self._names)


def _last_ext(path: str) -> str:
    """Return everything from the last dot of the final path element, or ""."""
    for i in range(len(path) - 1, -1, -1):
        if path[i] == "/":
            break
        if path[i] == ".":
            return path[i:]
    return ""


def _spdx_id(groups: dict[str, str]) -> str:
    # A prefixed identifier wins over a suffixed one (0BSD-LICENSE-GPL-2.0.txt -> 0BSD).
    return groups["preSpdx"] or groups["sufSpdx"]


def _ext(filename: str, groups: dict[str, str]) -> str:
    ext = _last_ext(filename)
    if ext and groups["detectedFile"] in ext:
        return ""
    return ext


def _folder(groups: dict[str, str]) -> str:
    if groups["suf"] == "/":
        return groups["detectedFile"] + groups["suf"]
    return ""


def extension_ok(ext: str) -> bool:
    return not ext or _LICENSE_FILE_EXT_RE.search(ext) is not None


def _validate_spdx_and_ext(groups: dict[str, str], spdx: str, ext: str) -> tuple[str, str]:
    if not spdx:
        return spdx, ext
    # The identifier pattern swallowed the extension.
    if ext and spdx in ext:
        spdx = ""
    if ext and spdx and ext in spdx:
        if not extension_ok(ext):
            ext = ""
        else:
            spdx = spdx.replace(ext, "")
    elif ext and spdx and ext != spdx and ext != groups["ext"]:
        spdx = spdx + groups["ext"]
    return spdx, ext


def _license_path(groups: dict[str, str], name: str, spdx: str, ext: str) -> str:
    lp = groups["lp"]
    if lp != name:
        if not _folder(groups) and not spdx:
            return ""
        if lp + ext == name:
            return lp + ext
        return ""
    if not extension_ok(ext):
        return ""
    return lp


def check_license_file(name: str) -> LicenseFile | None:
    """Return a LicenseFile if ``name`` looks like a top-level license file, else None.

    Only the path and any SPDX identifier found in the name are filled in.
    """
    m = _LICENSE_FILE_RE.match(name)
    if not m:
        return None
    groups = {k: v or "" for k, v in m.groupdict().items()}

    detected = groups["detectedFile"]
    if name == detected:
        return LicenseFile(file=File(path=detected, type=FileType.SOURCE))

    spdx = _spdx_id(groups)
    ext = _ext(name, groups)
    spdx, ext = _validate_spdx_and_ext(groups, spdx, ext)
    path = _license_path(groups, name, spdx, ext)
    if not path:
        return None
    return LicenseFile(file=File(path=path, type=FileType.SOURCE), license=LicenseInfo(spdx_id=spdx))


def is_license_file(name: str) -> bool:
    return check_license_file(name) is not None


def _from_api(client: RepoClient, table: LicenseTable) -> LicenseData | None:
    try:
        found = client.list_licenses()
    except ScorecardError as e:
        if e.kind is ErrorKind.UNSUPPORTED_FEATURE:
            return None
        raise
    return LicenseData(
        license_files=[
            LicenseFile(
                file=File(path=lic.path, type=FileType.SOURCE),
                license=LicenseInfo(
                    approved=table.is_approved(lic.spdx_id),
                    key=lic.key,
                    name=lic.name,
                    spdx_id=lic.spdx_id,
                    attribution=LicenseAttributionType.REPOSITORY_API,
                ),
            )
            for lic in found
        ]
    )


def licenses(client: RepoClient, table: LicenseTable) -> LicenseData:
    data = _from_api(client, table)
    if data is not None:
        return data

    logger.debug("License API unsupported, scanning file names")
    data = LicenseData()
    for path in client.list_files(lambda _: True):
        found = check_license_file(path)
        if found is None:
            continue
        info = found.license
        info.name = table.name(info.spdx_id)
        info.key = info.spdx_id.lower()
        if info.spdx_id.upper() == "UN":
            info.spdx_id = "UNLICENSE"
            info.key = "unlicense"
        elif not info.spdx_id:
            info.spdx_id = "NOASSERTION"
            info.name = "Other"
            info.key = "other"
        info.approved = table.is_approved(info.spdx_id)
        info.attribution = LicenseAttributionType.BUILTIN_HEURISTICS
        data.license_files.append(found)
        # The first candidate wins.
        break
    return data
