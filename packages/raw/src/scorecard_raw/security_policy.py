"""Find the security policy and the disclosure hints it contains.

The repository itself is searched first. When it has no policy, the
owner's shared ``.github`` repository is searched instead, and paths found
there are reported as URLs under that repository.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from scorecard_clients.errors import ErrorKind, ScorecardError

from scorecard_raw.data import (
    File,
    FileType,
    SecurityPolicyData,
    SecurityPolicyFile,
    SecurityPolicyInformation,
    SecurityPolicyInformationType,
)

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient

logger = logging.getLogger(__name__)

_POLICY_FILENAMES = frozenset(
    {
        "security.md",
        ".github/security.md",
        "docs/security.md",
        "security.markdown",
        ".github/security.markdown",
        "docs/security.markdown",
        "security.adoc",
        ".github/security.adoc",
        "docs/security.adoc",
        "security.rst",
        ".github/security.rst",
        "doc/security.rst",
        "docs/security.rst",
    }
)

_URL_RE = re.compile(r"(http|https)://[a-zA-Z0-9./?=_%:-]*")
_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,6}\b")
# 1 to 4 digit numbers, or "disclos"ure / "vuln"erability wording
_TEXT_RE = re.compile(r"(?i)([0-9]{1,4}\b|Disclos|Vuln)")

_HIT_PATTERNS = (
    (SecurityPolicyInformationType.LINK, _URL_RE),
    (SecurityPolicyInformationType.EMAIL, _EMAIL_RE),
    (SecurityPolicyInformationType.TEXT, _TEXT_RE),
)


def is_security_policy_filename(path: str) -> bool:
    return path.lower() in _POLICY_FILENAMES


def collect_policy_hits(content: bytes | str) -> list[SecurityPolicyInformation]:
    """Return every link, email address and disclosure hint, line by line."""
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    hits = []
    for line_number, line in enumerate(content.split("\n"), start=1):
        line = line.rstrip("\r")
        if not line:
            continue
        for info_type, pattern in _HIT_PATTERNS:
            for m in pattern.finditer(line):
                hits.append(
                    SecurityPolicyInformation(
                        type=info_type, match=m.group(0), line_number=line_number, offset=m.start()
                    )
                )
    return hits


def _find_policy(client: RepoClient, uri: str | None = None) -> SecurityPolicyFile | None:
    paths = client.list_files(is_security_policy_filename)
    if not paths:
        return None
    # Only the first policy file is reported.
    path = paths[0]
    content = client.get_file_content(path)
    if uri:
        policy = SecurityPolicyFile(file=File(path=f"{uri}/{path}", type=FileType.URL))
    else:
        policy = SecurityPolicyFile(file=File(path=path, type=FileType.TEXT))
    if content:
        policy.size = len(content)
        policy.information = collect_policy_hits(content)
    return policy


def _org_client(client: RepoClient) -> RepoClient | None:
    try:
        return client.org_health_client()
    except ScorecardError as e:
        if e.kind is ErrorKind.UNSUPPORTED_FEATURE:
            logger.debug("No organization-level policy lookup for %s", client.uri())
            return None
        raise


def security_policy(client: RepoClient) -> SecurityPolicyData:
    policy = _find_policy(client)
    if policy is None:
        org_client = _org_client(client)
        if org_client is not None:
            policy = _find_policy(org_client, uri=org_client.uri())
    return SecurityPolicyData(policy_files=[policy] if policy else [])
