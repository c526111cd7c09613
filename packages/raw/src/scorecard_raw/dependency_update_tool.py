"""Detect automated dependency update tools.

Configuration files for Dependabot, Renovate and PyUp are looked for at
the paths each tool reads them from. A repository with none of them still counts as using
Dependabot when recent commits were made by the Dependabot bot account.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from scorecard_raw.data import DependencyUpdateToolData, File, FileType, Tool

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient

logger = logging.getLogger(__name__)

DEPENDABOT_ID = 49699333

_DEPENDABOT = ("Dependabot", "https://github.com/dependabot", "Automated dependency updates built into GitHub")
_RENOVATE = (
    "RenovateBot",
    "https://github.com/renovatebot/renovate",
    "Automated dependency updates. Multi-platform and multi-language.",
)
_PYUP = ("PyUp", "https://pyup.io/", "Automated dependency updates for Python.")

# https://docs.renovatebot.com/configuration-options/
_TOOL_CONFIG_FILES = {
    ".github/dependabot.yml": _DEPENDABOT,
    ".github/dependabot.yaml": _DEPENDABOT,
    ".github/renovate.json": _RENOVATE,
    ".github/renovate.json5": _RENOVATE,
    ".renovaterc.json": _RENOVATE,
    "renovate.json": _RENOVATE,
    "renovate.json5": _RENOVATE,
    ".renovaterc": _RENOVATE,
    ".pyup.yml": _PYUP,
}


def tool_for_config_file(path: str) -> Tool | None:
    known = _TOOL_CONFIG_FILES.get(path.lower())
    if known is None:
        return None
    name, url, description = known
    return Tool(name=name, url=url, description=description, files=[File(path=path, type=FileType.SOURCE)])


def dependency_update_tool(client: RepoClient) -> DependencyUpdateToolData:
    tools = []
    for path in client.list_files(lambda p: p.lower() in _TOOL_CONFIG_FILES):
        tool = tool_for_config_file(path)
        if tool is not None:
            tools.append(tool)
    if tools:
        return DependencyUpdateToolData(tools=tools)

    for commit in client.list_commits():
        if commit.committer is not None and commit.committer.id == DEPENDABOT_ID:
            logger.debug("Dependabot commit %s found on %s", commit.sha, client.uri())
            name, url, description = _DEPENDABOT
            tools.append(Tool(name=name, url=url, description=description))
            break
    return DependencyUpdateToolData(tools=tools)
