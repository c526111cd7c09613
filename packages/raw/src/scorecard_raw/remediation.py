from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from scorecard_clients.errors import internal_error

from scorecard_raw.data import Remediation
from scorecard_raw.errors import ERR_INVALID_REPO_URI

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient

_WORKFLOW_TEXT = "update your workflow using https://app.stepsecurity.io/secureworkflow/%s/%s/%s?enable=%s"
_WORKFLOW_MARKDOWN = (
    "update your workflow using "
    "[https://app.stepsecurity.io](https://app.stepsecurity.io/secureworkflow/%s/%s/%s?enable=%s)"
)
_WORKFLOW_PREFIX = ".github/workflows/"


@dataclass(frozen=True)
class RemediationMetadata:
    """Repository coordinates needed to build fix-it links."""

    repo: str = ""  # owner/name
    branch: str = ""

    @classmethod
    def from_client(cls, client: RepoClient) -> RemediationMetadata:
        """Build metadata from a client whose URI looks like ``host/owner/name``.

        Raises:
            ScorecardError: INTERNAL if the URI has any other shape; API errors
                from the default-branch lookup propagate.
        """
        branch = client.get_default_branch_name()
        uri = client.uri()
        parts = uri.split("/")
        if len(parts) != 3:
            raise internal_error(f"{ERR_INVALID_REPO_URI}: {uri}")
        return cls(repo=f"{parts[1]}/{parts[2]}", branch=branch)

    def workflow_pinning(self, path: str) -> Remediation | None:
        return self._workflow(path, "pin")

    def _workflow(self, path: str, action: str) -> Remediation | None:
        if not self.repo or not self.branch:
            return None
        name = path[len(_WORKFLOW_PREFIX) :] if path.startswith(_WORKFLOW_PREFIX) else path
        args = (self.repo, name, self.branch, action)
        return Remediation(text=_WORKFLOW_TEXT % args, markdown=_WORKFLOW_MARKDOWN % args)
