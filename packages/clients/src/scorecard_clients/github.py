"""RepoClient backed by PyGithub.

Each method makes the PyGithub calls it needs and copies the answer into
scorecard_clients.models records, so collectors never see PyGithub objects.
GithubException is re-raised as ScorecardError(API). A 404 on a lookup by
name (branch, tag, license) means "absent" and returns None or [].
"""

from __future__ import annotations

import logging
from typing import Callable

from github import Github, GithubException, UnknownObjectException

from scorecard_clients.base import RepoClient
from scorecard_clients.errors import api_error
from scorecard_clients.models import (
    BranchProtectionRule,
    BranchRef,
    CheckRun,
    Commit,
    Contributor,
    Label,
    License,
    PullRequest,
    Release,
    ReleaseAsset,
    Review,
    Status,
    TagRef,
    User,
    Webhook,
    WorkflowRun,
)

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_DEPTH = 30


def get_repo(repo_name: str, token: str | None):
    return Github(token).get_repo(repo_name)


def _user(gh_user) -> User | None:
    if gh_user is None:
        return None
    return User(login=gh_user.login or "", id=gh_user.id or 0)


class GithubRepoClient(RepoClient):
    """RepoClient for one GitHub repository.

    ``repo`` is a PyGithub Repository, normally from get_repo(). Commit
    history is capped at ``commit_depth`` entries; the tree listing used by
    list_files() is fetched once and reused.
    """

    def __init__(self, repo, commit_depth: int = DEFAULT_COMMIT_DEPTH):
        self._repo = repo
        self._commit_depth = commit_depth
        self._tree_paths: list[str] | None = None

    @classmethod
    def from_name(cls, repo_name: str, token: str | None, commit_depth: int = DEFAULT_COMMIT_DEPTH):
        try:
            repo = get_repo(repo_name, token)
        except GithubException as e:
            raise api_error(f"get_repo {repo_name}", e) from e
        return cls(repo, commit_depth=commit_depth)

    def uri(self) -> str:
        return f"github.com/{self._repo.full_name}"

    def get_default_branch_name(self) -> str:
        return self._repo.default_branch

    def get_default_branch(self) -> BranchRef | None:
        return self.get_branch(self._repo.default_branch)

    def get_branch(self, name: str) -> BranchRef | None:
        try:
            branch = self._repo.get_branch(name)
        except UnknownObjectException:
            return None
        except GithubException as e:
            raise api_error(f"get_branch {name}", e) from e
        return self._branch_ref(branch)

    def list_branches(self) -> list[BranchRef]:
        try:
            return [BranchRef(name=b.name, protected=bool(b.protected)) for b in self._repo.get_branches()]
        except GithubException as e:
            raise api_error("list_branches", e) from e

    def _branch_ref(self, branch) -> BranchRef:
        if not branch.protected:
            return BranchRef(name=branch.name, protected=False)
        try:
            protection = branch.get_protection()
        except GithubException as e:
            # Reading protection settings needs admin rights; report the branch as protected
            # with unknown settings rather than failing.
            logger.debug("Protection settings for %s unavailable: %s", branch.name, e)
            return BranchRef(name=branch.name, protected=True)

        reviews = protection.required_pull_request_reviews
        checks = protection.required_status_checks
        rule = BranchProtectionRule(
            allow_deletions=protection.allow_deletions,
            allow_force_pushes=protection.allow_force_pushes,
            enforce_admins=protection.enforce_admins,
            require_linear_history=protection.required_linear_history,
            required_approving_review_count=reviews.required_approving_review_count if reviews else None,
            dismiss_stale_reviews=reviews.dismiss_stale_reviews if reviews else None,
            require_code_owner_reviews=reviews.require_code_owner_reviews if reviews else None,
            require_up_to_date_branch=checks.strict if checks else None,
            status_check_contexts=tuple(checks.contexts) if checks else (),
        )
        return BranchRef(name=branch.name, protected=True, protection_rule=rule)

    def list_commits(self) -> list[Commit]:
        try:
            gh_commits = self._repo.get_commits()[: self._commit_depth]
            return [self._commit(c) for c in gh_commits]
        except GithubException as e:
            raise api_error("list_commits", e) from e

    def _commit(self, gh_commit) -> Commit:
        git_commit = gh_commit.commit
        merge_request = PullRequest()
        for pr in gh_commit.get_pulls():
            # A commit can be associated with several PRs; the merged one is the one it landed through.
            if pr.merged_at is not None:
                merge_request = self._pull_request(pr)
                break
        return Commit(
            sha=gh_commit.sha,
            message=git_commit.message or "",
            committed_date=git_commit.committer.date if git_commit.committer else None,
            committer=_user(gh_commit.committer),
            associated_merge_request=merge_request,
        )

    def _pull_request(self, pr) -> PullRequest:
        return PullRequest(
            number=pr.number,
            merged_at=pr.merged_at,
            head_sha=pr.head.sha,
            author=_user(pr.user),
            merged_by=_user(pr.merged_by),
            labels=tuple(Label(name=label.name) for label in pr.labels),
            reviews=tuple(
                Review(state=r.state, author=_user(r.user), body=r.body or "") for r in pr.get_reviews()
            ),
        )

    def list_releases(self) -> list[Release]:
        try:
            return [
                Release(
                    tag_name=r.tag_name,
                    url=r.html_url,
                    target_commitish=r.target_commitish or "",
                    published_at=r.published_at,
                    assets=tuple(ReleaseAsset(name=a.name, url=a.browser_download_url) for a in r.get_assets()),
                )
                for r in self._repo.get_releases()
            ]
        except GithubException as e:
            raise api_error("list_releases", e) from e

    def list_webhooks(self) -> list[Webhook]:
        try:
            return [
                Webhook(id=h.id, path=h.url, uses_auth_secret=bool((h.config or {}).get("secret")))
                for h in self._repo.get_hooks()
            ]
        except GithubException as e:
            raise api_error("list_webhooks", e) from e

    def list_contributors(self) -> list[Contributor]:
        try:
            return [
                Contributor(
                    user=User(login=c.login, id=c.id),
                    num_contributions=c.contributions or 0,
                    companies=(c.company,) if c.company else (),
                    organizations=tuple(User(login=o.login, id=o.id) for o in c.get_orgs()),
                )
                for c in self._repo.get_contributors()
            ]
        except GithubException as e:
            raise api_error("list_contributors", e) from e

    def list_files(self, predicate: Callable[[str], bool]) -> list[str]:
        if self._tree_paths is None:
            try:
                tree = self._repo.get_git_tree(self._repo.default_branch, recursive=True)
            except GithubException as e:
                raise api_error("list_files", e) from e
            self._tree_paths = [entry.path for entry in tree.tree if entry.type == "blob"]
        return [path for path in self._tree_paths if predicate(path)]

    def get_file_content(self, path: str) -> bytes:
        try:
            return self._repo.get_contents(path).decoded_content
        except GithubException as e:
            raise api_error(f"get_file_content {path}", e) from e

    def list_check_runs_for_ref(self, ref: str) -> list[CheckRun]:
        try:
            return [
                CheckRun(
                    status=run.status or "",
                    conclusion=run.conclusion or "",
                    url=run.html_url or "",
                    app_slug=run.app.slug if run.app else "",
                )
                for run in self._repo.get_commit(ref).get_check_runs()
            ]
        except GithubException as e:
            raise api_error(f"list_check_runs_for_ref {ref}", e) from e

    def list_statuses(self, ref: str) -> list[Status]:
        try:
            return [
                Status(state=s.state, context=s.context or "", url=s.url or "", target_url=s.target_url or "")
                for s in self._repo.get_commit(ref).get_statuses()
            ]
        except GithubException as e:
            raise api_error(f"list_statuses {ref}", e) from e

    def get_tag(self, name: str) -> TagRef | None:
        try:
            self._repo.get_git_ref(f"tags/{name}")
        except UnknownObjectException:
            return None
        except GithubException as e:
            raise api_error(f"get_tag {name}", e) from e
        # GitHub exposes no per-tag protection through the REST API.
        return TagRef(name=name, protected=False)

    def list_tags(self) -> list[TagRef]:
        try:
            return [TagRef(name=t.name) for t in self._repo.get_tags()]
        except GithubException as e:
            raise api_error("list_tags", e) from e

    def list_licenses(self) -> list[License]:
        try:
            content = self._repo.get_license()
        except UnknownObjectException:
            return []
        except GithubException as e:
            raise api_error("list_licenses", e) from e
        lic = content.license
        return [
            License(
                key=lic.key if lic else "",
                name=lic.name if lic else "",
                spdx_id=lic.spdx_id if lic else "",
                path=content.path,
                size=content.size or 0,
            )
        ]

    def list_successful_workflow_runs(self, filename: str) -> list[WorkflowRun]:
        try:
            runs = self._repo.get_workflow(filename).get_runs(status="success")[: self._commit_depth]
            return [WorkflowRun(head_sha=r.head_sha, url=r.html_url or "") for r in runs]
        except UnknownObjectException:
            return []
        except GithubException as e:
            raise api_error(f"list_successful_workflow_runs {filename}", e) from e

    def org_health_client(self) -> GithubRepoClient | None:
        try:
            repo = self._repo.owner.get_repo(".github")
        except UnknownObjectException:
            return None
        except GithubException as e:
            raise api_error("org .github repository", e) from e
        return GithubRepoClient(repo, commit_depth=self._commit_depth)
