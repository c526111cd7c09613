"""Detect GitHub Actions workflow patterns that let outsiders run code.

Two patterns are reported:

* untrusted checkout: a ``pull_request_target`` or ``workflow_run`` workflow
  checks out the pull request's code, which then runs with the base
  repository's secrets;
* script injection: a ``run:`` script interpolates an attacker-controlled
  ``${{ github.event... }}`` value straight into the shell.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Iterator

from scorecard_clients.errors import ErrorKind, ScorecardError, internal_error

from scorecard_raw.data import DangerousWorkflow, DangerousWorkflowData, DangerousWorkflowType, File, FileType, WorkflowJob
from scorecard_raw.errors import ERR_INVALID_GITHUB_WORKFLOW
from scorecard_raw.utils.fileparser import PathMatcher, file_contains_commands, iter_matching_files
from scorecard_raw.utils.workflow import Job, Workflow, is_workflow_file, parse_workflow

if TYPE_CHECKING:
    from scorecard_clients.base import RepoClient

logger = logging.getLogger(__name__)

_WORKFLOW_FILES = PathMatcher(".github/workflows/*", case_sensitive=False)

# Event context fields an outside contributor can set.
# See https://securitylab.github.com/research/github-actions-untrusted-input/
_UNTRUSTED_CONTEXT_RE = re.compile(
    r"(issue\.title"
    r"|issue\.body"
    r"|pull_request\.title"
    r"|pull_request\.body"
    r"|comment\.body"
    r"|review\.body"
    r"|review_comment\.body"
    r"|pages.*\.page_name"
    r"|commits.*\.message"
    r"|head_commit\.message"
    r"|head_commit\.author\.email"
    r"|head_commit\.author\.name"
    r"|commits.*\.author\.email"
    r"|commits.*\.author\.name"
    r"|pull_request\.head\.ref"
    r"|pull_request\.head\.label"
    r"|pull_request\.head\.repo\.default_branch)"
)

_UNTRUSTED_TRIGGERS = ("pull_request_target", "workflow_run")
_UNTRUSTED_CHECKOUT_REFS = ("github.event.pull_request", "github.event.workflow_run")


def contains_untrusted_context_pattern(variable: str) -> bool:
    """Return True if a ``${{ }}`` expression reads attacker-controlled event data."""
    if "github.head_ref" in variable:
        return True
    return "github.event." in variable and _UNTRUSTED_CONTEXT_RE.search(variable) is not None


def uses_untrusted_trigger(workflow: Workflow) -> bool:
    return any(trigger in _UNTRUSTED_TRIGGERS for trigger in workflow.triggers)


def is_untrusted_checkout_ref(ref: str) -> bool:
    return any(untrusted in ref for untrusted in _UNTRUSTED_CHECKOUT_REFS)


def _workflow_job(job: Job) -> WorkflowJob:
    return WorkflowJob(name=job.name, id=job.id)


def untrusted_checkouts(workflow: Workflow, path: str) -> Iterator[DangerousWorkflow]:
    if not uses_untrusted_trigger(workflow):
        return
    for job in workflow.jobs:
        for step in job.steps:
            if step.uses is None or "actions/checkout" not in step.uses:
                continue
            # Without a ref, pull_request_target checks out the base branch.
            ref = step.with_.get("ref")
            if ref is None or not is_untrusted_checkout_ref(ref):
                continue
            yield DangerousWorkflow(
                type=DangerousWorkflowType.UNTRUSTED_CHECKOUT,
                file=File(path=path, type=FileType.SOURCE, offset=step.line, snippet=ref),
                job=_workflow_job(job),
            )


def script_injections(workflow: Workflow, path: str) -> Iterator[DangerousWorkflow]:
    """Yield one finding per untrusted expression in each ``run:`` script.

    Raises:
        ScorecardError: INTERNAL if a script opens ``${{`` and never closes it.
    """
    for job in workflow.jobs:
        for step in job.steps:
            if step.run is None:
                continue
            script = step.run
            while True:
                start = script.find("${{")
                if start == -1:
                    break
                end = script.find("}}", start)
                if end == -1:
                    raise internal_error(ERR_INVALID_GITHUB_WORKFLOW)
                variable = script[start + 3 : end]
                if contains_untrusted_context_pattern(variable):
                    yield DangerousWorkflow(
                        type=DangerousWorkflowType.SCRIPT_INJECTION,
                        file=File(path=path, type=FileType.SOURCE, offset=step.run_line, snippet=variable),
                        job=_workflow_job(job),
                    )
                script = script[end:]


def dangerous_workflow(client: RepoClient, exclude_paths: list[str] | None = None) -> DangerousWorkflowData:
    data = DangerousWorkflowData()
    for path, content in iter_matching_files(client, _WORKFLOW_FILES, exclude_paths):
        if not is_workflow_file(path) or not file_contains_commands(content, "#"):
            continue
        data.num_workflows += 1

        try:
            workflow = parse_workflow(content)
        except ScorecardError as e:
            if e.kind is not ErrorKind.INVALID_INPUT:
                raise
            logger.warning("Skipping workflow %s: %s", path, e)
            continue

        data.workflows.extend(untrusted_checkouts(workflow, path))
        data.workflows.extend(script_injections(workflow, path))

    logger.debug("Found %d dangerous patterns in %d workflows", len(data.workflows), data.num_workflows)
    return data
