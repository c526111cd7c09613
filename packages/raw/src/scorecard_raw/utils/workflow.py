"""Minimal GitHub Actions workflow model built from PyYAML nodes.

Only what the collectors read is kept: triggers, jobs, and each step's
``uses`` / ``run`` / ``with`` values together with the 1-based line they
start on. Working on composed nodes rather than loaded data keeps those
line numbers, and keeps ``on:`` a plain string instead of YAML 1.1's ``True``.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass, field

import yaml

from scorecard_clients.errors import invalid_input

_WORKFLOW_DIR = ".github/workflows"
_WORKFLOW_EXTENSIONS = (".yml", ".yaml")
_DEFAULT_SHELL = "bash"
_DEFAULT_WINDOWS_SHELL = "pwsh"
_WINDOWS_STEP_RES = (
    re.compile(r"runner\.os\s*==\s*[\"']windows[\"']", re.IGNORECASE),
    re.compile(r"\$\{\{\s*startsWith\(runner\.os,\s*[\"']windows[\"']\)", re.IGNORECASE),
    re.compile(r"matrix\.os\s*==\s*[\"']windows-", re.IGNORECASE),
)


@dataclass
class Step:
    line: int
    name: str | None = None
    uses: str | None = None
    uses_line: int = 0
    run: str | None = None
    run_line: int = 0
    # Line the script text itself starts on; one past run_line for block scalars.
    script_line: int = 0
    shell: str | None = None
    if_: str | None = None
    with_: dict[str, str] = field(default_factory=dict)


@dataclass
class Job:
    id: str
    line: int
    name: str | None = None
    # Reusable workflow call (jobs.<id>.uses)
    uses: str | None = None
    uses_line: int = 0
    runs_on: list[str] = field(default_factory=list)
    # defaults.run.shell
    default_shell: str | None = None
    steps: list[Step] = field(default_factory=list)


@dataclass
class Workflow:
    triggers: list[str] = field(default_factory=list)
    jobs: list[Job] = field(default_factory=list)


def is_workflow_file(path: str) -> bool:
    directory, name = posixpath.split(path)
    return directory.lower() == _WORKFLOW_DIR and name.lower().endswith(_WORKFLOW_EXTENSIONS)


def _line(node: yaml.Node) -> int:
    return node.start_mark.line + 1


def _scalar(node: yaml.Node | None) -> str | None:
    if isinstance(node, yaml.ScalarNode):
        return node.value
    return None


def _items(node: yaml.Node | None) -> list[tuple[str, yaml.Node]]:
    """Return ``(key, value_node)`` pairs of a mapping node; non-string keys are dropped."""
    if not isinstance(node, yaml.MappingNode):
        return []
    return [(k.value, v) for k, v in node.value if isinstance(k, yaml.ScalarNode)]


def _get(node: yaml.Node | None, key: str) -> yaml.Node | None:
    for k, v in _items(node):
        if k == key:
            return v
    return None


def _strings(node: yaml.Node | None) -> list[str]:
    if isinstance(node, yaml.ScalarNode):
        return [node.value] if node.value else []
    if isinstance(node, yaml.SequenceNode):
        return [item.value for item in node.value if isinstance(item, yaml.ScalarNode)]
    return []


def _triggers(node: yaml.Node | None) -> list[str]:
    # on: push | on: [push, pull_request] | on: {push: {...}}
    if isinstance(node, yaml.MappingNode):
        return [key for key, _ in _items(node)]
    return _strings(node)


def _step(node: yaml.MappingNode) -> Step:
    step = Step(line=_line(node), name=_scalar(_get(node, "name")))
    uses = _get(node, "uses")
    if _scalar(uses) is not None:
        step.uses = uses.value
        step.uses_line = _line(uses)
    run = _get(node, "run")
    if _scalar(run) is not None:
        step.run = run.value
        step.run_line = _line(run)
        step.script_line = step.run_line + (1 if run.style in ("|", ">") else 0)
    step.shell = _scalar(_get(node, "shell"))
    step.if_ = _scalar(_get(node, "if"))
    for key, value in _items(_get(node, "with")):
        if _scalar(value) is not None:
            step.with_[key] = value.value
    return step


def _job(job_id: str, node: yaml.Node) -> Job:
    job = Job(id=job_id, line=_line(node), name=_scalar(_get(node, "name")))
    uses = _get(node, "uses")
    if _scalar(uses) is not None:
        job.uses = uses.value
        job.uses_line = _line(uses)
    job.runs_on = _strings(_get(node, "runs-on"))
    job.default_shell = _scalar(_get(_get(_get(node, "defaults"), "run"), "shell"))
    steps = _get(node, "steps")
    if isinstance(steps, yaml.SequenceNode):
        job.steps = [_step(item) for item in steps.value if isinstance(item, yaml.MappingNode)]
    return job


def parse_workflow(content: bytes | str) -> Workflow:
    """Parse a workflow file.

    Raises:
        ScorecardError: INVALID_INPUT if the content is not YAML or not a mapping.
    """
    try:
        root = yaml.compose(content, Loader=yaml.SafeLoader)
    except yaml.YAMLError as e:
        raise invalid_input("invalid workflow YAML", e) from e
    if root is None:
        return Workflow()
    if not isinstance(root, yaml.MappingNode):
        raise invalid_input("workflow is not a mapping")

    return Workflow(
        triggers=_triggers(_get(root, "on")),
        jobs=[_job(job_id, node) for job_id, node in _items(_get(root, "jobs"))],
    )


def shell_for_step(job: Job, step: Step) -> str:
    """Return the shell a ``run:`` step executes in.

    An explicit ``shell:`` wins, then the job's ``defaults.run.shell``.
    Otherwise Windows runners get pwsh and everything else bash. A step is on
    Windows when its ``if:`` tests for it, or when every ``runs-on`` label of
    the job names Windows; labels built from a matrix are not resolved.
    """
    if step.shell:
        return step.shell
    if job.default_shell:
        return job.default_shell
    if step.if_ and any(r.search(step.if_) for r in _WINDOWS_STEP_RES):
        return _DEFAULT_WINDOWS_SHELL
    if job.runs_on and all("windows" in label.lower() for label in job.runs_on):
        return _DEFAULT_WINDOWS_SHELL
    return _DEFAULT_SHELL
