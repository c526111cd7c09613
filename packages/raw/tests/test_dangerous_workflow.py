"""Tests for workflow parsing and dangerous workflow detection."""

from __future__ import annotations

import pytest

from scorecard_clients.errors import ErrorKind, ScorecardError

from scorecard_raw.dangerous_workflow import (
    contains_untrusted_context_pattern,
    dangerous_workflow,
    is_untrusted_checkout_ref,
)
from scorecard_raw.data import DangerousWorkflowType
from scorecard_raw.utils.workflow import is_workflow_file, parse_workflow, shell_for_step

CHECKOUT_PR_TARGET = """\
name: ci
on:
  pull_request_target:
    types: [opened]
jobs:
  build:
    name: Build PR
    runs-on: ubuntu-latest
    steps:
      - uses: actions/checkout@v4
        with:
          ref: ${{ github.event.pull_request.head.sha }}
      - run: make test
"""

INJECTION = """\
on: issue_comment
jobs:
  greet:
    runs-on: ubuntu-latest
    steps:
      - name: echo
        run: |
          echo "${{ github.event.comment.body }}"
          echo "${{ github.sha }}"
          echo "${{ github.head_ref }}"
"""


class TestParseWorkflow:
    def test_trigger_forms(self):
        assert parse_workflow("on: push\n").triggers == ["push"]
        assert parse_workflow("on: [push, pull_request]\n").triggers == ["push", "pull_request"]
        assert parse_workflow("on:\n  push:\n  schedule:\n    - cron: '0 0 * * *'\n").triggers == [
            "push",
            "schedule",
        ]

    def test_steps_with_lines(self):
        workflow = parse_workflow(CHECKOUT_PR_TARGET)

        (job,) = workflow.jobs
        assert job.id == "build"
        assert job.name == "Build PR"
        checkout, make = job.steps
        assert checkout.line == 10
        assert checkout.uses == "actions/checkout@v4"
        assert checkout.uses_line == 10
        assert checkout.with_ == {"ref": "${{ github.event.pull_request.head.sha }}"}
        assert make.run == "make test"
        assert make.run_line == 13

    def test_reusable_workflow_job(self):
        workflow = parse_workflow("on: push\njobs:\n  call:\n    uses: org/repo/.github/workflows/x.yml@main\n")
        (job,) = workflow.jobs
        assert job.name is None
        assert job.uses == "org/repo/.github/workflows/x.yml@main"
        assert job.uses_line == 4
        assert job.steps == []

    def test_empty_document(self):
        workflow = parse_workflow("")
        assert workflow.triggers == []
        assert workflow.jobs == []

    @pytest.mark.parametrize("content", ["on: [push\njobs: {", "- just\n- a list\n"])
    def test_invalid_input(self, content):
        with pytest.raises(ScorecardError) as exc_info:
            parse_workflow(content)
        assert exc_info.value.kind is ErrorKind.INVALID_INPUT

    def test_block_scalar_script_line(self):
        workflow = parse_workflow(INJECTION)
        (step,) = workflow.jobs[0].steps
        assert step.run_line == 7
        assert step.script_line == 8

    def test_runs_on_forms(self):
        workflow = parse_workflow(
            "on: push\njobs:\n  a:\n    runs-on: ubuntu-latest\n  b:\n    runs-on: [self-hosted, linux]\n  c: {}\n"
        )
        assert [job.runs_on for job in workflow.jobs] == [["ubuntu-latest"], ["self-hosted", "linux"], []]


SHELLS = """\
on: push
jobs:
  linux:
    runs-on: ubuntu-latest
    steps:
      - run: echo default
      - run: echo explicit
        shell: pwsh
      - run: echo conditional
        if: runner.os == 'Windows'
  windows:
    runs-on: windows-latest
    steps:
      - run: echo windows
  defaults:
    runs-on: windows-latest
    defaults:
      run:
        shell: bash
    steps:
      - run: echo bash on windows
"""


class TestShellForStep:
    def test_resolution_order(self):
        linux, windows, defaults = parse_workflow(SHELLS).jobs

        assert [shell_for_step(linux, step) for step in linux.steps] == ["bash", "pwsh", "pwsh"]
        assert shell_for_step(windows, windows.steps[0]) == "pwsh"
        assert shell_for_step(defaults, defaults.steps[0]) == "bash"

class TestIsWorkflowFile:
    @pytest.mark.parametrize(
        "path", [".github/workflows/ci.yml", ".github/workflows/ci.YAML", ".GitHub/Workflows/a.yml"]
    )
    def test_accepted(self, path):
        assert is_workflow_file(path)

    @pytest.mark.parametrize(
        "path", [".github/workflows/README.md", ".github/workflows/sub/ci.yml", "ci.yml", ".github/dependabot.yml"]
    )
    def test_rejected(self, path):
        assert not is_workflow_file(path)


class TestPredicates:
    @pytest.mark.parametrize(
        "variable",
        [
            " github.event.issue.title ",
            "github.event.pull_request.body",
            "github.event.commits[0].message",
            "github.event.pages[1].page_name",
            "github.event.head_commit.author.email",
            "github.event.pull_request.head.ref",
            "github.head_ref",
        ],
    )
    def test_untrusted(self, variable):
        assert contains_untrusted_context_pattern(variable)

    @pytest.mark.parametrize(
        "variable",
        ["github.sha", "github.event.pull_request.number", "issue.title", "secrets.TOKEN"],
    )
    def test_trusted(self, variable):
        assert not contains_untrusted_context_pattern(variable)

    def test_checkout_refs(self):
        assert is_untrusted_checkout_ref("${{ github.event.pull_request.head.sha }}")
        assert is_untrusted_checkout_ref("${{ github.event.workflow_run.head_branch }}")
        assert not is_untrusted_checkout_ref("main")


class TestDangerousWorkflow:
    def test_untrusted_checkout(self, make_client):
        data = dangerous_workflow(make_client(files={".github/workflows/ci.yml": CHECKOUT_PR_TARGET}))

        assert data.num_workflows == 1
        (finding,) = data.workflows
        assert finding.type is DangerousWorkflowType.UNTRUSTED_CHECKOUT
        assert finding.file.path == ".github/workflows/ci.yml"
        assert finding.file.offset == 10
        assert finding.file.snippet == "${{ github.event.pull_request.head.sha }}"
        assert finding.job.id == "build"
        assert finding.job.name == "Build PR"

    def test_checkout_on_trusted_trigger_ignored(self, make_client):
        content = CHECKOUT_PR_TARGET.replace("pull_request_target", "pull_request")
        assert dangerous_workflow(make_client(files={".github/workflows/ci.yml": content})).workflows == []

    def test_workflow_run_checkout(self, make_client):
        content = (
            "on: [workflow_run]\n"
            "jobs:\n"
            "  deploy:\n"
            "    steps:\n"
            "      - uses: actions/checkout@v4\n"
            "        with:\n"
            "          ref: ${{ github.event.workflow_run.head_sha }}\n"
        )
        (finding,) = dangerous_workflow(make_client(files={".github/workflows/d.yml": content})).workflows
        assert finding.type is DangerousWorkflowType.UNTRUSTED_CHECKOUT
        assert finding.job.name is None
        assert finding.job.id == "deploy"

    def test_script_injection(self, make_client):
        data = dangerous_workflow(make_client(files={".github/workflows/greet.yml": INJECTION}))

        assert [w.type for w in data.workflows] == [DangerousWorkflowType.SCRIPT_INJECTION] * 2
        assert [w.file.snippet.strip() for w in data.workflows] == ["github.event.comment.body", "github.head_ref"]
        assert {w.file.offset for w in data.workflows} == {7}
        assert data.workflows[0].job.id == "greet"

    def test_unterminated_expression_is_internal_error(self, make_client):
        content = "on: push\njobs:\n  a:\n    steps:\n      - run: echo \"${{ github.event.issue.title\"\n"
        with pytest.raises(ScorecardError) as exc_info:
            dangerous_workflow(make_client(files={".github/workflows/a.yml": content}))
        assert exc_info.value.kind is ErrorKind.INTERNAL
        assert exc_info.value.message == "invalid GitHub workflow"

    def test_invalid_yaml_skipped(self, make_client):
        client = make_client(
            files={
                ".github/workflows/broken.yml": "on: [push\njobs: {",
                ".github/workflows/greet.yml": INJECTION,
            }
        )
        data = dangerous_workflow(client)
        assert data.num_workflows == 2
        assert len(data.workflows) == 2

    def test_counts_only_workflows_with_content(self, make_client):
        client = make_client(
            files={
                ".github/workflows/empty.yml": "# disabled\n\n",
                ".github/workflows/README.md": "on: push\n",
                ".GitHub/Workflows/ci.yml": "on: push\njobs: {}\n",
                "ci.yml": "on: push\n",
            }
        )
        data = dangerous_workflow(client)
        assert data.num_workflows == 1
        assert data.workflows == []

    def test_excluded_workflows_skipped(self, make_client):
        client = make_client(
            files={".github/workflows/greet.yml": INJECTION, ".github/workflows/ci.yml": "on: push\njobs: {}\n"}
        )
        data = dangerous_workflow(client, exclude_paths=[".github/workflows/greet"])
        assert data.num_workflows == 1
        assert data.workflows == []
