# tests/test_cli.py
from __future__ import annotations

import pytest
from click.testing import CliRunner

from stepci import cli as cli_mod
from stepci.cli import cli

PASSING = """
from stepci.dsl import disabled, on_push, pipeline, sh

def workflow():
    return pipeline(
        "demo",
        sh("hello", "echo hello"),
        disabled(sh("quick", "exit 1")),
        env={"RUST_BACKTRACE": "1"},
        trigger=on_push("main", paths_ignore=["docs/**"]),
    )
"""

FAILING = """
from stepci.dsl import pipeline, sh

def workflow():
    return pipeline("demo", sh("boom", "exit 4"), sh("after", "echo after"))
"""


@pytest.fixture
def project(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for var in ("STEPCI_WORKFLOW", "STEPCI_WORKSPACE_DIR", "STEPCI_CACHE_DIR", "STEPCI_DEBUG"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


def _write(project, name, text):
    (project / name).write_text(text, encoding="utf-8")


def test_plan_lists_steps(project):
    _write(project, "stepci_workflow.py", PASSING)
    res = CliRunner().invoke(cli, ["plan"])

    assert res.exit_code == 0, res.output
    assert "Trigger: push to main (ignoring docs/**)" in res.output
    assert "Env: RUST_BACKTRACE=1" in res.output
    assert "1. hello [shell, enabled]" in res.output
    assert "2. quick [shell, disabled]" in res.output


def test_run_success(project):
    _write(project, "stepci_workflow.py", PASSING)
    res = CliRunner().invoke(cli, ["run"])

    assert res.exit_code == 0, res.output
    assert "PIPELINE STARTED" in res.output
    assert "STATUS: skipped (disabled)" in res.output
    assert "hello: SUCCESS" in res.output
    assert "quick: SKIPPED" in res.output


def test_run_failure_exits_nonzero_and_stops(project):
    _write(project, "ci_workflow.py", FAILING)
    res = CliRunner().invoke(cli, ["run", "--workflow", "ci_workflow.py"])

    assert res.exit_code == 1
    assert "STEP FAILED: boom" in res.output
    assert "Exit code: 4" in res.output
    assert "after" not in res.output


def test_trigger_not_matched_runs_nothing(project, monkeypatch):
    _write(project, "stepci_workflow.py", PASSING)
    monkeypatch.setattr(cli_mod, "pushed_files", lambda ref, cwd=None: ["docs/readme.md"])
    res = CliRunner().invoke(cli, ["run", "--check-trigger", "--branch", "main"])

    assert res.exit_code == 0, res.output
    assert "Trigger not matched" in res.output
    assert "PIPELINE STARTED" not in res.output


def test_trigger_matched_runs(project, monkeypatch):
    _write(project, "stepci_workflow.py", PASSING)
    monkeypatch.setattr(cli_mod, "pushed_files", lambda ref, cwd=None: ["src/lib.rs"])
    res = CliRunner().invoke(cli, ["run", "--check-trigger", "--branch", "main"])

    assert res.exit_code == 0, res.output
    assert "hello: SUCCESS" in res.output


def test_missing_workflow(project):
    res = CliRunner().invoke(cli, ["run"])
    assert res.exit_code == 1
    assert "No workflow file found" in res.output


def test_multiple_workflows_need_a_choice(project):
    _write(project, "a_workflow.py", PASSING)
    _write(project, "b_workflow.py", PASSING)
    res = CliRunner().invoke(cli, ["plan"])
    assert res.exit_code == 1
    assert "Multiple workflow files found" in res.output


def test_broken_workflow_is_reported(project):
    _write(project, "stepci_workflow.py", "X = 1\n")
    res = CliRunner().invoke(cli, ["plan"])
    assert res.exit_code == 1
    assert "Failed to load workflow" in res.output
