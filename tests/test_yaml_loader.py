# tests/test_yaml_loader.py
from __future__ import annotations

from pathlib import Path

import pytest

from stepci.errors import WorkflowError
from stepci.runner import load_workflow
from stepci.step_workflows import compile_commands

FIXTURE = Path(__file__).parent / "fixtures" / "coverage.yml"


@pytest.fixture
def coverage():
    return load_workflow(FIXTURE)


def _write(tmp_path, text: str) -> Path:
    p = tmp_path / "wf.yml"
    p.write_text(text, encoding="utf-8")
    return p


def test_pipeline_metadata(coverage):
    assert coverage.name == "Test coverage"
    assert coverage.env == {"RUST_BACKTRACE": "1", "PRUSTI_ASSERT_TIMEOUT": "60000"}
    assert coverage.trigger.branches == ("master",)
    assert coverage.trigger.paths_ignore == ("docs/**",)


def test_step_order_and_kinds(coverage):
    assert [(s.name, s.kind) for s in coverage.steps] == [
        ("Check out the repo", "checkout"),
        ("Set up Java", "toolchain"),
        ("Set up the environment", "shell"),
        ("Cache cargo", "cache"),
        ("Enable collection of source-based coverage", "shell"),
        ("Build with cargo", "shell"),
        ("Run cargo tests", "shell"),
        ("Rerun quick cargo tests, enabling debug dumps to cover more code", "shell"),
        ("Check prusti-contracts", "shell"),
        ("Collect coverage", "shell"),
        ("Upload coverage to Codecov", "upload"),
    ]


def test_quick_tests_are_declared_but_disabled(coverage):
    quick = coverage.steps[7]
    assert quick.enabled is False
    assert quick.run == ("python x.py test quick",)
    assert quick.env == {
        "PRUSTI_DUMP_DEBUG_INFO": "true",
        "PRUSTI_DUMP_VIPER_PROGRAM": "true",
        "PRUSTI_IGNORE_REGIONS": "true",
    }
    assert all(s.enabled for i, s in enumerate(coverage.steps) if i != 7)


def test_action_parameters(coverage):
    java = coverage.steps[1]
    assert java.data["tool"] == "java"
    assert java.data["version"] == "15"
    assert java.data["distribution"] == "zulu"

    cache = coverage.steps[3]
    assert cache.data["shared_key"] == "shared"
    assert cache.data["paths"] == ["target"]

    upload = coverage.steps[-1]
    assert upload.secrets == ("CODECOV_TOKEN",)
    assert upload.data["file"] == "./lcov.info"


def test_run_blocks_are_kept_as_one_script(coverage):
    enable = coverage.steps[4]
    assert len(enable.run) == 1
    assert "RUSTFLAGS=-Cinstrument-coverage" in enable.run[0]
    assert "$GITHUB_ENV" in enable.run[0]


def test_if_expression_literal(tmp_path):
    p = _write(tmp_path, """
name: t
on:
  push:
    branches: [main]
jobs:
  only:
    steps:
      - name: skipped-step
        if: ${{ false }}
        run: echo off
      - name: running-step
        if: true
        run: echo on
""")
    wf = load_workflow(p)
    assert [s.enabled for s in wf.steps] == [False, True]
    assert wf.trigger.branches == ("main",)


def test_real_conditions_are_rejected(tmp_path):
    p = _write(tmp_path, """
on: push
jobs:
  only:
    steps:
      - name: cond
        if: github.ref == 'refs/heads/main'
        run: echo hi
""")
    with pytest.raises(WorkflowError, match="literal true/false"):
        load_workflow(p)


def test_unknown_action_is_rejected(tmp_path):
    p = _write(tmp_path, """
on: push
jobs:
  only:
    steps:
      - uses: someone/mystery-action@v1
""")
    with pytest.raises(WorkflowError, match="unsupported action"):
        load_workflow(p)


def test_more_than_one_job_is_rejected(tmp_path):
    p = _write(tmp_path, """
on: push
jobs:
  a:
    steps: [{run: echo a}]
  b:
    steps: [{run: echo b}]
""")
    with pytest.raises(WorkflowError, match="exactly one job"):
        load_workflow(p)


def test_env_expressions_are_translated(tmp_path):
    p = _write(tmp_path, """
on: push
jobs:
  only:
    steps:
      - name: paths
        run: echo $PROFILE
        working-directory: sub
        env:
          PROFILE: ${{ github.workspace }}/target/%p.profraw
          ALIAS: ${{ env.RUST_BACKTRACE }}
""")
    step = load_workflow(p).steps[0]
    assert step.cwd == "sub"
    assert step.env == {"PROFILE": "${GITHUB_WORKSPACE}/target/%p.profraw", "ALIAS": "${RUST_BACKTRACE}"}


def test_setup_actions_query_versions_the_tool_way(tmp_path):
    p = _write(tmp_path, """
on: push
jobs:
  only:
    steps:
      - name: node
        uses: actions/setup-node@v4
        with:
          node-version: '20'
      - name: java
        uses: actions/setup-java@v3
        with:
          java-version: '17'
""")
    node, java = load_workflow(p).steps
    assert compile_commands(node)[-1] == "node --version 2>&1 | grep -F -q 20"
    assert compile_commands(java)[-1] == "java -version 2>&1 | grep -F -q 17"
