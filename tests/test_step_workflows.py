# tests/test_step_workflows.py
from __future__ import annotations

import pytest

from stepci.model import Step
from stepci.step_workflows import (
    cache_step,
    checkout_step,
    collect_coverage_step,
    compile_commands,
    instrument_coverage_step,
    toolchain_step,
    upload_step,
)
from stepci.step_workflows.coverage import GRCOV_URL


def test_shell_steps_compile_to_their_own_commands():
    assert compile_commands(Step(name="s", run=("a", "b"))) == ["a", "b"]


def test_checkout_verifies_work_tree():
    assert compile_commands(checkout_step()) == ["git rev-parse --is-inside-work-tree"]


def test_toolchain_checks_path_and_version():
    cmds = compile_commands(toolchain_step("Set up Java", "java", "15", distribution="zulu"))
    assert cmds == ["command -v java", "java -version 2>&1 | grep -F -q 15"]


@pytest.mark.parametrize(
    "tool, expected",
    [
        ("node", "node --version 2>&1 | grep -F -q 20"),
        ("python", "python --version 2>&1 | grep -F -q 20"),
        ("go", "go version 2>&1 | grep -F -q 20"),
    ],
)
def test_toolchain_version_flag_follows_the_tool(tool, expected):
    assert compile_commands(toolchain_step("setup", tool, "20"))[-1] == expected


def test_toolchain_runs_install_first():
    step = toolchain_step("rust", "rustc", "1.75", install="rustup toolchain install 1.75", version_flag="--version")
    assert compile_commands(step) == [
        "rustup toolchain install 1.75",
        "command -v rustc",
        "rustc --version 2>&1 | grep -F -q 1.75",
    ]


def test_instrument_step_sets_flags_for_later_builds():
    step = instrument_coverage_step()
    assert step.kind == "shell"
    assert step.env["RUSTFLAGS"] == "-Cinstrument-coverage"
    assert step.env["LLVM_PROFILE_FILE"] == "${STEPCI_WORKSPACE}/target/coverage/gcov-%p-%m.profraw"
    assert step.run == ("mkdir -p target/coverage",)


def test_collect_downloads_grcov_then_writes_lcov():
    cmds = compile_commands(collect_coverage_step())
    assert cmds[0] == f"curl -sL {GRCOV_URL} | tar jxf -"
    assert cmds[1] == (
        "./grcov . --llvm --binary-path ./target/debug/ -s . -t lcov --branch "
        "--ignore-not-existing --ignore '/*' -o lcov.info"
    )


def test_upload_keeps_token_out_of_the_command():
    step = upload_step(file="./lcov.info")
    assert step.secrets == ("CODECOV_TOKEN",)
    assert compile_commands(step) == [
        "test -f ./lcov.info",
        'codecovcli upload-process -t "$CODECOV_TOKEN" -f ./lcov.info',
    ]


def test_cache_paths_must_stay_in_workspace():
    with pytest.raises(ValueError):
        cache_step("bad", "k", paths=["~/.cargo"])
    with pytest.raises(ValueError):
        cache_step("bad", "k", paths=["../outside"])


def test_cache_steps_are_not_compiled_to_commands():
    with pytest.raises(ValueError, match="unknown kind"):
        compile_commands(cache_step("Cache cargo", "shared", paths=["target"]))
