# step_workflows/coverage.py
from __future__ import annotations

import shlex
from typing import List

from ..model import Step

GRCOV_URL = "https://github.com/mozilla/grcov/releases/latest/download/grcov-x86_64-unknown-linux-gnu.tar.bz2"

DEFAULT_PROFILE_DIR = "target/coverage"
DEFAULT_BINARY_PATH = "./target/debug/"


def instrument_coverage_step(
    name: str = "Enable collection of source-based coverage",
    *,
    profile_dir: str = DEFAULT_PROFILE_DIR,
    rustflags: str = "-Cinstrument-coverage",
) -> Step:
    """
    Turn on source-based coverage for every build that follows.

    Must come before the build step: the flag only affects artifacts
    compiled after it is set.
    """
    profile_dir = profile_dir.rstrip("/")
    return Step(
        name=name,
        run=(f"mkdir -p {shlex.quote(profile_dir)}",),
        env={
            "RUSTFLAGS": rustflags,
            "LLVM_PROFILE_FILE": "${STEPCI_WORKSPACE}/" + profile_dir + "/gcov-%p-%m.profraw",
        },
    )


def collect_coverage_step(
    name: str = "Collect coverage",
    *,
    binary_path: str = DEFAULT_BINARY_PATH,
    output: str = "lcov.info",
    source_dir: str = ".",
    download: bool = True,
    download_url: str = GRCOV_URL,
    ignore: tuple[str, ...] = ("/*",),
) -> Step:
    """Turn the profiling data left by the test run into an lcov report."""
    return Step(
        name=name,
        kind="coverage",
        data={
            "binary_path": binary_path,
            "output": output,
            "source_dir": source_dir,
            "download": download,
            "download_url": download_url,
            "ignore": list(ignore),
        },
    )


def compile_coverage(step: Step) -> List[str]:
    data = step.data or {}
    out: List[str] = []

    grcov = "grcov"
    if data.get("download", True):
        out.append(f"curl -sL {shlex.quote(data.get('download_url') or GRCOV_URL)} | tar jxf -")
        grcov = "./grcov"

    args = [
        grcov,
        shlex.quote(data.get("source_dir") or "."),
        "--llvm",
        "--binary-path", shlex.quote(data.get("binary_path") or DEFAULT_BINARY_PATH),
        "-s", ".",
        "-t", "lcov",
        "--branch",
        "--ignore-not-existing",
    ]
    for pattern in data.get("ignore") or []:
        args.extend(["--ignore", shlex.quote(pattern)])
    args.extend(["-o", shlex.quote(data.get("output") or "lcov.info")])
    out.append(" ".join(args))
    return out
