# step_workflows/toolchain.py
from __future__ import annotations

import shlex
from typing import List

from ..model import Step


# tools whose version query is not `--version`
VERSION_FLAGS = {
    "java": "-version",
    "javac": "-version",
    "go": "version",
}


# ---------------------------------------------------------------------
# Toolchain setup helper
# ---------------------------------------------------------------------

def toolchain_step(
    name: str,
    tool: str,
    version: str,
    *,
    distribution: str | None = None,
    install: str | None = None,
    version_flag: str | None = None,
) -> Step:
    """
    Make a runtime available on PATH.

    `install` is an optional command that provisions the runtime (for example
    a package manager call); the step then checks that `tool` resolves on
    PATH and that its version output mentions `version`. `version_flag`
    defaults to `--version`, or the tool's own spelling from VERSION_FLAGS.
    """
    data = {
        "tool": tool,
        "version": str(version),
        "distribution": distribution,
        "install": install,
        "version_flag": version_flag or VERSION_FLAGS.get(tool, "--version"),
    }
    return Step(name=name, kind="toolchain", data=data)


def compile_toolchain(step: Step) -> List[str]:
    data = step.data or {}
    tool = data.get("tool")
    if not tool:
        raise ValueError(f"Step '{step.name}' has no tool")

    q_tool = shlex.quote(tool)
    version = str(data.get("version") or "")
    flag = data.get("version_flag") or VERSION_FLAGS.get(tool, "--version")

    out: List[str] = []
    if data.get("install"):
        out.append(data["install"])
    out.append(f"command -v {q_tool}")
    if version:
        out.append(f"{q_tool} {flag} 2>&1 | grep -F -q {shlex.quote(version)}")
    else:
        out.append(f"{q_tool} {flag}")
    return out
