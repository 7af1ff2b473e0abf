# step_workflows/__init__.py
from __future__ import annotations

from typing import Callable, Dict, List

from ..model import Step
from .checkout import checkout_step, compile_checkout
from .cache import cache_step
from .coverage import collect_coverage_step, compile_coverage, instrument_coverage_step
from .toolchain import compile_toolchain, toolchain_step
from .upload import compile_upload, upload_step

# kind -> compiler turning a typed step into shell commands.
# "cache" steps are restored in-process by the runner.
COMPILERS: Dict[str, Callable[[Step], List[str]]] = {
    "checkout": compile_checkout,
    "toolchain": compile_toolchain,
    "coverage": compile_coverage,
    "upload": compile_upload,
}


def compile_commands(step: Step) -> List[str]:
    """Commands to execute for a step, in order."""
    if step.kind == "shell":
        return step.commands
    compiler = COMPILERS.get(step.kind)
    if compiler is None:
        raise ValueError(f"Step '{step.name}' has unknown kind {step.kind!r}")
    return compiler(step) + step.commands


__all__ = [
    "COMPILERS",
    "compile_commands",
    "cache_step",
    "checkout_step",
    "collect_coverage_step",
    "instrument_coverage_step",
    "toolchain_step",
    "upload_step",
]
