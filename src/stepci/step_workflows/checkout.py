# step_workflows/checkout.py
from __future__ import annotations

from typing import List

from ..model import Step


def checkout_step(name: str = "Check out the repo", *, cwd: str | None = None) -> Step:
    """The workspace is already the checkout; this step only verifies it."""
    return Step(name=name, cwd=cwd, kind="checkout", data={})


def compile_checkout(step: Step) -> List[str]:
    return ["git rev-parse --is-inside-work-tree"]
