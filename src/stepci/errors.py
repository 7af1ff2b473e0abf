# errors.py
from __future__ import annotations

from dataclasses import dataclass


class WorkflowError(ValueError):
    """A workflow definition that cannot be run as written."""


@dataclass
class StepFailure(Exception):
    pipeline: str
    step: str
    cmd: str
    exit_code: int

    def __str__(self) -> str:
        return f"[{self.pipeline}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"
