# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from fnmatch import fnmatch
from typing import Any, Dict, List, Optional, Tuple

from .errors import StepFailure


@dataclass(frozen=True)
class Step:
    """
    A single named unit of pipeline work.

    `run` holds one or more shell commands executed in order; the first
    non-zero exit fails the step. Typed steps (kind != "shell") keep their
    parameters in `data` and are compiled to commands by the runner.
    """
    name: str
    run: Tuple[str, ...] = ()
    cwd: str | None = None
    enabled: bool = True
    env: Dict[str, str] = field(default_factory=dict)
    secrets: Tuple[str, ...] = ()
    kind: str = "shell"
    data: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        # Step("x", run="cmd") is a single command, not a sequence of characters
        if isinstance(self.run, str):
            object.__setattr__(self, "run", (self.run,))
        elif not isinstance(self.run, tuple):
            object.__setattr__(self, "run", tuple(self.run))

    @property
    def commands(self) -> List[str]:
        return list(self.run)


@dataclass(frozen=True)
class Trigger:
    """Push filter: branch globs plus paths whose changes alone never trigger a run."""
    branches: Tuple[str, ...] = ("main",)
    paths_ignore: Tuple[str, ...] = ()

    def matches(self, branch: str, changed_files: List[str] | None = None) -> bool:
        if not any(fnmatch(branch, b) for b in self.branches):
            return False
        if not changed_files or not self.paths_ignore:
            return True
        # at least one change outside the ignored paths
        return any(
            not any(fnmatch(f, p) for p in self.paths_ignore)
            for f in changed_files
        )


@dataclass
class Pipeline:
    """A static, ordered step list plus the baseline environment and trigger."""
    name: str
    steps: List[Step]
    env: Dict[str, str] = field(default_factory=dict)
    trigger: Trigger = field(default_factory=Trigger)

    def step_names(self) -> List[str]:
        return [s.name for s in self.steps]


@dataclass(frozen=True)
class StepResult:
    step: str
    exit_code: int
    skipped: bool = False
    cmd: str | None = None
    stdout: str = ""
    stderr: str = ""
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.skipped or self.exit_code == 0

    @property
    def status(self) -> str:
        if self.skipped:
            return "skipped"
        return "ok" if self.exit_code == 0 else "failed"


@dataclass
class PipelineResult:
    """Outcomes of every step that was reached, in execution order."""
    pipeline: str
    results: List[StepResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    @property
    def failed_step(self) -> Optional[StepResult]:
        for r in self.results:
            if not r.ok:
                return r
        return None

    def statuses(self) -> Dict[str, str]:
        return {r.step: r.status for r in self.results}

    def raise_for_status(self) -> None:
        failed = self.failed_step
        if failed is not None:
            raise StepFailure(
                pipeline=self.pipeline,
                step=failed.step,
                cmd=failed.cmd or "",
                exit_code=failed.exit_code,
            )
