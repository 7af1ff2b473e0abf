# src/stepci/dsl.py
from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional

from .model import Pipeline, Step, Trigger


# ---------------------------------------------------------------------
# Step helper
# ---------------------------------------------------------------------

def sh(
    name: str,
    *cmds: str,
    cwd: str | None = None,
    env: Optional[Dict[str, str]] = None,
    enabled: bool = True,
) -> Step:
    """Create a shell step; several commands run in order and stop at the first failure."""
    if not cmds:
        raise ValueError(f"sh({name!r}) needs at least one command")
    return Step(
        name=name,
        run=tuple(cmds),
        cwd=cwd,
        env={k: str(v) for k, v in (env or {}).items()},
        enabled=enabled,
    )


def disabled(step: Step) -> Step:
    """Keep a step in the pipeline but never run it."""
    return replace(step, enabled=False)


# ---------------------------------------------------------------------
# Trigger / pipeline helpers
# ---------------------------------------------------------------------

def on_push(*branches: str, paths_ignore: Optional[List[str]] = None) -> Trigger:
    return Trigger(branches=tuple(branches) or ("main",), paths_ignore=tuple(paths_ignore or ()))


def pipeline(
    name: str,
    *steps: Step,
    env: Optional[Dict[str, str]] = None,
    trigger: Optional[Trigger] = None,
    cwd: str | None = None,  # default cwd applied to steps missing cwd
) -> Pipeline:
    if not steps:
        raise ValueError(f"pipeline({name!r}) must have at least one step")

    steps_final = list(steps)
    if cwd is not None:
        steps_final = [s if s.cwd is not None else replace(s, cwd=cwd) for s in steps_final]

    return Pipeline(
        name=name,
        steps=steps_final,
        env={k: str(v) for k, v in (env or {}).items()},
        trigger=trigger or Trigger(),
    )


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class PipelineBuilder:
    def __init__(self, name: str):
        self.name = name
        self._steps: list[Step] = []
        self._env: dict[str, str] = {}
        self._branches: list[str] = []
        self._paths_ignore: list[str] = []

    def on_push(self, *branches: str):
        self._branches.extend(branches)
        return self

    def ignore_paths(self, *patterns: str):
        self._paths_ignore.extend(patterns)
        return self

    def with_env(self, **env):
        # force values to str for env compatibility
        self._env.update({k: str(v) for k, v in env.items()})
        return self

    def define_step(self, name: str, *cmds: str, cwd: str | None = None, **env):
        self._steps.append(sh(name, *cmds, cwd=cwd, env=env))
        return self

    def add(self, *steps: Step):
        self._steps.extend(steps)
        return self

    def build(self) -> Pipeline:
        if not self._steps:
            raise ValueError(f"Pipeline '{self.name}' has no steps")
        return Pipeline(
            name=self.name,
            steps=list(self._steps),
            env=dict(self._env),
            trigger=on_push(*self._branches, paths_ignore=self._paths_ignore),
        )


def build(name: str) -> PipelineBuilder:
    """Convenience: build('coverage').define_step(...).build()"""
    return PipelineBuilder(name)
