# tests/conftest.py
"""
Shared fixtures.

Orchestration tests never spawn real processes: FakeExecutor records every
command together with the environment and working directory it would have
run with, and answers with scripted exit codes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

import pytest

from stepci.env import Environment
from stepci.executor import CommandResult
from stepci.runner import Runner
from stepci.ui.console import Console


@dataclass
class Call:
    command: str
    env: Dict[str, str]
    cwd: Path


@dataclass
class FakeExecutor:
    exit_codes: Dict[str, int] = field(default_factory=dict)
    # command -> NAME=value pairs the command "appends" to $STEPCI_ENV
    env_writes: Dict[str, Dict[str, str]] = field(default_factory=dict)
    on_execute: Optional[Callable[[str, Mapping[str, str], Path], None]] = None
    calls: List[Call] = field(default_factory=list)

    def execute(self, command: str, env: Mapping[str, str], cwd: Path) -> CommandResult:
        self.calls.append(Call(command=command, env=dict(env), cwd=cwd))
        if self.on_execute is not None:
            self.on_execute(command, env, cwd)
        writes = self.env_writes.get(command)
        if writes:
            with open(env["STEPCI_ENV"], "a", encoding="utf-8") as f:
                for k, v in writes.items():
                    f.write(f"{k}={v}\n")
        code = self.exit_codes.get(command, 0)
        return CommandResult(exit_code=code, stdout=f"ran {command}", stderr="boom" if code else "")

    @property
    def commands(self) -> List[str]:
        return [c.command for c in self.calls]


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def console() -> Console:
    return Console(debug=True)


@pytest.fixture
def workspace(tmp_path) -> Path:
    ws = tmp_path / "ws"
    ws.mkdir()
    return ws


@pytest.fixture
def make_runner(executor, console, workspace, tmp_path):
    """Factory: make_runner(pipeline, **overrides) -> Runner with a clean environment."""
    def _make(pipeline, **kwargs):
        kwargs.setdefault("workspace", workspace)
        kwargs.setdefault("env", Environment(inherited={"PATH": "/usr/bin:/bin"}))
        kwargs.setdefault("executor", executor)
        kwargs.setdefault("console", console)
        kwargs.setdefault("cache_root", tmp_path / "cache")
        kwargs.setdefault("secrets", {})
        return Runner(pipeline, **kwargs)
    return _make
