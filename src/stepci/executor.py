# executor.py
from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional, Protocol

# Keep the last part of captured output on results; the console already
# streamed the full text.
OUTPUT_TAIL = 4000


@dataclass(frozen=True)
class CommandResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""


class CommandExecutor(Protocol):
    """Run one command with an environment and a working directory, to completion."""

    def execute(self, command: str, env: Mapping[str, str], cwd: Path) -> CommandResult: ...


def _as_script(command: str) -> str:
    # a multi-line block stops at its first failing line
    if "\n" in command.strip():
        return "set -e\n" + command
    return command


class SubprocessExecutor:
    """Blocking shell execution through subprocess.run."""

    def __init__(self, echo: Optional[Callable[[str], None]] = None):
        self.echo = echo

    def execute(self, command: str, env: Mapping[str, str], cwd: Path) -> CommandResult:
        if not cwd.exists():
            return CommandResult(exit_code=1, stderr=f"working directory not found: {cwd}")

        proc = subprocess.run(
            _as_script(command),
            shell=True,
            cwd=str(cwd),
            env=dict(env),
            text=True,
            capture_output=True,
        )

        if self.echo is not None:
            for text in (proc.stdout, proc.stderr):
                if text:
                    self.echo(text.rstrip("\n"))

        return CommandResult(
            exit_code=proc.returncode,
            stdout=proc.stdout[-OUTPUT_TAIL:],
            stderr=proc.stderr[-OUTPUT_TAIL:],
        )
