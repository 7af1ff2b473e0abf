# runner.py
from __future__ import annotations

import runpy
import tarfile
import tempfile
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from .cache import DEFAULT_CACHE_DIR, CacheStore
from .errors import WorkflowError
from .env import Environment, parse_env_file
from .executor import CommandExecutor, CommandResult, SubprocessExecutor
from .model import Pipeline, PipelineResult, Step, StepResult
from .step_workflows import compile_commands
from .step_workflows.cache import restore_cache
from .ui.console import Console, get_console
from .yaml_loader import load_yaml_workflow


TOOL_HINTS = {
    "java": "Install a JDK or fix PATH (java).",
    "cargo": "Install Rust via rustup or fix PATH (cargo).",
    "grcov": "Install grcov (cargo install grcov) or let the step download it.",
    "codecovcli": "Install the Codecov CLI (pip install codecov-cli).",
    "curl": "Install curl or fix PATH.",
    "git": "Install Git or fix PATH.",
    "python3": "Install Python 3 or fix PATH (python3).",
}

# Exported to every command: a file the command may append NAME=value lines to.
ENV_FILE_VARS = ("STEPCI_ENV", "GITHUB_ENV")
WORKSPACE_VARS = ("STEPCI_WORKSPACE", "GITHUB_WORKSPACE")

SHELL_NOT_FOUND = 127


# ----------------------------------------------------------------------
# Workflow loading (local file)
# ----------------------------------------------------------------------

def validate_pipeline(pipeline: Pipeline) -> Pipeline:
    seen = set()
    for s in pipeline.steps:
        if not isinstance(s, Step):
            raise WorkflowError(f"Pipeline '{pipeline.name}' contains a non-Step entry: {s!r}")
        if s.name in seen:
            raise WorkflowError(f"Duplicate step name: {s.name}")
        seen.add(s.name)
        if s.kind == "shell" and not s.run and not s.env:
            raise WorkflowError(f"Step '{s.name}' has nothing to run")
    return pipeline


def load_workflow(path: str | Path) -> Pipeline:
    """
    Load a pipeline from a workflow file.

    Python files must define either:
      - workflow() -> Pipeline (or a list of steps)
      - PIPELINE = Pipeline(...)
    .yml/.yaml files are read as GitHub Actions style workflows.
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")

    if wf_path.suffix in (".yml", ".yaml"):
        return validate_pipeline(load_yaml_workflow(wf_path))

    if wf_path.suffix != ".py":
        raise WorkflowError(f"Workflow must be a .py or .yml file, got: {wf_path.name}")

    globals_dict = runpy.run_path(str(wf_path), run_name=f"stepci_workflow_{wf_path.stem}")

    obj = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        obj = globals_dict["workflow"]()
    elif "PIPELINE" in globals_dict:
        obj = globals_dict["PIPELINE"]

    if isinstance(obj, list) and all(isinstance(s, Step) for s in obj):
        obj = Pipeline(name=wf_path.stem, steps=obj)

    if not isinstance(obj, Pipeline):
        raise WorkflowError(
            "Workflow must return/define a Pipeline. "
            "Define workflow() -> Pipeline or PIPELINE = Pipeline(...)."
        )
    return validate_pipeline(obj)


# ----------------------------------------------------------------------
# Runner
# ----------------------------------------------------------------------

class Runner:
    """
    Runs a pipeline's steps in order against one shared environment and
    stops at the first failing enabled step.
    """

    def __init__(
        self,
        pipeline: Pipeline,
        *,
        workspace: str | Path = ".",
        env: Optional[Environment] = None,
        executor: Optional[CommandExecutor] = None,
        cache: Optional[CacheStore] = None,
        cache_root: str | Path = DEFAULT_CACHE_DIR,
        secrets: Optional[Mapping[str, str]] = None,
        console: Optional[Console] = None,
    ):
        self.pipeline = pipeline
        self.workspace = Path(workspace).resolve()
        self.env = env if env is not None else Environment()
        self.console = console or get_console()
        self.executor = executor or SubprocessExecutor(echo=self.console.print_output)
        self._cache = cache
        self._cache_root = cache_root
        # secret store; defaults to the inherited process environment
        self.secrets = secrets
        self._post: List[Callable[[], None]] = []

    @property
    def cache(self) -> CacheStore:
        if self._cache is None:
            root = Path(self._cache_root)
            if not root.is_absolute():
                root = self.workspace / root
            self._cache = CacheStore(root)
        return self._cache

    def initialize(self) -> None:
        """Set the baseline variables every later step relies on."""
        for name in WORKSPACE_VARS:
            self.env[name] = str(self.workspace)
        secrets = self._declared_secrets()
        self.env.hide(secrets)
        for name in secrets:
            value = self._lookup_secret(name)
            if value:
                self.env.set_secret(name, value)

        names = self.env.merge(self.pipeline.env)
        if names:
            self.console.print_debug(f"baseline env: {', '.join(names)}")

    def _lookup_secret(self, name: str) -> Optional[str]:
        if self.secrets is not None:
            return self.secrets.get(name)
        return self.env.inherited_value(name)

    def _declared_secrets(self) -> List[str]:
        names: List[str] = []
        for s in self.pipeline.steps:
            names.extend(n for n in s.secrets if n not in names)
        return names

    def run_step(self, step: Step) -> StepResult:
        if not step.enabled:
            self.console.print_step_skipped(step.name, "disabled")
            return StepResult(step=step.name, exit_code=0, skipped=True)

        self.console.print_step(step.name)

        names = self.env.merge(step.env)
        if names:
            self.console.print_debug(f"env += {', '.join(names)}")

        # secret values go to this step's processes only, never into self.env
        secret_env = {}
        for secret in step.secrets:
            value = self._lookup_secret(secret)
            if not value:
                return self._failed(step, None, 1, message=f"secret {secret} is not set")
            self.env.set_secret(secret, value)
            secret_env[secret] = value

        if step.kind == "cache":
            try:
                self._post.append(restore_cache(step, self.workspace, self.cache, self.console))
            except (OSError, tarfile.TarError) as e:
                self.console.print_cache_miss(f"cache unavailable: {e}")
            self.console.print_success(step.name)
            return StepResult(step=step.name, exit_code=0)

        try:
            commands = compile_commands(step)
        except ValueError as e:
            return self._failed(step, None, 1, message=str(e))

        cwd = (self.workspace / (step.cwd or ".")).resolve()
        exit_code = 0
        last = None
        for cmd in commands:
            self.console.print_debug(f"$ {cmd} (cwd={cwd})")
            last = self._execute(cmd, cwd, secret_env)
            exit_code = last.exit_code
            if exit_code != 0:
                return self._failed(step, cmd, exit_code, result=last)

        self.console.print_success(step.name)
        return StepResult(
            step=step.name,
            exit_code=exit_code,
            cmd=commands[-1] if commands else None,
            stdout=last.stdout if last else "",
            stderr=last.stderr if last else "",
        )

    def _execute(self, cmd: str, cwd: Path, secret_env: Mapping[str, str]) -> CommandResult:
        with tempfile.TemporaryDirectory(prefix="stepci-env-") as tmp:
            env_file = Path(tmp) / "env"
            env_file.touch()
            extra = dict(secret_env)
            extra.update({name: str(env_file) for name in ENV_FILE_VARS})
            proc_env = self.env.to_process_env(extra)

            result = self.executor.execute(cmd, proc_env, cwd)

            if result.exit_code == 0:
                try:
                    pairs = parse_env_file(env_file)
                except ValueError as e:
                    return CommandResult(exit_code=1, stdout=result.stdout, stderr=str(e))
                for key, value in pairs:
                    self.env[key] = value
                    self.console.print_debug(f"env += {key} (from env file)")
            return result

    def _failed(self, step: Step, cmd: str | None, exit_code: int, *, result=None, message=None) -> StepResult:
        stderr = result.stderr if result is not None else ""
        reason = message or stderr.strip() or f"command exited with {exit_code}"
        hint = None
        if exit_code == SHELL_NOT_FOUND and cmd and cmd.split():
            hint = TOOL_HINTS.get(cmd.split()[0])
        self.console.print_failure(step.name, reason, exit_code=exit_code, hint=hint)
        return StepResult(
            step=step.name,
            exit_code=exit_code,
            cmd=cmd,
            stdout=result.stdout if result is not None else "",
            stderr=stderr,
            message=message,
        )

    def run_pipeline(self) -> PipelineResult:
        self.initialize()
        out = PipelineResult(pipeline=self.pipeline.name)

        for step in self.pipeline.steps:
            res = self.run_step(step)
            out.results.append(res)
            if not res.ok:
                break

        if out.ok:
            self._run_post_actions()
        return out

    def _run_post_actions(self) -> None:
        for action in self._post:
            try:
                action()
            except (OSError, tarfile.TarError) as e:
                # post actions never change the verdict
                self.console.print_info(f"post action failed: {e}")
        self._post.clear()


def run_pipeline(pipeline: Pipeline, **kwargs) -> PipelineResult:
    """Convenience wrapper: Runner(pipeline, **kwargs).run_pipeline()."""
    return Runner(pipeline, **kwargs).run_pipeline()
