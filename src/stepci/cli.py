# cli.py
from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import click

from stepci.config import Settings
from stepci.env import Environment
from stepci.errors import WorkflowError
from stepci.git_facts.git import current_branch, get_remote_url, pushed_files
from stepci.runner import Runner, load_workflow
from stepci.ui.console import Console, get_console, set_console

DEFAULT_WORKFLOW = "stepci_workflow.py"


def find_workflow_files(root: Path = Path(".")) -> list[Path]:
    """
    Find all workflow files in a directory.

    Returns:
        List of Path objects for workflow files
    """
    found = {p for p in root.glob("*_workflow.py")}
    for name in ("stepci.yml", "stepci.yaml"):
        if (root / name).exists():
            found.add(root / name)
    return sorted(found)


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and not workflow_path.suffix:
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  stepci run --workflow my_workflow.py",
            )
            sys.exit(1)
        return workflow_path

    default = Path(DEFAULT_WORKFLOW)
    if default.exists():
        return default

    workflow_files = find_workflow_files()
    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=["Looked for:", f"  {DEFAULT_WORKFLOW}", "  *_workflow.py", "  stepci.yml"],
            suggestion=f"Create a workflow file:\n  {DEFAULT_WORKFLOW}\n\nOr specify a workflow explicitly:\n  stepci run --workflow my_workflow.py",
        )
        sys.exit(1)

    if len(workflow_files) > 1:
        file_list = "\n".join(f"  {f}" for f in workflow_files)
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[file_list],
            suggestion="Specify a workflow explicitly:\n  stepci run --workflow coverage_workflow.py",
        )
        sys.exit(1)

    return workflow_files[0]


def _load(ctx, workflow_path: Path):
    console = get_console()
    try:
        return load_workflow(workflow_path)
    except (WorkflowError, FileNotFoundError, TypeError) as e:
        console.print_error(
            "Failed to load workflow",
            f"Could not load workflow from {workflow_path}",
            details=[str(e)],
        )
        if ctx.obj.get("debug", False):
            import traceback
            traceback.print_exc()
        sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    envvar="STEPCI_DEBUG",
    help="Enable debug mode (show commands, env changes and stack traces)",
)
@click.pass_context
def cli(ctx, debug):
    """stepci: linear, fail-fast CI pipeline runner."""
    settings = Settings.from_env()
    set_console(Console(debug=debug))
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["settings"] = settings


@cli.command()
@click.option("--workflow", default=None, help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)")
@click.option("--workspace", default=None, help="Directory the steps run in (default: .)")
@click.option("--cache-dir", default=None, help="Dependency cache directory (default: .stepci/cache)")
@click.option("--check-trigger/--no-check-trigger", default=False, help="Only run if the push matches the pipeline trigger")
@click.option("--branch", default=None, help="Branch of the push event (defaults to the current git branch)")
@click.option("--compare-ref", default=None, help="Git ref to diff against when checking the trigger")
@click.pass_context
def run(ctx, workflow, workspace, cache_dir, check_trigger, branch, compare_ref):
    """Run a pipeline."""
    console = get_console()
    settings: Settings = ctx.obj["settings"]

    workflow_path = discover_workflow(workflow or settings.workflow)
    workspace_p = Path(workspace or settings.workspace).resolve()
    pipeline = _load(ctx, workflow_path)

    if check_trigger:
        try:
            branch = branch or current_branch(cwd=workspace_p)
            changed = pushed_files(compare_ref or settings.compare_ref, cwd=workspace_p)
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            console.print_error(
                "Could not read push event",
                "Failed to determine branch or changed files from git.",
                details=[str(e)],
                suggestion="Pass --branch explicitly or run without --check-trigger.",
            )
            sys.exit(1)
        if not pipeline.trigger.matches(branch, changed):
            console.print_info(f"Trigger not matched (branch={branch}, {len(changed)} changed file(s)); nothing to run.")
            return

    try:
        repo_name = get_remote_url("origin", cwd=workspace_p).rstrip("/").split("/")[-1].replace(".git", "")
    except (subprocess.CalledProcessError, FileNotFoundError):
        repo_name = workspace_p.name

    env = Environment()
    console.mask = env.mask
    runner = Runner(
        pipeline,
        workspace=workspace_p,
        env=env,
        cache_root=cache_dir or settings.cache_dir,
        console=console,
    )

    try:
        console.print_pipeline_started(
            repository=repo_name,
            workflow=workflow_path.name,
            pipeline=pipeline.name,
            step_count=len(pipeline.steps),
        )
        result = runner.run_pipeline()
        console.print_results(result.statuses())
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    if not result.ok:
        sys.exit(1)


@cli.command()
@click.option("--workflow", default=None, help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)")
@click.pass_context
def plan(ctx, workflow):
    """Print the steps of a pipeline without running anything."""
    console = get_console()
    settings: Settings = ctx.obj["settings"]

    workflow_path = discover_workflow(workflow or settings.workflow)
    pipeline = _load(ctx, workflow_path)

    console.print_header(f"{pipeline.name} ({workflow_path.name})")
    branches = ", ".join(pipeline.trigger.branches)
    ignored = ", ".join(pipeline.trigger.paths_ignore) or "-"
    console.print_info(f"Trigger: push to {branches} (ignoring {ignored})")
    for name, value in pipeline.env.items():
        console.print_info(f"Env: {name}={value}")
    for i, s in enumerate(pipeline.steps, start=1):
        console.print_plan_step(i, s.name, s.enabled, s.kind)


if __name__ == "__main__":
    cli()
