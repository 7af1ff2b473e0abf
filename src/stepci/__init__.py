from .dsl import sh, disabled, on_push, pipeline, PipelineBuilder, build
from .env import Environment
from .model import Pipeline, PipelineResult, Step, StepResult, Trigger
from .errors import StepFailure, WorkflowError
from .runner import Runner, load_workflow, run_pipeline
from .step_workflows import (
    cache_step,
    checkout_step,
    collect_coverage_step,
    instrument_coverage_step,
    toolchain_step,
    upload_step,
)

__all__ = [
    "sh", "disabled", "on_push", "pipeline", "PipelineBuilder", "build",
    "Environment",
    "Pipeline", "PipelineResult", "Step", "StepResult", "Trigger",
    "Runner", "StepFailure", "WorkflowError", "load_workflow", "run_pipeline",
    "cache_step", "checkout_step", "collect_coverage_step",
    "instrument_coverage_step", "toolchain_step", "upload_step",
]
