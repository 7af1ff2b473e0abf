# yaml_loader.py
"""
Read a GitHub Actions style workflow file into a Pipeline.

Only the subset a linear runner can honor is accepted: one job, `run` and
`uses` steps, literal boolean `if:` conditions. Anything else raises
WorkflowError instead of being silently ignored.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml

from .errors import WorkflowError
from .model import Pipeline, Step, Trigger
from .step_workflows import cache_step, checkout_step, toolchain_step, upload_step

_SECRET_RE = re.compile(r"^\$\{\{\s*secrets\.([A-Za-z_][A-Za-z0-9_]*)\s*\}\}$")
_EXPR_RE = re.compile(r"\$\{\{(.*?)\}\}")


def _as_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def _parse_trigger(on: Any) -> Trigger:
    # PyYAML reads a bare `on:` key as the boolean True
    if on is None:
        return Trigger()
    if isinstance(on, str):
        on = {on: None}
    elif isinstance(on, list):
        on = {k: None for k in on}
    if not isinstance(on, dict) or "push" not in on:
        raise WorkflowError("Only push-triggered workflows are supported")

    push = on.get("push") or {}
    branches = _as_list(push.get("branches")) or ["main"]
    return Trigger(branches=tuple(branches), paths_ignore=tuple(_as_list(push.get("paths-ignore"))))


def _parse_if(name: str, cond: Any) -> bool:
    if cond is None:
        return True
    if isinstance(cond, bool):
        return cond
    text = str(cond).strip()
    m = _EXPR_RE.fullmatch(text)
    if m:
        text = m.group(1).strip()
    if text in ("true", "false"):
        return text == "true"
    raise WorkflowError(f"Step '{name}': only literal true/false conditions are supported, got {cond!r}")


def _env_values(name: str, env: Dict[str, Any] | None) -> Tuple[Dict[str, str], Tuple[str, ...]]:
    """Plain env values, plus names of secret references (resolved at run time)."""
    out: Dict[str, str] = {}
    secrets: List[str] = []
    for key, value in (env or {}).items():
        if isinstance(value, bool):
            value = "true" if value else "false"
        value = str(value)
        m = _SECRET_RE.match(value.strip())
        if m:
            if m.group(1) != key:
                raise WorkflowError(f"Step '{name}': secret {m.group(1)} must be bound to a variable of the same name")
            secrets.append(key)
            continue
        out[key] = _convert_expressions(name, value)
    return out, tuple(secrets)


def _convert_expressions(name: str, value: str) -> str:
    def repl(m: re.Match) -> str:
        expr = m.group(1).strip()
        if expr.startswith("env."):
            return "${" + expr[4:] + "}"
        if expr == "github.workspace":
            return "${GITHUB_WORKSPACE}"
        raise WorkflowError(f"Step '{name}': unsupported expression ${{{{ {expr} }}}}")
    return _EXPR_RE.sub(repl, value)


def _uses_step(name: str, uses: str, with_: Dict[str, Any]) -> Step:
    action = uses.split("@", 1)[0].lower()

    if action == "actions/checkout":
        return checkout_step(name)

    if action.startswith("actions/setup-"):
        tool = action[len("actions/setup-"):]
        version = with_.get(f"{tool}-version", "")
        return toolchain_step(name, tool, str(version), distribution=with_.get("distribution"))

    if action.endswith("/rust-cache"):
        return cache_step(
            name,
            str(with_.get("shared-key") or with_.get("key") or "default"),
            paths=["target"],
            inputs=["**/Cargo.lock", "**/Cargo.toml", "rust-toolchain", "rust-toolchain.toml"],
        )

    if action == "actions/cache":
        return cache_step(
            name,
            str(with_.get("key") or "default"),
            paths=_as_list(with_.get("path")),
        )

    if action == "codecov/codecov-action":
        token = str(with_.get("token") or "")
        m = _SECRET_RE.match(token.strip())
        if not m:
            raise WorkflowError(f"Step '{name}': codecov token must come from a secret")
        return upload_step(name, file=str(with_.get("file") or "./lcov.info"), token_secret=m.group(1))

    raise WorkflowError(f"Step '{name}': unsupported action {uses!r}")


def _parse_step(index: int, raw: Dict[str, Any]) -> Step:
    if not isinstance(raw, dict):
        raise WorkflowError(f"Step #{index} is not a mapping")

    name = str(raw.get("name") or raw.get("uses") or f"step-{index}")
    enabled = _parse_if(name, raw.get("if"))
    env, secrets = _env_values(name, raw.get("env"))

    if "uses" in raw:
        base = _uses_step(name, str(raw["uses"]), raw.get("with") or {})
        return Step(
            name=name,
            run=base.run,
            cwd=raw.get("working-directory", base.cwd),
            enabled=enabled,
            env={**base.env, **env},
            secrets=base.secrets + secrets,
            kind=base.kind,
            data=base.data,
        )

    if "run" not in raw:
        raise WorkflowError(f"Step '{name}' has neither run nor uses")

    script = str(raw["run"]).rstrip("\n")
    return Step(
        name=name,
        run=(script,),
        cwd=raw.get("working-directory"),
        enabled=enabled,
        env=env,
        secrets=secrets,
    )


def load_yaml_workflow(path: str | Path) -> Pipeline:
    p = Path(path)
    with p.open("r", encoding="utf-8") as f:
        doc = yaml.safe_load(f)

    if not isinstance(doc, dict):
        raise WorkflowError(f"{p.name}: workflow root must be a mapping")

    jobs = doc.get("jobs") or {}
    if len(jobs) != 1:
        raise WorkflowError(f"{p.name}: exactly one job is supported, found {len(jobs)}")
    (_job_id, job), = jobs.items()

    on = doc.get("on", doc.get(True))
    steps = [_parse_step(i, raw) for i, raw in enumerate((job or {}).get("steps") or [], start=1)]

    env, secrets = _env_values("<workflow>", doc.get("env"))
    if secrets:
        raise WorkflowError(f"{p.name}: secrets are only allowed in step env")
    job_env, job_secrets = _env_values("<job>", (job or {}).get("env"))
    if job_secrets:
        raise WorkflowError(f"{p.name}: secrets are only allowed in step env")
    env.update(job_env)

    return Pipeline(
        name=str(doc.get("name") or p.stem),
        steps=steps,
        env=env,
        trigger=_parse_trigger(on),
    )
