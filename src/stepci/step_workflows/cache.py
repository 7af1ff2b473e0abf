# step_workflows/cache.py
from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional

from ..cache import CacheSpec, CacheStore
from ..model import Step
from ..ui.console import Console


def cache_step(
    name: str,
    shared_key: str,
    *,
    paths: List[str],
    inputs: Optional[List[str]] = None,
    excludes: Optional[List[str]] = None,
    keep: int = 3,
) -> Step:
    """
    Restore a dependency cache now and save it once the pipeline succeeds.

    `paths` are workspace-relative directories to store (build output,
    downloaded dependencies); `inputs` are globs whose contents key the
    archive (lock files).
    """
    for p in paths:
        if Path(p).is_absolute() or p.startswith("~") or ".." in Path(p).parts:
            raise ValueError(f"cache_step({name!r}): path must be inside the workspace: {p}")
    return Step(
        name=name,
        kind="cache",
        data={
            "shared_key": shared_key,
            "paths": list(paths),
            "inputs": list(inputs or []),
            "excludes": list(excludes or []),
            "keep": keep,
        },
    )


def restore_cache(
    step: Step,
    workspace: Path,
    store: CacheStore,
    console: Console,
) -> Callable[[], None]:
    """
    Restore the cache for `step` and return the save action to run after a
    successful pipeline. A miss only means a cold build.
    """
    spec = CacheSpec.from_data(step.data or {})
    hit = store.restore(spec, repo_root=workspace)
    if hit.hit:
        console.print_cache_hit(hit.key, hit.reason)
    else:
        console.print_cache_miss(hit.reason)

    def save() -> None:
        key, _manifest = store.save(spec, repo_root=workspace)
        store.prune(spec.shared_key, keep=spec.keep)
        console.print_cache_saved(key)

    return save
