# git.py
# Small wrapper around the Git CLI. Used to decide whether a push event
# matches a pipeline's trigger.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional


def _git(args: list[str], cwd: Optional[str | Path] = None) -> str:
    """
    Execute a git command and return its stdout, stripped.

    A non-zero exit raises subprocess.CalledProcessError.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=cwd,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def current_branch(cwd: Optional[str | Path] = None) -> str:
    """
    Name of the checked-out branch.

    Returns "HEAD" on a detached head, which matches no branch filter.
    """
    return _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)


def get_remote_url(remote: str = "origin", cwd: Optional[str | Path] = None) -> str:
    return _git(["remote", "get-url", remote], cwd=cwd)


def merge_base(with_ref: str = "origin/main", cwd: Optional[str | Path] = None) -> str:
    """Commit where HEAD diverged from with_ref."""
    return _git(["merge-base", "HEAD", with_ref], cwd=cwd)


def changed_files(base: str, head: str = "HEAD", cwd: Optional[str | Path] = None) -> List[str]:
    """Paths (relative to the repo root) changed between two refs."""
    out = _git(["diff", "--name-only", f"{base}..{head}"], cwd=cwd)
    return out.splitlines() if out else []


def pushed_files(compare_ref: str = "origin/main", cwd: Optional[str | Path] = None) -> List[str]:
    """
    Files the current push touches.

    Compares HEAD with its merge-base against compare_ref, falling back to
    HEAD~1 when the ref is unknown (no remote, shallow clone). An empty list
    means "unknown" and matches every trigger.
    """
    try:
        base = merge_base(compare_ref, cwd=cwd)
    except subprocess.CalledProcessError:
        base = "HEAD~1"

    try:
        return changed_files(base, "HEAD", cwd=cwd)
    except subprocess.CalledProcessError:
        # first commit: nothing to compare against
        return []
