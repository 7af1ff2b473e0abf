# config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class Settings:
    """CLI defaults, overridable through STEPCI_* environment variables."""
    workflow: Optional[str] = None
    workspace: str = "."
    cache_dir: str = ".stepci/cache"
    compare_ref: str = "origin/main"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Settings:
        env = os.environ if environ is None else environ
        return cls(
            workflow=env.get("STEPCI_WORKFLOW") or None,
            workspace=env.get("STEPCI_WORKSPACE_DIR", "."),
            cache_dir=env.get("STEPCI_CACHE_DIR", ".stepci/cache"),
            compare_ref=env.get("STEPCI_COMPARE_REF", "origin/main"),
        )
