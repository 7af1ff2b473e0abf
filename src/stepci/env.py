# env.py
# The run-wide environment. Variables only ever accumulate: a later step may
# overwrite a value but nothing is ever removed.

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, MutableMapping, Optional, Set, Tuple

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
# $$ is matched first so it is never read as the start of a reference
_REF_RE = re.compile(r"\$\$|\$\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)\}|\$(?P<named>[A-Za-z_][A-Za-z0-9_]*)")

MASK = "***"


class EnvironmentMutationError(Exception):
    """Raised on any attempt to remove or clear a variable mid-run."""


class Environment(MutableMapping[str, str]):
    """
    Monotonic mapping of variable name -> string value.

    `inherited` is the process environment the run starts from (os.environ by
    default). It is only read when building the environment for a child
    process; `items()` and friends cover the run's own variables.
    """

    def __init__(
        self,
        initial: Optional[Mapping[str, str]] = None,
        *,
        inherited: Optional[Mapping[str, str]] = None,
    ):
        self._vars: Dict[str, str] = {}
        self._secrets: Dict[str, str] = {}
        self._hidden: Set[str] = set()
        self._inherited: Dict[str, str] = dict(os.environ if inherited is None else inherited)
        if initial:
            self.update(initial)

    # ---- mapping protocol ----

    def __getitem__(self, key: str) -> str:
        return self._vars[key]

    def __setitem__(self, key: str, value) -> None:
        if not isinstance(key, str) or not _NAME_RE.match(key):
            raise ValueError(f"Invalid environment variable name: {key!r}")
        if value is None:
            raise EnvironmentMutationError(f"Cannot clear environment variable {key!r}")
        self._vars[key] = str(value)

    def __delitem__(self, key: str) -> None:
        raise EnvironmentMutationError(f"Cannot remove environment variable {key!r}")

    def __iter__(self) -> Iterator[str]:
        return iter(self._vars)

    def __len__(self) -> int:
        return len(self._vars)

    def clear(self) -> None:
        raise EnvironmentMutationError("Cannot clear the environment")

    def pop(self, key, *default):
        raise EnvironmentMutationError(f"Cannot remove environment variable {key!r}")

    def popitem(self):
        raise EnvironmentMutationError("Cannot remove environment variables")

    # ---- run helpers ----

    def expand(self, value: str) -> str:
        """
        Substitute ${NAME} / $NAME from the run vars, then the inherited env.

        Unknown names and `$$` are left exactly as written. Hidden secrets are
        never substituted.
        """
        lookup = {k: v for k, v in self._inherited.items() if k not in self._hidden}
        lookup.update(self._vars)

        def repl(m: re.Match) -> str:
            name = m.group("braced") or m.group("named")
            if name is None or name not in lookup:
                return m.group(0)
            return lookup[name]

        return _REF_RE.sub(repl, str(value))

    def merge(self, extra: Mapping[str, str]) -> List[str]:
        """Additive, last-writer-wins merge. Returns the names that were set."""
        names = []
        for key, value in extra.items():
            self[key] = self.expand(value)
            names.append(key)
        return names

    def hide(self, names: Iterable[str]) -> None:
        """Keep inherited variables with these names out of child processes."""
        for name in names:
            self._hidden.add(name)
            value = self._inherited.get(name)
            if value:
                self._secrets[name] = value

    def inherited_value(self, name: str) -> Optional[str]:
        return self._inherited.get(name)

    def set_secret(self, key: str, value: str) -> None:
        """Register a secret value for masking. It is not stored as a run var."""
        self._secrets[key] = value

    def is_secret(self, key: str) -> bool:
        return key in self._secrets

    def to_process_env(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        env = {k: v for k, v in self._inherited.items() if k not in self._hidden}
        env.update(self._vars)
        if extra:
            env.update(extra)
        return env

    def snapshot(self) -> Dict[str, str]:
        return dict(self._vars)

    def mask(self, text: str) -> str:
        """Replace every secret value in text with ***."""
        if not text:
            return text
        for value in self._secrets.values():
            if value:
                text = text.replace(value, MASK)
        return text


# ----------------------------------------------------------------------
# Env file (NAME=value lines appended by a command)
# ----------------------------------------------------------------------

def parse_env_file(path: str | Path) -> List[Tuple[str, str]]:
    """Read every line first so a bad line rejects the whole file."""
    p = Path(path)
    if not p.exists():
        return []

    pairs: List[Tuple[str, str]] = []
    for lineno, raw in enumerate(p.read_text(encoding="utf-8").splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            raise ValueError(f"{p.name}:{lineno}: expected NAME=value, got {raw!r}")
        key, value = line.split("=", 1)
        key = key.strip()
        if not _NAME_RE.match(key):
            raise ValueError(f"{p.name}:{lineno}: invalid variable name {key!r}")
        pairs.append((key, value))
    return pairs
