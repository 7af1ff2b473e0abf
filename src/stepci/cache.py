# cache.py
from __future__ import annotations

import hashlib
import io
import json
import platform
import tarfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

# ---------------------------------------------------------------------
# Dependency cache
# ---------------------------------------------------------------------
# cache_key = hash(
#     shared key,
#     cached paths,
#     contents of declared input files (globs, e.g. "**/Cargo.lock"),
#     platform salt
# )
#
# Cache artifact:
#   root/<shared_key>/<key>.tar.gz holding the cached paths (workspace
#   relative) plus <key>.manifest.json for explainability.
#
# A miss (or an unreadable archive) is never an error: the build simply
# starts cold.
# ---------------------------------------------------------------------


DEFAULT_CACHE_DIR = ".stepci/cache"
# extraction filters arrived in 3.12 and were backported to later 3.10/3.11 patch releases
_HAS_EXTRACTION_FILTER = hasattr(tarfile, "data_filter")
DEFAULT_CACHE_EXCLUDES = [
    ".git/**",
    ".stepci/**",
    "**/__pycache__/**",
    "**/*.pyc",
    "**/.DS_Store",
]


@dataclass(frozen=True)
class CacheSpec:
    shared_key: str
    paths: Tuple[str, ...]
    inputs: Tuple[str, ...] = ()
    excludes: Tuple[str, ...] = ()
    keep: int = 3
    salt: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_data(cls, data: Dict) -> CacheSpec:
        return cls(
            shared_key=str(data["shared_key"]),
            paths=tuple(data.get("paths") or ()),
            inputs=tuple(data.get("inputs") or ()),
            excludes=tuple(data.get("excludes") or ()),
            keep=int(data.get("keep", 3)),
            salt=dict(data.get("salt") or {}),
        )


@dataclass(frozen=True)
class CacheHit:
    hit: bool
    key: str
    reason: str  # human readable
    manifest: Dict


def _sha256_str(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def _json_dumps_stable(obj) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _relpath(p: Path, root: Path) -> str:
    return str(p.resolve().relative_to(root.resolve())).replace("\\", "/")


def _iter_files_under(root: Path) -> Iterable[Path]:
    # deterministic traversal
    for p in sorted(root.rglob("*")):
        if p.is_file():
            yield p


def _matches_any_glob(rel: str, globs: Iterable[str]) -> bool:
    rel_path = Path(rel)
    return any(rel_path.match(g) for g in globs)


def _hash_file_contents(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def _resolve_globs(repo_root: Path, patterns: Iterable[str]) -> List[Path]:
    out: List[Path] = []
    seen = set()
    for pat in patterns:
        pat = pat.strip()
        if not pat:
            continue
        direct = repo_root / pat
        matches = [direct] if direct.exists() else sorted(repo_root.glob(pat))
        for m in matches:
            key = str(m.resolve())
            if key not in seen:
                seen.add(key)
                out.append(m)
    return out


def _hash_inputs(repo_root: Path, inputs: Iterable[str], *, excludes: List[str]) -> Tuple[str, Dict]:
    file_fps: List[Tuple[str, str]] = []
    for p in _resolve_globs(repo_root, inputs):
        files = [p] if p.is_file() else list(_iter_files_under(p))
        for f in files:
            rel = _relpath(f, repo_root)
            if _matches_any_glob(rel, excludes):
                continue
            file_fps.append((rel, _hash_file_contents(f)))

    file_fps.sort(key=lambda t: t[0])
    payload = {"files": file_fps}
    return _sha256_str(_json_dumps_stable(payload)), payload


def compute_cache_key(spec: CacheSpec, *, repo_root: str | Path = ".") -> Tuple[str, Dict]:
    """Returns (cache_key, manifest)."""
    root = Path(repo_root).resolve()
    excludes = list(DEFAULT_CACHE_EXCLUDES) + list(spec.excludes)
    inputs_hash, inputs_manifest = _hash_inputs(root, spec.inputs, excludes=excludes)

    salt = {"platform": platform.system().lower(), "machine": platform.machine()}
    salt.update(spec.salt)

    payload = {
        "v": 1,  # bump this if you change hashing format
        "shared_key": spec.shared_key,
        "paths": sorted(spec.paths),
        "inputs_hash": inputs_hash,
        "salt": salt,
    }
    key = _sha256_str(_json_dumps_stable(payload))
    manifest = {
        "key": key,
        "payload": payload,
        "inputs": inputs_manifest,
        "generated_at_unix": int(time.time()),
    }
    return key, manifest


class CacheStore:
    """
    File-based cache store:
      root/
        <shared_key>/
          <key>.tar.gz
          <key>.manifest.json
    """

    def __init__(self, root: str | Path = DEFAULT_CACHE_DIR):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _key_dir(self, shared_key: str) -> Path:
        d = self.root / shared_key
        d.mkdir(parents=True, exist_ok=True)
        return d

    def artifact_path(self, shared_key: str, key: str) -> Path:
        return self._key_dir(shared_key) / f"{key}.tar.gz"

    def manifest_path(self, shared_key: str, key: str) -> Path:
        return self._key_dir(shared_key) / f"{key}.manifest.json"

    def restore(self, spec: CacheSpec, *, repo_root: str | Path = ".") -> CacheHit:
        """Extract the archive for this key over the workspace, if there is one."""
        root = Path(repo_root).resolve()
        key, manifest = compute_cache_key(spec, repo_root=root)

        art = self.artifact_path(spec.shared_key, key)
        man = self.manifest_path(spec.shared_key, key)
        if not art.exists() or not man.exists():
            return CacheHit(hit=False, key=key, reason="cache miss", manifest=manifest)

        try:
            with tarfile.open(str(art), mode="r:gz") as tar:
                _extract_all(tar, root)
        except (tarfile.TarError, OSError) as e:
            return CacheHit(hit=False, key=key, reason=f"cache exists but restore failed: {e}", manifest=manifest)

        try:
            stored = json.loads(man.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            stored = {}

        return CacheHit(hit=True, key=key, reason="restored artifact", manifest=stored or manifest)

    def save(self, spec: CacheSpec, *, repo_root: str | Path = ".") -> Tuple[str, Dict]:
        """Archive the cached paths under the current key. Returns (key, manifest)."""
        root = Path(repo_root).resolve()
        key, manifest = compute_cache_key(spec, repo_root=root)
        excludes = list(DEFAULT_CACHE_EXCLUDES) + list(spec.excludes)

        art = self.artifact_path(spec.shared_key, key)
        man = self.manifest_path(spec.shared_key, key)
        tmp = art.with_suffix(".tar.gz.tmp")
        try:
            # Build tar.gz in tmp, then atomic rename
            with tarfile.open(str(tmp), mode="w:gz") as tar:
                for entry in spec.paths:
                    _tar_add_path(tar, root, root / entry, exclude_globs=excludes)

                payload = json.dumps(manifest, sort_keys=True, indent=2).encode("utf-8")
                info = tarfile.TarInfo(name=f".stepci_cache_manifest/{spec.shared_key}/{key}.manifest.json")
                info.size = len(payload)
                info.mtime = int(time.time())
                tar.addfile(info, fileobj=io.BytesIO(payload))

            tmp.replace(art)
            man.write_text(json.dumps(manifest, sort_keys=True, indent=2), encoding="utf-8")
        finally:
            if tmp.exists():
                tmp.unlink(missing_ok=True)

        return key, manifest

    def prune(self, shared_key: str, keep: int = 3) -> List[str]:
        """Keep only the newest N archives for a shared key; returns removed keys."""
        d = self._key_dir(shared_key)
        tars = sorted(d.glob("*.tar.gz"), key=lambda p: p.stat().st_mtime, reverse=True)
        removed = []
        for p in tars[keep:]:
            key = p.name[: -len(".tar.gz")]
            p.unlink(missing_ok=True)
            (d / f"{key}.manifest.json").unlink(missing_ok=True)
            removed.append(key)
        return removed


def _tar_add_path(
    tar: tarfile.TarFile,
    repo_root: Path,
    src: Path,
    *,
    exclude_globs: List[str],
) -> None:
    src = src.resolve()
    if not src.exists():
        return

    files = [src] if src.is_file() else list(_iter_files_under(src))
    for f in files:
        rel = _relpath(f, repo_root)
        if _matches_any_glob(rel, exclude_globs):
            continue
        tar.add(str(f), arcname=rel, recursive=False)


def _extract_all(tar: tarfile.TarFile, dest: Path) -> None:
    if _HAS_EXTRACTION_FILTER:
        tar.extractall(path=str(dest), filter="data")
        return

    # interpreters without extraction filters: only plain files and dirs inside dest
    dest = dest.resolve()
    members = []
    for m in tar.getmembers():
        target = (dest / m.name).resolve()
        if target != dest and dest not in target.parents:
            raise tarfile.TarError(f"member outside the workspace: {m.name}")
        if not (m.isfile() or m.isdir()):
            raise tarfile.TarError(f"unsupported member type: {m.name}")
        members.append(m)
    tar.extractall(path=str(dest), members=members)
