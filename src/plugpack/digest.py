"""Content digests used for cache keys, artifact verification, and provenance."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

_CHUNK = 1 << 20


def sha256_bytes(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()


def sha256_file(path: str | Path) -> str:
    digest = hashlib.sha256()
    with Path(path).open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


def canonical_digest(payload: Any) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def tree_digest(root: str | Path) -> str:
    """Digest every regular file and symlink under *root* by relative path.

    Timestamps and permissions are ignored so that two trees with the same
    names and bytes always hash the same.
    """
    base = Path(root)
    digest = hashlib.sha256()
    for path in sorted(base.rglob("*"), key=lambda p: p.relative_to(base).as_posix()):
        rel = path.relative_to(base).as_posix()
        if path.is_symlink():
            digest.update(f"L {rel} -> {path.readlink().as_posix()}\n".encode())
        elif path.is_file():
            digest.update(f"F {rel} {sha256_file(path)}\n".encode())
    return digest.hexdigest()
