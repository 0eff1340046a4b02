"""Write-once dependency artifact stores keyed by content hash.

A store hands out private staging directories; the dependency builder
compiles into ``<staging>/target`` and then either publishes the staging
directory under its key or discards it. Published entries are never
modified. :class:`FilesystemArtifactStore` publishes by renaming the fully
written staging directory into place, so a concurrent reader sees either
no entry or a complete one.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from plugpack.cache.keys import DependencyCacheInput, _to_payload
from plugpack.digest import tree_digest
from plugpack.errors import ReproducibilityError
from plugpack.models import DependencyArtifactSet

STAGING_DIR = ".staging"
MANIFEST_NAME = "manifest.json"
TARGET_NAME = "target"


class ArtifactStore(Protocol):
    def get(
        self,
        key: str,
        *,
        expected_inputs: DependencyCacheInput,
    ) -> DependencyArtifactSet | None:
        """Return the published set for *key*, or None on a miss."""

    def stage(self) -> Path:
        """Return a fresh, private, empty staging directory."""

    def publish(
        self,
        key: str,
        *,
        staging: Path,
        inputs: DependencyCacheInput,
    ) -> DependencyArtifactSet:
        """Publish ``<staging>/target`` under *key* and return the stored set."""

    def discard(self, staging: Path) -> None:
        """Delete an unpublished staging directory."""


class FilesystemArtifactStore:
    def __init__(self, root: str | Path, *, verify: bool = True) -> None:
        self.root = Path(root)
        self.verify = verify
        self.root.mkdir(parents=True, exist_ok=True)

    def entry_path(self, key: str) -> Path:
        return self.root / key

    def get(
        self,
        key: str,
        *,
        expected_inputs: DependencyCacheInput,
    ) -> DependencyArtifactSet | None:
        entry = self.entry_path(key)
        manifest_path = entry / MANIFEST_NAME
        target_path = entry / TARGET_NAME
        if not manifest_path.exists() or not target_path.is_dir():
            return None

        manifest = self._read_manifest(manifest_path)
        if manifest.get("key") != key:
            raise ReproducibilityError(
                "Cache manifest key mismatch.",
                hint="Delete the cache entry and rebuild.",
                context={"operation": "cache_load", "key": key},
            )
        expected_payload = _to_payload(expected_inputs)
        if manifest.get("inputs") != expected_payload:
            raise ReproducibilityError(
                "Cache manifest inputs do not match expected build inputs.",
                hint="Delete the cache entry and rebuild.",
                context={"operation": "cache_load", "key": key},
            )
        artifact_digest = manifest.get("artifact_digest")
        if not isinstance(artifact_digest, str):
            raise ReproducibilityError(
                "Cache manifest has no artifact digest.",
                hint="Delete the cache entry and rebuild.",
                context={"operation": "cache_load", "key": key},
            )
        if self.verify and tree_digest(target_path) != artifact_digest:
            raise ReproducibilityError(
                "Cached dependency artifacts were modified after publication.",
                hint="Delete the cache entry and rebuild.",
                context={"operation": "cache_load", "key": key, "path": str(target_path)},
            )
        return DependencyArtifactSet(
            key=key,
            path=target_path,
            artifact_digest=artifact_digest,
            inputs=expected_payload,
        )

    def stage(self) -> Path:
        staging_root = self.root / STAGING_DIR
        staging_root.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix="deps-", dir=str(staging_root)))

    def publish(
        self,
        key: str,
        *,
        staging: Path,
        inputs: DependencyCacheInput,
    ) -> DependencyArtifactSet:
        target_path = staging / TARGET_NAME
        target_path.mkdir(parents=True, exist_ok=True)
        manifest = {
            "key": key,
            "inputs": _to_payload(inputs),
            "artifact_digest": tree_digest(target_path),
        }
        (staging / MANIFEST_NAME).write_text(
            json.dumps(manifest, indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )

        entry = self.entry_path(key)
        try:
            os.rename(staging, entry)
        except OSError:
            if not (entry / MANIFEST_NAME).exists():
                self.discard(staging)
                raise
            # Another invocation published the same key first; keep its entry.
            self.discard(staging)

        published = self.get(key, expected_inputs=inputs)
        if published is None:
            raise ReproducibilityError(
                "Published cache entry is not readable.",
                context={"operation": "cache_publish", "key": key, "path": str(entry)},
            )
        return published

    def discard(self, staging: Path) -> None:
        shutil.rmtree(staging, ignore_errors=True)

    def _read_manifest(self, path: Path) -> dict[str, object]:
        try:
            parsed = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ReproducibilityError(
                "Cache manifest is not valid JSON.",
                hint="Delete the cache entry and rebuild.",
                context={"operation": "cache_load", "path": str(path)},
            ) from exc
        if not isinstance(parsed, dict):
            raise ReproducibilityError(
                "Cache manifest has invalid structure.",
                hint="Delete the cache entry and rebuild.",
                context={"operation": "cache_load", "path": str(path)},
            )
        return parsed


@dataclass(slots=True)
class InMemoryArtifactStore:
    """Store whose index lives in memory; staged artifacts stay on disk."""

    root: Path | None = None
    entries: dict[str, DependencyArtifactSet] = field(default_factory=dict)
    published: list[str] = field(default_factory=list)

    def get(
        self,
        key: str,
        *,
        expected_inputs: DependencyCacheInput,
    ) -> DependencyArtifactSet | None:
        return self.entries.get(key)

    def stage(self) -> Path:
        if self.root is not None:
            self.root.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix="deps-", dir=str(self.root) if self.root else None))

    def publish(
        self,
        key: str,
        *,
        staging: Path,
        inputs: DependencyCacheInput,
    ) -> DependencyArtifactSet:
        existing = self.entries.get(key)
        if existing is not None:
            self.discard(staging)
            return existing
        target_path = staging / TARGET_NAME
        target_path.mkdir(parents=True, exist_ok=True)
        artifact_set = DependencyArtifactSet(
            key=key,
            path=target_path,
            artifact_digest=tree_digest(target_path),
            inputs=_to_payload(inputs),
        )
        self.entries[key] = artifact_set
        self.published.append(key)
        return artifact_set

    def discard(self, staging: Path) -> None:
        shutil.rmtree(staging, ignore_errors=True)
