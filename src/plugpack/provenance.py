"""Build provenance record, export, and verification helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

import cbor2

from plugpack.models import PipelineResult


@dataclass(frozen=True, slots=True)
class BuildProvenance:
    package: str
    values: dict[str, str] = field(default_factory=dict)
    schema_version: int = 1

    @classmethod
    def from_result(cls, result: PipelineResult) -> BuildProvenance:
        return cls(
            package=result.package,
            values={
                "source_digest": result.source_digest,
                "lock_digest": result.lock_digest,
                "environment_digest": result.environment_digest,
                "dependency_key": result.dependencies.key,
                "dependency_digest": result.dependencies.artifact_digest,
                "profile": result.output.profile,
                "library_sha256": result.output.library_sha256 or "",
                "bundle_path": str(result.bundle.path),
                "bundle_sha256": result.bundle.sha256,
            },
        )

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def write(self, path: str | Path) -> Path:
        """Write JSON, or canonical CBOR when *path* ends in ``.cbor``."""
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if output_path.suffix == ".cbor":
            self.to_cbor(output_path)
        else:
            self.to_json(output_path)
        return output_path

    def differences(self, other: BuildProvenance) -> dict[str, tuple[str | None, str | None]]:
        """Keys whose values differ between two builds of the same inputs."""
        keys = sorted(set(self.values) | set(other.values))
        return {
            key: (self.values.get(key), other.values.get(key))
            for key in keys
            if self.values.get(key) != other.values.get(key)
        }

    def _payload(self) -> dict[str, object]:
        return {
            "schema_version": self.schema_version,
            "package": self.package,
            "values": dict(sorted(self.values.items())),
        }
