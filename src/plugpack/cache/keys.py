"""Dependency cache key derivation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from plugpack.digest import canonical_digest

KEY_SCHEMA_VERSION = 2


@dataclass(frozen=True, slots=True)
class DependencyCacheInput:
    lock_digest: str
    structure_digest: str
    environment_digest: str
    toolchain: str
    profile: str = "release"
    toolchain_version: str = ""


def cache_key(inputs: DependencyCacheInput) -> str:
    return canonical_digest(_to_payload(inputs))


def _to_payload(inputs: DependencyCacheInput) -> dict[str, Any]:
    return {
        "schema": KEY_SCHEMA_VERSION,
        "lock_digest": inputs.lock_digest,
        "structure_digest": inputs.structure_digest,
        "environment_digest": inputs.environment_digest,
        "toolchain": inputs.toolchain,
        "profile": inputs.profile,
        "toolchain_version": inputs.toolchain_version,
    }
