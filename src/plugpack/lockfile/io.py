"""Cargo.lock parser."""

from __future__ import annotations

import re
import tomllib
from pathlib import Path
from typing import Any

from plugpack.errors import LockMismatchError
from plugpack.lockfile.model import LockDescriptor, LockedPackage

SUPPORTED_VERSIONS = (1, 2, 3, 4)
LEGACY_CHECKSUM_KEY = re.compile(r"^checksum (?P<name>\S+) (?P<version>\S+) \((?P<source>.+)\)$")


def parse_lock(raw: bytes) -> LockDescriptor:
    try:
        payload = tomllib.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        raise LockMismatchError(
            "Cargo.lock is not valid TOML.",
            hint=str(exc),
            context={"operation": "parse_lock"},
        ) from exc

    version = payload.get("version")
    if version is not None and version not in SUPPORTED_VERSIONS:
        raise LockMismatchError(
            f"Unsupported Cargo.lock version {version!r}.",
            hint="Regenerate the lock file with a current cargo.",
            context={"operation": "parse_lock"},
        )

    entries = payload.get("package", [])
    if not isinstance(entries, list) or not entries:
        raise LockMismatchError(
            "Cargo.lock has no [[package]] entries.",
            hint="Run `cargo generate-lockfile` and commit the result.",
            context={"operation": "parse_lock"},
        )

    legacy_checksums = _legacy_checksums(payload.get("metadata", {}))
    packages = tuple(_parse_package(entry, legacy_checksums) for entry in entries)
    return LockDescriptor(version=version, packages=packages, raw=raw)


def read_lock(path: str | Path) -> LockDescriptor:
    lock_path = Path(path)
    try:
        raw = lock_path.read_bytes()
    except FileNotFoundError as exc:
        raise LockMismatchError(
            "Cargo.lock does not exist.",
            hint="Builds are locked; generate and commit Cargo.lock first.",
            context={"operation": "read_lock", "path": str(lock_path)},
        ) from exc
    return parse_lock(raw)


def _parse_package(entry: Any, legacy_checksums: dict[tuple[str, str, str], str]) -> LockedPackage:
    if not isinstance(entry, dict):
        raise LockMismatchError("Invalid [[package]] entry in Cargo.lock.")
    name = _required_str(entry, "name")
    version = _required_str(entry, "version")
    source = entry.get("source")
    if source is not None and not isinstance(source, str):
        raise LockMismatchError(f"Invalid Cargo.lock `source` for {name} {version}.")
    checksum = entry.get("checksum")
    if checksum is None and source is not None:
        checksum = legacy_checksums.get((name, version, source))
    dependencies = entry.get("dependencies", [])
    if not isinstance(dependencies, list) or not all(isinstance(d, str) for d in dependencies):
        raise LockMismatchError(f"Invalid Cargo.lock `dependencies` for {name} {version}.")
    return LockedPackage(
        name=name,
        version=version,
        source=source,
        checksum=checksum,
        dependencies=tuple(dependencies),
    )


def _legacy_checksums(metadata: Any) -> dict[tuple[str, str, str], str]:
    """Pre-v3 lock files keep checksums in a trailing ``[metadata]`` table."""
    checksums: dict[tuple[str, str, str], str] = {}
    if not isinstance(metadata, dict):
        return checksums
    for key, value in metadata.items():
        match = LEGACY_CHECKSUM_KEY.match(key)
        if match is None or not isinstance(value, str) or value == "<none>":
            continue
        checksums[(match["name"], match["version"], match["source"])] = value
    return checksums


def _required_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise LockMismatchError(f"Invalid Cargo.lock `{key}` value.")
    return value
