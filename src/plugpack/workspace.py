"""Cargo workspace manifest model.

Only the parts of ``Cargo.toml`` the pipeline needs are modelled: member
discovery, package identity, library crate types, declared dependency names,
and the crate roots (``src/lib.rs``, ``build.rs``, binaries, ...) that a
dependency-only build has to stub out.
"""

from __future__ import annotations

import fnmatch
import tomllib
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from plugpack.errors import ValidationError

if TYPE_CHECKING:
    from plugpack.source.closure import SourceClosure

DEPENDENCY_TABLES = ("dependencies", "dev-dependencies", "build-dependencies")
AUTO_TARGET_DIRS = ("examples", "tests", "benches")
DEFAULT_VERSION = "0.0.0"


@dataclass(frozen=True, slots=True)
class CrateManifest:
    name: str
    version: str
    directory: str
    crate_types: tuple[str, ...] = ()
    lib_name: str | None = None
    dependencies: tuple[str, ...] = ()
    target_roots: tuple[str, ...] = ()

    @property
    def crate_name(self) -> str:
        """Name cargo uses for library files, ``-`` mapped to ``_``."""
        return (self.lib_name or self.name).replace("-", "_")

    @property
    def manifest_path(self) -> str:
        return _join(self.directory, "Cargo.toml")

    def produces(self, crate_type: str) -> bool:
        return crate_type in self.crate_types


@dataclass(frozen=True, slots=True)
class Workspace:
    members: tuple[CrateManifest, ...]
    virtual: bool = False

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(member.name for member in self.members)

    def member(self, name: str) -> CrateManifest | None:
        for member in self.members:
            if member.name == name:
                return member
        return None


def load_workspace(closure: SourceClosure) -> Workspace:
    """Parse the root manifest in *closure* and every workspace member."""
    root = _parse_manifest(closure, "Cargo.toml")
    paths = set(closure.paths)
    workspace_table = root.get("workspace")

    if not isinstance(workspace_table, dict):
        if "package" not in root:
            raise ValidationError(
                "Root Cargo.toml declares neither [package] nor [workspace].",
                context={"operation": "load_workspace", "path": "Cargo.toml"},
            )
        member = _crate_manifest(root, directory="", paths=paths, workspace_table={})
        return Workspace(members=(member,))

    member_dirs = _member_dirs(workspace_table, paths)
    members: list[CrateManifest] = []
    if "package" in root:
        members.append(
            _crate_manifest(root, directory="", paths=paths, workspace_table=workspace_table)
        )
    for directory in member_dirs:
        manifest = _parse_manifest(closure, _join(directory, "Cargo.toml"))
        if "package" not in manifest:
            raise ValidationError(
                "Workspace member manifest has no [package] table.",
                context={"operation": "load_workspace", "path": _join(directory, "Cargo.toml")},
            )
        members.append(
            _crate_manifest(
                manifest, directory=directory, paths=paths, workspace_table=workspace_table
            )
        )

    seen: set[str] = set()
    for member in members:
        if member.name in seen:
            raise ValidationError(
                f"Duplicate workspace member name `{member.name}`.",
                context={"operation": "load_workspace", "package": member.name},
            )
        seen.add(member.name)
    return Workspace(members=tuple(members), virtual="package" not in root)


def _parse_manifest(closure: SourceClosure, path: str) -> dict[str, Any]:
    text = closure.read_text(path)
    if text is None:
        raise ValidationError(
            "Cargo manifest is missing from the source closure.",
            hint="Point the pipeline at the workspace root directory.",
            context={"operation": "load_workspace", "path": path, "root": str(closure.root)},
        )
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ValidationError(
            "Cargo manifest is not valid TOML.",
            hint=str(exc),
            context={"operation": "load_workspace", "path": path},
        ) from exc


def _member_dirs(workspace_table: dict[str, Any], paths: set[str]) -> list[str]:
    patterns = [str(p).rstrip("/") for p in workspace_table.get("members", [])]
    excludes = [str(p).rstrip("/") for p in workspace_table.get("exclude", [])]
    candidates = sorted(
        str(PurePosixPath(path).parent)
        for path in paths
        if PurePosixPath(path).name == "Cargo.toml" and "/" in path
    )
    selected: list[str] = []
    for directory in candidates:
        parts = PurePosixPath(directory).parts
        if any(_excludes(parts, PurePosixPath(pattern).parts) for pattern in excludes):
            continue
        if any(_glob_parts(parts, PurePosixPath(pattern).parts) for pattern in patterns):
            selected.append(directory)
    return selected


def _glob_parts(parts: tuple[str, ...], pattern: tuple[str, ...]) -> bool:
    """Match path segments against glob segments; only ``**`` spans directories."""
    if not pattern:
        return not parts
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_glob_parts(parts[index:], rest) for index in range(len(parts) + 1))
    if not parts or not fnmatch.fnmatchcase(parts[0], head):
        return False
    return _glob_parts(parts[1:], rest)


def _excludes(parts: tuple[str, ...], pattern: tuple[str, ...]) -> bool:
    # An excluded directory also excludes everything below it.
    return any(_glob_parts(parts[:depth], pattern) for depth in range(1, len(parts) + 1))


def _crate_manifest(
    manifest: dict[str, Any],
    *,
    directory: str,
    paths: set[str],
    workspace_table: dict[str, Any],
) -> CrateManifest:
    package = manifest["package"]
    name = package.get("name")
    if not isinstance(name, str) or not name:
        raise ValidationError(
            "Cargo manifest [package] has no name.",
            context={"operation": "load_workspace", "path": _join(directory, "Cargo.toml")},
        )

    lib_table = manifest.get("lib")
    has_lib = isinstance(lib_table, dict) or _join(directory, "src/lib.rs") in paths
    crate_types: tuple[str, ...] = ()
    lib_name: str | None = None
    if has_lib:
        lib = lib_table if isinstance(lib_table, dict) else {}
        crate_types = tuple(lib.get("crate-type", lib.get("crate_type", ["lib"])))
        lib_name = lib.get("name")

    return CrateManifest(
        name=name,
        version=_version(package, workspace_table),
        directory=directory,
        crate_types=crate_types,
        lib_name=lib_name,
        dependencies=_dependency_names(manifest, workspace_table),
        target_roots=_target_roots(manifest, directory=directory, paths=paths, has_lib=has_lib),
    )


def _version(package: dict[str, Any], workspace_table: dict[str, Any]) -> str:
    version = package.get("version", DEFAULT_VERSION)
    if isinstance(version, dict) and version.get("workspace") is True:
        version = workspace_table.get("package", {}).get("version", DEFAULT_VERSION)
    return str(version)


def _dependency_names(manifest: dict[str, Any], workspace_table: dict[str, Any]) -> tuple[str, ...]:
    tables: list[dict[str, Any]] = [manifest.get(name, {}) for name in DEPENDENCY_TABLES]
    for platform in manifest.get("target", {}).values():
        if isinstance(platform, dict):
            tables.extend(platform.get(name, {}) for name in DEPENDENCY_TABLES)

    inherited = workspace_table.get("dependencies", {})
    names: set[str] = set()
    for table in tables:
        for key, spec in table.items():
            package_name = key
            if isinstance(spec, dict):
                if spec.get("workspace") is True:
                    base = inherited.get(key)
                    if isinstance(base, dict):
                        package_name = base.get("package", key)
                package_name = spec.get("package", package_name)
            names.add(package_name)
    return tuple(sorted(names))


def _target_roots(
    manifest: dict[str, Any],
    *,
    directory: str,
    paths: set[str],
    has_lib: bool,
) -> tuple[str, ...]:
    roots: set[str] = set()

    def add(rel: str) -> None:
        roots.add(_join(directory, rel))

    if has_lib:
        add(manifest.get("lib", {}).get("path", "src/lib.rs"))
    if _join(directory, "src/main.rs") in paths:
        add("src/main.rs")

    build = manifest["package"].get("build")
    if isinstance(build, str):
        add(build)
    elif build is not False and _join(directory, "build.rs") in paths:
        add("build.rs")

    for section in ("bin", "example", "test", "bench"):
        for target in manifest.get(section, []):
            if isinstance(target, dict) and isinstance(target.get("path"), str):
                add(target["path"])

    prefix = f"{directory}/" if directory else ""
    for path in paths:
        if not path.startswith(prefix) or not path.endswith(".rs"):
            continue
        rel = PurePosixPath(path[len(prefix):])
        parts = rel.parts
        if parts[:2] == ("src", "bin") and (len(parts) == 3 or parts[-1] == "main.rs"):
            roots.add(path)
        elif parts[0] in AUTO_TARGET_DIRS and (len(parts) == 2 or parts[-1] == "main.rs"):
            roots.add(path)
    return tuple(sorted(roots))


def _join(directory: str, rel: str) -> str:
    return str(PurePosixPath(directory) / rel) if directory else str(PurePosixPath(rel))
