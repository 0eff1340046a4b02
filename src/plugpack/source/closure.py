"""Deterministic source closure for a Cargo workspace.

The closure is the minimal set of files needed to build the workspace:
Rust sources, TOML manifests, ``Cargo.lock`` and Cargo configuration.
Build outputs (``target/``), version-control metadata, Nix out-links and
editor droppings never enter it, so the closure of a tree depends only on
content that can influence the build.
"""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from plugpack.digest import canonical_digest, sha256_bytes

ROOT_EXCLUDED_DIRS = frozenset({"target", ".plugpack"})
VCS_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".jj",
        "CVS",
        ".direnv",
    }
)
RESULT_LINK_PATTERNS = ("result", "result-*")
EXCLUDED_PATTERNS = ("*~", ".#*", "#*#", "*.o", "*.so", ".DS_Store")
CARGO_CONFIG_NAMES = frozenset({"config", "config.toml"})
MANIFEST_NAMES = frozenset({"Cargo.toml", "Cargo.lock"})


@dataclass(frozen=True, slots=True)
class SourceFile:
    path: str
    sha256: str
    size: int
    contents: bytes = field(repr=False, compare=False)
    executable: bool = False

    @classmethod
    def from_bytes(cls, path: str, contents: bytes, *, executable: bool = False) -> SourceFile:
        return cls(
            path=path,
            sha256=sha256_bytes(contents),
            size=len(contents),
            contents=contents,
            executable=executable,
        )

    @property
    def is_manifest(self) -> bool:
        name = PurePosixPath(self.path).name
        return name in MANIFEST_NAMES or is_cargo_config(self.path)


@dataclass(frozen=True, slots=True)
class SourceClosure:
    """Ordered, content-addressed set of workspace source files."""

    root: Path
    files: tuple[SourceFile, ...]

    def __iter__(self) -> Iterator[SourceFile]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)

    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(item.path for item in self.files)

    def get(self, path: str) -> SourceFile | None:
        for item in self.files:
            if item.path == path:
                return item
        return None

    def read_text(self, path: str) -> str | None:
        item = self.get(path)
        return item.contents.decode("utf-8") if item is not None else None

    def digest(self) -> str:
        return canonical_digest([[item.path, item.sha256, item.executable] for item in self.files])

    def with_files(self, files: list[SourceFile]) -> SourceClosure:
        return SourceClosure(root=self.root, files=tuple(sorted(files, key=lambda f: f.path)))

    def materialize(self, dest: str | Path) -> Path:
        """Write the closure into *dest*, which must be empty or absent."""
        target = Path(dest)
        target.mkdir(parents=True, exist_ok=True)
        if any(target.iterdir()):
            raise FileExistsError(f"materialize target is not empty: {target}")
        for item in self.files:
            out = target / item.path
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(item.contents)
            out.chmod(0o755 if item.executable else 0o644)
        return target


def is_cargo_config(path: str) -> bool:
    parts = PurePosixPath(path).parts
    return len(parts) >= 2 and parts[-2] == ".cargo" and parts[-1] in CARGO_CONFIG_NAMES


def is_cargo_source(path: str) -> bool:
    name = PurePosixPath(path).name
    if name.endswith((".rs", ".toml")) or name == "Cargo.lock":
        return True
    return is_cargo_config(path)


def resolve_source_closure(root: str | Path, *, cargo_only: bool = True) -> SourceClosure:
    """Collect the build-relevant files under *root* in sorted order.

    With ``cargo_only`` (the default) only Rust sources, TOML files, the
    lock file and Cargo configuration are kept; otherwise every file that is
    not a build output or VCS metadata is kept.
    """
    base = Path(root)
    files: list[SourceFile] = []
    for rel in _walk(base):
        if cargo_only and not is_cargo_source(rel):
            continue
        path = base / rel
        files.append(
            SourceFile.from_bytes(
                rel,
                path.read_bytes(),
                executable=os.access(path, os.X_OK),
            )
        )
    files.sort(key=lambda item: item.path)
    return SourceClosure(root=base, files=tuple(files))


def _walk(base: Path) -> Iterator[str]:
    if not base.is_dir():
        return
    for dirpath, dirnames, filenames in os.walk(base, followlinks=False):
        current = Path(dirpath)
        at_root = current == base
        dirnames[:] = sorted(
            name
            for name in dirnames
            if not _excluded_dir(name, at_root=at_root) and not (current / name).is_symlink()
        )
        for name in sorted(filenames):
            path = current / name
            if _excluded_file(name, is_link=path.is_symlink()):
                continue
            # Broken links and sockets cannot be part of a build input.
            if not path.is_file():
                continue
            yield path.relative_to(base).as_posix()


def _excluded_dir(name: str, *, at_root: bool) -> bool:
    # Only the root target/ is cargo output; src/target/ may be a module.
    if at_root and name in ROOT_EXCLUDED_DIRS:
        return True
    return name in VCS_DIRS


def _excluded_file(name: str, *, is_link: bool) -> bool:
    if is_link and any(fnmatch.fnmatchcase(name, pattern) for pattern in RESULT_LINK_PATTERNS):
        return True
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in EXCLUDED_PATTERNS)
