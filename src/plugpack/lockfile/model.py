"""Lock descriptor typed model."""

from __future__ import annotations

from dataclasses import dataclass, field

from plugpack.digest import sha256_bytes


@dataclass(frozen=True, slots=True)
class LockedPackage:
    name: str
    version: str
    source: str | None = None
    checksum: str | None = None
    dependencies: tuple[str, ...] = ()

    @property
    def is_local(self) -> bool:
        """Workspace members and path dependencies carry no source."""
        return self.source is None

    @property
    def is_registry(self) -> bool:
        return self.source is not None and self.source.startswith(("registry+", "sparse+"))

    @property
    def is_git(self) -> bool:
        return self.source is not None and self.source.startswith("git+")


@dataclass(frozen=True, slots=True)
class LockDescriptor:
    """Exact record of every resolved dependency, keyed by its raw bytes."""

    version: int | None
    packages: tuple[LockedPackage, ...]
    raw: bytes = field(repr=False)

    def digest(self) -> str:
        return sha256_bytes(self.raw)

    @property
    def names(self) -> frozenset[str]:
        return frozenset(package.name for package in self.packages)

    def find(self, name: str, version: str | None = None) -> list[LockedPackage]:
        return [
            package
            for package in self.packages
            if package.name == name and (version is None or package.version == version)
        ]

    def third_party(self) -> tuple[LockedPackage, ...]:
        return tuple(package for package in self.packages if not package.is_local)
