"""Typed interfaces for the compiler toolchain driving Cargo builds."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from plugpack.environment import Environment
from plugpack.models import Profile


@dataclass(frozen=True, slots=True)
class ToolchainRequest:
    source_dir: Path
    target_dir: Path
    profile: Profile
    environment: Environment
    package: str | None = None
    locked: bool = True

    @property
    def scope(self) -> str:
        return self.package if self.package is not None else "workspace"


@dataclass(frozen=True, slots=True)
class ToolchainResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Toolchain(Protocol):
    name: str

    def check(self, environment: Environment) -> None:
        """Raise EnvironmentMissingError when the toolchain cannot run."""

    def identity(self, environment: Environment) -> str:
        """Version string of the compiler, part of the dependency cache key."""

    def build(self, request: ToolchainRequest) -> ToolchainResult:
        """Compile the requested scope into ``request.target_dir``."""
