"""Explicit build environment shared by dependency and package builds.

The environment is a value, not ambient process state: every build stage
receives an :class:`Environment` and derives the child process environment
from it alone. :meth:`Environment.from_host` is the one place that reads
``os.environ``.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from plugpack.digest import canonical_digest
from plugpack.errors import EnvironmentMissingError

# Native libraries a plugin GUI on Linux links against (X11, Wayland, OpenGL).
GUI_LIBRARIES = (
    "libxkbcommon",
    "wayland",
    "libX11",
    "libxcb",
    "libXext",
    "libXcursor",
    "libXrandr",
    "libXi",
    "libXinerama",
    "libglvnd",
    "mesa",
)
NATIVE_TOOLS = ("pkg-config",)

HOST_PASSTHROUGH = ("PATH", "HOME", "CARGO_HOME", "RUSTUP_HOME", "RUSTUP_TOOLCHAIN", "TMPDIR")
SOURCE_DATE_EPOCH = "0"


@dataclass(frozen=True, slots=True)
class NativeInput:
    """A provisioned package prefix (``bin/``, ``lib/``, ``lib/pkgconfig``)."""

    name: str
    prefix: Path

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "prefix": str(self.prefix)}


@dataclass(frozen=True, slots=True)
class Environment:
    toolchain: str = "cargo"
    native_build_inputs: tuple[NativeInput, ...] = ()
    build_inputs: tuple[NativeInput, ...] = ()
    variables: Mapping[str, str] = field(default_factory=dict)
    base: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_host(
        cls,
        *,
        toolchain: str = "cargo",
        native_build_inputs: tuple[NativeInput, ...] = (),
        build_inputs: tuple[NativeInput, ...] = (),
        variables: Mapping[str, str] | None = None,
        host_env: Mapping[str, str] | None = None,
    ) -> Environment:
        source = os.environ if host_env is None else host_env
        base = {key: source[key] for key in HOST_PASSTHROUGH if key in source}
        return cls(
            toolchain=toolchain,
            native_build_inputs=native_build_inputs,
            build_inputs=build_inputs,
            variables=dict(variables or {}),
            base=base,
        )

    def search_path(self) -> str:
        entries = [str(item.prefix / "bin") for item in self.native_build_inputs]
        if self.base.get("PATH"):
            entries.append(self.base["PATH"])
        return os.pathsep.join(entries)

    def process_env(self) -> dict[str, str]:
        """Child process environment derived only from this value."""
        env = dict(self.base)
        env["PATH"] = self.search_path()
        env["SOURCE_DATE_EPOCH"] = SOURCE_DATE_EPOCH

        lib_dirs = [str(item.prefix / "lib") for item in self.build_inputs]
        pkg_config_dirs = [
            str(item.prefix / sub)
            for item in self.build_inputs
            for sub in ("lib/pkgconfig", "share/pkgconfig")
        ]
        if lib_dirs:
            env["LIBRARY_PATH"] = os.pathsep.join(lib_dirs)
            env["LD_LIBRARY_PATH"] = os.pathsep.join(lib_dirs)
        if pkg_config_dirs:
            env["PKG_CONFIG_PATH"] = os.pathsep.join(pkg_config_dirs)
        env.update(self.variables)
        return env

    def digest(self) -> str:
        """Content digest of everything that can change build outputs.

        Host passthrough variables are excluded, except ``RUSTUP_TOOLCHAIN``
        which selects the compiler: ``HOME`` differs between machines without
        changing what gets compiled.
        """
        return canonical_digest(
            {
                "toolchain": self.toolchain,
                "native_build_inputs": [item.to_dict() for item in self.native_build_inputs],
                "build_inputs": [item.to_dict() for item in self.build_inputs],
                "variables": dict(sorted(self.variables.items())),
                "rustup_toolchain": self.base.get("RUSTUP_TOOLCHAIN"),
                "source_date_epoch": SOURCE_DATE_EPOCH,
            }
        )

    def which(self, tool: str) -> str | None:
        if os.sep in tool:
            return tool if os.access(tool, os.X_OK) else None
        return shutil.which(tool, path=self.search_path())


def ensure_environment(environment: Environment, *, tools: tuple[str, ...] = ()) -> None:
    """Fail fast when a declared input prefix or a required tool is absent."""
    for item in (*environment.native_build_inputs, *environment.build_inputs):
        if not item.prefix.is_dir():
            raise EnvironmentMissingError(
                f"Native input `{item.name}` is not present.",
                hint="Provision the declared library prefix before building.",
                context={
                    "operation": "ensure_environment",
                    "input": item.name,
                    "path": str(item.prefix),
                },
            )
    for tool in tools:
        if environment.which(tool) is None:
            raise EnvironmentMissingError(
                f"Required tool `{tool}` is not available in the build environment.",
                hint="Add it to native_build_inputs or to the host PATH.",
                context={
                    "operation": "ensure_environment",
                    "tool": tool,
                    "PATH": environment.search_path(),
                },
            )
