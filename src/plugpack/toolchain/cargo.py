"""Cargo toolchain runner."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from plugpack.environment import Environment, ensure_environment
from plugpack.errors import EnvironmentMissingError
from plugpack.toolchain.base import ToolchainRequest, ToolchainResult


@dataclass(slots=True)
class CargoToolchain:
    name: str = "cargo"
    extra_args: list[str] = field(default_factory=list)

    def check(self, environment: Environment) -> None:
        ensure_environment(environment, tools=(environment.toolchain,))

    def identity(self, environment: Environment) -> str:
        """``rustc -vV`` output: release, commit hash, host triple and LLVM version."""
        argv = (self.rustc(environment), "-vV")
        try:
            completed = subprocess.run(
                list(argv),
                env=environment.process_env(),
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise EnvironmentMissingError(
                f"Compiler `{argv[0]}` could not be executed.",
                hint="Provision a Rust toolchain in the build environment.",
                context={"operation": "cargo_identity", "argv": " ".join(argv)},
            ) from exc
        if completed.returncode != 0:
            raise EnvironmentMissingError(
                "Compiler version query failed.",
                context={
                    "operation": "cargo_identity",
                    "argv": " ".join(argv),
                    "stderr": completed.stderr or "",
                },
            )
        return (completed.stdout or "").strip()

    def rustc(self, environment: Environment) -> str:
        """``rustc`` beside an explicit cargo path, else the one on the derived PATH."""
        toolchain = environment.toolchain
        if os.sep in toolchain:
            return str(Path(toolchain).with_name("rustc"))
        return "rustc"

    def command(self, request: ToolchainRequest) -> tuple[str, ...]:
        argv = [request.environment.toolchain, "build"]
        if request.locked and "--locked" not in self.extra_args:
            argv.append("--locked")
        if request.profile == "release":
            argv.append("--release")
        else:
            argv.extend(["--profile", "dev"])
        if request.package is None:
            argv.append("--workspace")
        else:
            argv.extend(["-p", request.package])
        argv.extend(["--target-dir", str(request.target_dir)])
        argv.extend(self.extra_args)
        return tuple(argv)

    def build(self, request: ToolchainRequest) -> ToolchainResult:
        argv = self.command(request)
        try:
            completed = subprocess.run(
                list(argv),
                cwd=str(request.source_dir),
                env=request.environment.process_env(),
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise EnvironmentMissingError(
                f"Toolchain `{request.environment.toolchain}` could not be executed.",
                hint="Provision a Rust toolchain in the build environment.",
                context={"operation": "cargo_build", "argv": " ".join(argv)},
            ) from exc
        return ToolchainResult(
            argv=argv,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
