"""Scoped package builder: one workspace member, cached dependencies."""

from __future__ import annotations

import shutil
from pathlib import Path

from plugpack.bundle.locate import expected_library_path
from plugpack.digest import sha256_file
from plugpack.environment import Environment
from plugpack.errors import PackageBuildError
from plugpack.models import BuildOutput, DependencyArtifactSet, Platform, Profile
from plugpack.observability import StructuredLogger
from plugpack.source import SourceClosure
from plugpack.toolchain import Toolchain, ToolchainRequest
from plugpack.workspace import load_workspace


def build_package(
    closure: SourceClosure,
    dependencies: DependencyArtifactSet,
    package: str,
    environment: Environment,
    *,
    toolchain: Toolchain,
    workdir: str | Path,
    profile: Profile = "release",
    platform: Platform | None = None,
    logger: StructuredLogger | None = None,
) -> BuildOutput:
    """Compile only *package*; tests are never run.

    The crate type is not checked here. A member that does not produce a
    shared library builds fine and is rejected later by ``repackage``.
    """
    workspace = load_workspace(closure)
    if workspace.member(package) is None:
        raise PackageBuildError(
            f"`{package}` is not a member of the workspace.",
            hint="Set the target package to one of the workspace members.",
            context={
                "operation": "build_package",
                "package": package,
                "members": ", ".join(workspace.names),
            },
        )

    root = Path(workdir)
    source_dir = root / "source"
    target_dir = root / "target"
    for stale in (source_dir, target_dir):
        if stale.exists():
            shutil.rmtree(stale)
    closure.materialize(source_dir)
    # Private copy: cargo rewrites fingerprints, the cached set stays untouched.
    shutil.copytree(dependencies.path, target_dir, symlinks=True)

    if logger is not None:
        logger.log(
            operation="build_package",
            stage="package",
            package=package,
            key=dependencies.key,
            message="Building package with cached dependencies.",
        )

    toolchain.check(environment)
    result = toolchain.build(
        ToolchainRequest(
            source_dir=source_dir,
            target_dir=target_dir,
            profile=profile,
            environment=environment,
            package=package,
        )
    )
    if not result.ok:
        raise PackageBuildError(
            f"Build of package `{package}` failed.",
            hint="The compiler output below is reported verbatim.",
            context={
                "operation": "build_package",
                "package": package,
                "command": " ".join(result.argv),
                "returncode": str(result.returncode),
                "stderr": result.stderr,
            },
        )

    library_path = root / expected_library_path(package, profile, platform)
    built = library_path.is_file()
    return BuildOutput(
        package=package,
        profile=profile,
        workdir=root,
        target_dir=target_dir,
        library_path=library_path,
        library_sha256=sha256_file(library_path) if built else None,
        library_size=library_path.stat().st_size if built else None,
    )
