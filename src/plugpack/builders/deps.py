"""Lock-derived dependency cache builder.

Compiles every transitive dependency of the workspace once, from the
dependency-only view of the source closure, and publishes the resulting
``target/`` directory under a key derived from the lock bytes, the
workspace structure, the environment and the profile.
"""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path

from plugpack.bundle.locate import crate_file_stem
from plugpack.cache import ArtifactStore, DependencyCacheInput, cache_key
from plugpack.environment import Environment
from plugpack.errors import DependencyBuildError
from plugpack.lockfile import LockDescriptor, verify_lock
from plugpack.models import DependencyArtifactSet, Profile
from plugpack.observability import StructuredLogger
from plugpack.source import SourceClosure, dummy_source
from plugpack.toolchain import Toolchain, ToolchainRequest
from plugpack.workspace import Workspace, load_workspace


def dependency_cache_input(
    closure: SourceClosure,
    lock: LockDescriptor,
    environment: Environment,
    *,
    toolchain: Toolchain,
    profile: Profile = "release",
    workspace: Workspace | None = None,
) -> DependencyCacheInput:
    return DependencyCacheInput(
        lock_digest=lock.digest(),
        structure_digest=dummy_source(closure, workspace).digest(),
        environment_digest=environment.digest(),
        toolchain=toolchain.name,
        profile=profile,
        toolchain_version=toolchain.identity(environment),
    )


def build_dependencies(
    closure: SourceClosure,
    lock: LockDescriptor,
    environment: Environment,
    *,
    store: ArtifactStore,
    toolchain: Toolchain,
    profile: Profile = "release",
    logger: StructuredLogger | None = None,
) -> DependencyArtifactSet:
    """Return the dependency artifact set for these inputs, building it on a miss."""
    workspace = load_workspace(closure)
    verify_lock(lock, workspace)

    inputs = dependency_cache_input(
        closure, lock, environment, toolchain=toolchain, profile=profile, workspace=workspace
    )
    key = cache_key(inputs)
    cached = store.get(key, expected_inputs=inputs)
    if cached is not None:
        _log(logger, key=key, message="Dependency cache hit.")
        return cached

    _log(logger, key=key, message="Dependency cache miss; building dependencies.")
    toolchain.check(environment)
    staging = store.stage()
    try:
        target_dir = staging / "target"
        with tempfile.TemporaryDirectory(prefix="plugpack-deps-src-") as src:
            source_dir = dummy_source(closure, workspace).materialize(Path(src) / "workspace")
            result = toolchain.build(
                ToolchainRequest(
                    source_dir=source_dir,
                    target_dir=target_dir,
                    profile=profile,
                    environment=environment,
                )
            )
        if not result.ok:
            raise DependencyBuildError(
                "Dependency build failed; nothing was published to the cache.",
                hint="The compiler output below is reported verbatim.",
                context={
                    "operation": "build_dependencies",
                    "key": key,
                    "command": " ".join(result.argv),
                    "returncode": str(result.returncode),
                    "stderr": result.stderr,
                },
            )
        _strip_workspace_outputs(target_dir / profile, workspace)
    except BaseException:
        store.discard(staging)
        raise

    published = store.publish(key, staging=staging, inputs=inputs)
    _log(
        logger,
        key=key,
        message="Dependency artifacts published.",
        extra={"artifact_digest": published.artifact_digest},
    )
    return published


def _strip_workspace_outputs(profile_dir: Path, workspace: Workspace) -> None:
    """Remove everything cargo produced for the stubbed workspace crates.

    That is the top-level artifacts (``libcave.so``, ``xtask``), their
    ``deps/<crate>-<hash>.*`` files, and their ``.fingerprint/`` and ``build/``
    directories. Only third-party outputs are left to publish.
    """
    if not profile_dir.is_dir():
        return
    stems: set[str] = set()
    for member in workspace.members:
        stems.add(crate_file_stem(member.lib_name or member.name))
        stems.add(crate_file_stem(member.name))

    for path in sorted(profile_dir.iterdir()):
        if path.is_file() and _output_stem(path.name.split(".", 1)[0]) in stems:
            path.unlink()
    for subdir in ("deps", ".fingerprint", "build"):
        directory = profile_dir / subdir
        if not directory.is_dir():
            continue
        for path in sorted(directory.iterdir()):
            # Names are <crate>-<16 hex hash>[.<ext>].
            unit = path.name.split(".", 1)[0].rpartition("-")[0]
            if not unit or _output_stem(unit) not in stems:
                continue
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()


def _output_stem(name: str) -> str:
    if name.startswith("lib"):
        name = name[3:]
    return crate_file_stem(name)


def _log(
    logger: StructuredLogger | None,
    *,
    key: str,
    message: str,
    extra: dict[str, object] | None = None,
) -> None:
    if logger is None:
        return
    logger.log(
        operation="build_dependencies",
        stage="dependencies",
        package=None,
        key=key,
        message=message,
        extra=extra,
    )
