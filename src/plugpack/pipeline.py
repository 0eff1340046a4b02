"""End-to-end build-and-package pipeline.

Stages run strictly in order and each one's output is on disk before the
next starts::

    source -> lock -> environment -> dependencies -> package -> repackage

Every failure is fatal. The raised :class:`~plugpack.errors.PlugpackError`
carries the failing stage in ``context["stage"]``.
"""

from __future__ import annotations

import tempfile
from collections.abc import Iterator, Mapping
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from plugpack.builders import build_dependencies, build_package, dependency_cache_input
from plugpack.bundle import repackage
from plugpack.cache import ArtifactStore, FilesystemArtifactStore, cache_key
from plugpack.config import PipelineConfig
from plugpack.environment import Environment, ensure_environment
from plugpack.errors import (
    DependencyBuildError,
    EnvironmentMissingError,
    LockMismatchError,
    PackageBuildError,
    PlugpackError,
    ValidationError,
)
from plugpack.lockfile import LockDescriptor, parse_lock
from plugpack.models import PipelineResult, Platform, Stage
from plugpack.observability import StructuredLogger
from plugpack.provenance import BuildProvenance
from plugpack.source import SourceClosure, resolve_source_closure
from plugpack.toolchain import CargoToolchain, Toolchain


@dataclass(slots=True)
class Pipeline:
    config: PipelineConfig
    environment: Environment
    store: ArtifactStore
    toolchain: Toolchain
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    platform: Platform | None = None

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig,
        *,
        toolchain: Toolchain | None = None,
        store: ArtifactStore | None = None,
        host_env: Mapping[str, str] | None = None,
    ) -> Pipeline:
        return cls(
            config=config,
            environment=config.environment.provision(host_env),
            store=store if store is not None else FilesystemArtifactStore(config.cache_dir),
            toolchain=toolchain if toolchain is not None else CargoToolchain(),
        )

    def run(self) -> PipelineResult:
        package = self.config.package
        with self._stage("source"):
            closure = self._resolve_closure()
        with self._stage("lock"):
            lock = self._lock(closure)
        with self._stage("environment"):
            ensure_environment(self.environment)
            self.toolchain.check(self.environment)
        with self._stage("dependencies"):
            dependencies = build_dependencies(
                closure,
                lock,
                self.environment,
                store=self.store,
                toolchain=self.toolchain,
                profile=self.config.profile,
                logger=self.logger,
            )

        with ExitStack() as stack:
            with self._stage("package"):
                workdir = self._workdir(stack)
                output = build_package(
                    closure,
                    dependencies,
                    package,
                    self.environment,
                    toolchain=self.toolchain,
                    workdir=workdir,
                    profile=self.config.profile,
                    platform=self.platform,
                    logger=self.logger,
                )
            with self._stage("repackage"):
                bundle = repackage(
                    output.library_path,
                    package,
                    self.config.output,
                    plugin_format=self.config.plugin_format,
                    logger=self.logger,
                )

        result = PipelineResult(
            package=package,
            source_digest=closure.digest(),
            lock_digest=lock.digest(),
            environment_digest=self.environment.digest(),
            dependencies=dependencies,
            output=output,
            bundle=bundle,
        )
        if self.config.report is not None:
            with self._stage("report"):
                result.report_path = BuildProvenance.from_result(result).write(self.config.report)
        return result

    def dependency_key(self) -> str:
        """Cache key the dependency stage would use for the current tree."""
        closure = self._resolve_closure()
        inputs = dependency_cache_input(
            closure,
            self._lock(closure),
            self.environment,
            toolchain=self.toolchain,
            profile=self.config.profile,
        )
        return cache_key(inputs)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _stage(self, stage: Stage) -> Iterator[None]:
        self.logger.log(
            operation="pipeline",
            stage=stage,
            package=self.config.package,
            message="Stage started.",
        )
        try:
            yield
        except PlugpackError as exc:
            exc.context.setdefault("stage", stage)
            self.logger.log(
                operation="pipeline",
                stage=stage,
                package=self.config.package,
                message=exc.message,
                level="error",
                extra={"code": exc.code},
            )
            raise
        except OSError as exc:
            error = _io_error(stage, exc)
            self.logger.log(
                operation="pipeline",
                stage=stage,
                package=self.config.package,
                message=error.message,
                level="error",
                extra={"code": error.code},
            )
            raise error from exc
        self.logger.log(
            operation="pipeline",
            stage=stage,
            package=self.config.package,
            message="Stage finished.",
        )

    def _resolve_closure(self) -> SourceClosure:
        root = self.config.workspace
        if not root.is_dir():
            raise ValidationError(
                "Workspace root is not a directory.",
                context={"operation": "resolve_source_closure", "path": str(root)},
            )
        closure = resolve_source_closure(root)
        if not len(closure):
            raise ValidationError(
                "Workspace root contains no Cargo sources.",
                hint="Point --workspace at the directory holding Cargo.toml.",
                context={"operation": "resolve_source_closure", "path": str(root)},
            )
        return closure

    def _lock(self, closure: SourceClosure) -> LockDescriptor:
        item = closure.get("Cargo.lock")
        if item is None:
            raise LockMismatchError(
                "Cargo.lock is missing from the workspace root.",
                hint="Builds are locked; generate and commit Cargo.lock first.",
                context={"operation": "read_lock", "path": str(closure.root / "Cargo.lock")},
            )
        return parse_lock(item.contents)

    def _workdir(self, stack: ExitStack) -> Path:
        if self.config.work_dir is not None:
            workdir = self.config.work_dir / self.config.package
            workdir.mkdir(parents=True, exist_ok=True)
            return workdir
        return Path(stack.enter_context(tempfile.TemporaryDirectory(prefix="plugpack-build-")))


STAGE_ERRORS: dict[Stage, type[PlugpackError]] = {
    "source": ValidationError,
    "lock": LockMismatchError,
    "environment": EnvironmentMissingError,
    "dependencies": DependencyBuildError,
    "package": PackageBuildError,
    "repackage": ValidationError,
    "report": ValidationError,
}


def _io_error(stage: Stage, exc: OSError) -> PlugpackError:
    """Wrap a filesystem failure in the typed error of the stage it hit."""
    context = {"operation": "pipeline", "stage": stage}
    if exc.filename is not None:
        context["path"] = str(exc.filename)
    return STAGE_ERRORS[stage](
        f"Filesystem error during {stage}: {exc.strerror or exc}.",
        hint="Check that the path is a writable directory.",
        context=context,
    )


def run_pipeline(
    config: PipelineConfig,
    *,
    toolchain: Toolchain | None = None,
    store: ArtifactStore | None = None,
    logger: StructuredLogger | None = None,
    host_env: Mapping[str, str] | None = None,
) -> PipelineResult:
    pipeline = Pipeline.from_config(config, toolchain=toolchain, store=store, host_env=host_env)
    if logger is not None:
        pipeline.logger = logger
    return pipeline.run()
