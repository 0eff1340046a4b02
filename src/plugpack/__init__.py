"""Public package entrypoint for the plugpack build-and-package pipeline."""

from .builders import build_dependencies, build_package
from .bundle import bundle_path, expected_library_path, repackage
from .cache import FilesystemArtifactStore, InMemoryArtifactStore
from .config import EnvironmentConfig, PipelineConfig, load_config
from .environment import Environment, NativeInput
from .errors import (
    DependencyBuildError,
    EnvironmentMissingError,
    LockMismatchError,
    MissingArtifactError,
    PackageBuildError,
    PlugpackError,
    ReproducibilityError,
    ValidationError,
)
from .lockfile import LockDescriptor, parse_lock, read_lock
from .models import (
    CLAP,
    BuildOutput,
    DependencyArtifactSet,
    PackagedBundle,
    PipelineResult,
    PluginFormat,
)
from .pipeline import Pipeline, run_pipeline
from .source import SourceClosure, resolve_source_closure

__all__ = [
    "CLAP",
    "BuildOutput",
    "DependencyArtifactSet",
    "DependencyBuildError",
    "Environment",
    "EnvironmentConfig",
    "EnvironmentMissingError",
    "FilesystemArtifactStore",
    "InMemoryArtifactStore",
    "LockDescriptor",
    "LockMismatchError",
    "MissingArtifactError",
    "NativeInput",
    "PackageBuildError",
    "PackagedBundle",
    "Pipeline",
    "PipelineConfig",
    "PipelineResult",
    "PluginFormat",
    "PlugpackError",
    "ReproducibilityError",
    "SourceClosure",
    "ValidationError",
    "build_dependencies",
    "build_package",
    "bundle_path",
    "expected_library_path",
    "load_config",
    "parse_lock",
    "read_lock",
    "repackage",
    "resolve_source_closure",
    "run_pipeline",
]
