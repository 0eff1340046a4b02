"""Core typed dataclasses shared between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

Profile = Literal["release", "debug"]
Platform = Literal["linux", "darwin", "win32"]
Stage = Literal[
    "source", "lock", "environment", "dependencies", "package", "repackage", "report"
]

DEFAULT_PACKAGE = "cave"
DEFAULT_PROFILE: Profile = "release"


@dataclass(frozen=True, slots=True)
class PluginFormat:
    """Host-discoverable bundle convention: ``lib/<kind>/<name>.<extension>``."""

    kind: str
    extension: str


CLAP = PluginFormat(kind="clap", extension="clap")
VST3 = PluginFormat(kind="vst3", extension="vst3")
LV2 = PluginFormat(kind="lv2", extension="so")

KNOWN_PLUGIN_FORMATS: dict[str, PluginFormat] = {
    "clap": CLAP,
    "vst3": VST3,
    "lv2": LV2,
}


@dataclass(frozen=True, slots=True)
class DependencyArtifactSet:
    """Compiled dependency outputs published under a content-derived key."""

    key: str
    path: Path
    artifact_digest: str
    inputs: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class BuildOutput:
    """Result of a scoped package build.

    The paths point into the build work dir, which the pipeline removes
    unless a persistent ``work_dir`` is configured. ``library_sha256`` and
    ``library_size`` are recorded while the library still exists; both are
    None when the build produced no shared library.
    """

    package: str
    profile: Profile
    workdir: Path
    target_dir: Path
    library_path: Path
    library_sha256: str | None = None
    library_size: int | None = None


@dataclass(frozen=True, slots=True)
class PackagedBundle:
    package: str
    plugin_format: PluginFormat
    path: Path
    sha256: str
    size: int


@dataclass(slots=True)
class PipelineResult:
    package: str
    source_digest: str
    lock_digest: str
    environment_digest: str
    dependencies: DependencyArtifactSet
    output: BuildOutput
    bundle: PackagedBundle
    report_path: Path | None = None
