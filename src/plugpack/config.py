"""Pipeline configuration.

Values are layered, later layers winning:

1. built-in defaults (package ``cave``, ``release`` profile, CLAP bundle),
2. ``[workspace.metadata.plugpack]`` or ``[package.metadata.plugpack]`` in
   the root ``Cargo.toml``,
3. a ``plugpack.toml`` file (or an explicit ``config_path``),
4. explicit overrides, typically from the command line.

Relative paths are resolved against the workspace root.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

from plugpack.environment import Environment, NativeInput
from plugpack.errors import ValidationError
from plugpack.models import DEFAULT_PACKAGE, KNOWN_PLUGIN_FORMATS, PluginFormat, Profile

CONFIG_FILE_NAME = "plugpack.toml"
DEFAULT_OUTPUT = "result"
DEFAULT_CACHE_DIR = ".plugpack/cache"
PROFILES: tuple[Profile, ...] = ("release", "debug")
TOP_LEVEL_KEYS = frozenset(
    {
        "package",
        "profile",
        "output",
        "cache_dir",
        "work_dir",
        "plugin_kind",
        "plugin_extension",
        "report",
        "environment",
    }
)
ENVIRONMENT_KEYS = frozenset({"toolchain", "native_build_inputs", "build_inputs", "variables"})


@dataclass(frozen=True, slots=True)
class EnvironmentConfig:
    toolchain: str = "cargo"
    native_build_inputs: dict[str, Path] = field(default_factory=dict)
    build_inputs: dict[str, Path] = field(default_factory=dict)
    variables: dict[str, str] = field(default_factory=dict)

    def provision(self, host_env: Mapping[str, str] | None = None) -> Environment:
        return Environment.from_host(
            toolchain=self.toolchain,
            native_build_inputs=tuple(
                NativeInput(name=name, prefix=prefix)
                for name, prefix in sorted(self.native_build_inputs.items())
            ),
            build_inputs=tuple(
                NativeInput(name=name, prefix=prefix)
                for name, prefix in sorted(self.build_inputs.items())
            ),
            variables=self.variables,
            host_env=host_env,
        )


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    workspace: Path
    output: Path
    cache_dir: Path
    package: str = DEFAULT_PACKAGE
    profile: Profile = "release"
    work_dir: Path | None = None
    plugin_format: PluginFormat = KNOWN_PLUGIN_FORMATS["clap"]
    report: Path | None = None
    environment: EnvironmentConfig = field(default_factory=EnvironmentConfig)


def load_config(
    workspace: str | Path,
    *,
    config_path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> PipelineConfig:
    root = Path(workspace)
    merged: dict[str, Any] = {}
    _merge(merged, _cargo_metadata(root / "Cargo.toml"), origin="Cargo.toml")

    file_path = Path(config_path) if config_path is not None else root / CONFIG_FILE_NAME
    if config_path is not None or file_path.exists():
        _merge(merged, _read_toml(file_path), origin=str(file_path))
    _merge(
        merged,
        {key: value for key, value in (overrides or {}).items() if value is not None},
        origin="overrides",
    )
    return _build_config(root, merged)


def _build_config(root: Path, data: dict[str, Any]) -> PipelineConfig:
    package = data.get("package", DEFAULT_PACKAGE)
    if not isinstance(package, str) or not package:
        raise ValidationError(
            "Config `package` must be a non-empty string.",
            context={"operation": "load_config"},
        )
    profile = data.get("profile", "release")
    if profile not in PROFILES:
        raise ValidationError(
            f"Unsupported profile `{profile}`.",
            hint=f"Use one of: {', '.join(PROFILES)}.",
            context={"operation": "load_config"},
        )

    output = _path(root, data.get("output", DEFAULT_OUTPUT), "output")
    report = _path(root, data["report"], "report") if "report" in data else None
    if report is not None and report.resolve().is_relative_to(output.resolve()):
        raise ValidationError(
            "Config `report` must not be written inside the output root.",
            hint="The output root holds exactly the plugin bundle.",
            context={"operation": "load_config", "report": str(report), "output": str(output)},
        )

    return PipelineConfig(
        workspace=root,
        output=output,
        cache_dir=_path(root, data.get("cache_dir", DEFAULT_CACHE_DIR), "cache_dir"),
        package=package,
        profile=cast(Profile, profile),
        work_dir=_path(root, data["work_dir"], "work_dir") if "work_dir" in data else None,
        plugin_format=_plugin_format(data),
        report=report,
        environment=_environment(root, data.get("environment", {})),
    )


def _plugin_format(data: dict[str, Any]) -> PluginFormat:
    kind = data.get("plugin_kind", "clap")
    extension = data.get("plugin_extension")
    if not isinstance(kind, str) or not kind or "/" in kind:
        raise ValidationError(
            "Config `plugin_kind` must be a plain directory name.",
            context={"operation": "load_config"},
        )
    if extension is None:
        known = KNOWN_PLUGIN_FORMATS.get(kind)
        if known is None:
            raise ValidationError(
                f"Unknown plugin kind `{kind}` requires `plugin_extension`.",
                hint=f"Known kinds: {', '.join(sorted(KNOWN_PLUGIN_FORMATS))}.",
                context={"operation": "load_config"},
            )
        return known
    if not isinstance(extension, str) or not extension or "/" in extension:
        raise ValidationError(
            "Config `plugin_extension` must be a non-empty file extension.",
            context={"operation": "load_config"},
        )
    return PluginFormat(kind=kind, extension=extension.lstrip("."))


def _environment(root: Path, table: Any) -> EnvironmentConfig:
    if not isinstance(table, dict):
        raise ValidationError(
            "Config `environment` must be a table.",
            context={"operation": "load_config"},
        )
    unknown = sorted(set(table) - ENVIRONMENT_KEYS)
    if unknown:
        raise ValidationError(
            f"Unknown environment keys: {', '.join(unknown)}.",
            context={"operation": "load_config"},
        )
    toolchain = table.get("toolchain", "cargo")
    if not isinstance(toolchain, str) or not toolchain:
        raise ValidationError(
            "Config `environment.toolchain` must be a non-empty string.",
            context={"operation": "load_config"},
        )
    return EnvironmentConfig(
        toolchain=toolchain,
        native_build_inputs=_inputs(
            root, table.get("native_build_inputs", {}), "native_build_inputs"
        ),
        build_inputs=_inputs(root, table.get("build_inputs", {}), "build_inputs"),
        variables=_variables(table.get("variables", {})),
    )


def _inputs(root: Path, value: Any, name: str) -> dict[str, Path]:
    if not isinstance(value, dict):
        raise ValidationError(
            f"Config `environment.{name}` must map input names to prefixes.",
            context={"operation": "load_config"},
        )
    return {
        str(key): _path(root, prefix, f"environment.{name}.{key}") for key, prefix in value.items()
    }


def _variables(value: Any) -> dict[str, str]:
    if not isinstance(value, dict) or not all(isinstance(v, str) for v in value.values()):
        raise ValidationError(
            "Config `environment.variables` must map names to strings.",
            context={"operation": "load_config"},
        )
    return {str(key): item for key, item in value.items()}


def _path(root: Path, value: Any, name: str) -> Path:
    if not isinstance(value, (str, Path)) or not str(value):
        raise ValidationError(
            f"Config `{name}` must be a path.",
            context={"operation": "load_config"},
        )
    path = Path(value).expanduser()
    return path if path.is_absolute() else root / path


def _merge(target: dict[str, Any], layer: Mapping[str, Any], *, origin: str) -> None:
    unknown = sorted(set(layer) - TOP_LEVEL_KEYS)
    if unknown:
        raise ValidationError(
            f"Unknown config keys: {', '.join(unknown)}.",
            context={"operation": "load_config", "origin": origin},
        )
    for key, value in layer.items():
        if key == "environment" and isinstance(value, dict) and isinstance(target.get(key), dict):
            target[key] = {**target[key], **value}
        else:
            target[key] = value


def _cargo_metadata(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    manifest = _read_toml(path)
    for section in ("workspace", "package"):
        metadata = manifest.get(section, {}).get("metadata", {}).get("plugpack")
        if isinstance(metadata, dict):
            return metadata
    return {}


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValidationError(
            "Config file does not exist.",
            context={"operation": "load_config", "path": str(path)},
        ) from exc
    except tomllib.TOMLDecodeError as exc:
        raise ValidationError(
            "Config file is not valid TOML.",
            hint=str(exc),
            context={"operation": "load_config", "path": str(path)},
        ) from exc
