"""Command-line entrypoint: ``plugpack build | key | locate``."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from plugpack.bundle import expected_library_path
from plugpack.config import PipelineConfig, load_config
from plugpack.errors import ErrorCode, PlugpackError
from plugpack.models import DEFAULT_PACKAGE
from plugpack.pipeline import Pipeline
from plugpack.toolchain import CargoToolchain, InProcessToolchain, Toolchain

TOOLCHAINS = ("cargo", "inprocess")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plugpack",
        description="Build a Cargo workspace member and package it as a plugin bundle.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Run the full build-and-package pipeline.")
    _add_common(build)
    build.add_argument("--out", dest="output", type=Path, help="Output root (default: ./result).")
    build.add_argument("--work-dir", dest="work_dir", type=Path, help="Keep build trees here.")
    build.add_argument("--plugin-kind", dest="plugin_kind", help="Bundle kind, e.g. clap.")
    build.add_argument("--plugin-extension", dest="plugin_extension", help="Bundle file extension.")
    build.add_argument("--report", type=Path, help="Write build provenance (.json or .cbor).")
    build.add_argument("--log-json", dest="log_json", type=Path, help="Write structured logs.")
    build.set_defaults(handler=cmd_build)

    key = sub.add_parser("key", help="Print the dependency cache key.")
    _add_common(key)
    key.set_defaults(handler=cmd_key)

    locate = sub.add_parser("locate", help="Print the expected compiled library path.")
    locate.add_argument("--package", default=DEFAULT_PACKAGE)
    locate.add_argument("--profile", choices=("release", "debug"), default="release")
    locate.set_defaults(handler=cmd_locate)
    return parser


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--workspace", type=Path, default=Path("."), help="Workspace root.")
    parser.add_argument("--config", type=Path, help="Config file (default: plugpack.toml).")
    parser.add_argument("--package", help="Workspace member to build.")
    parser.add_argument("--profile", choices=("release", "debug"))
    parser.add_argument("--cache-dir", dest="cache_dir", type=Path)
    parser.add_argument("--toolchain", choices=TOOLCHAINS, default="cargo")


def cmd_build(args: argparse.Namespace) -> int:
    pipeline = _pipeline(args)
    try:
        result = pipeline.run()
    finally:
        if args.log_json is not None:
            pipeline.logger.to_json_lines(args.log_json)
    print(result.bundle.path)
    return 0


def cmd_key(args: argparse.Namespace) -> int:
    print(_pipeline(args).dependency_key())
    return 0


def cmd_locate(args: argparse.Namespace) -> int:
    print(expected_library_path(args.package, args.profile))
    return 0


def _pipeline(args: argparse.Namespace) -> Pipeline:
    config = _config(args)
    toolchain: Toolchain
    if args.toolchain == "inprocess":
        toolchain = InProcessToolchain()
    else:
        toolchain = CargoToolchain()
    return Pipeline.from_config(config, toolchain=toolchain)


def _config(args: argparse.Namespace) -> PipelineConfig:
    overrides: dict[str, Any] = {}
    for name in (
        "package",
        "profile",
        "output",
        "cache_dir",
        "work_dir",
        "plugin_kind",
        "plugin_extension",
        "report",
    ):
        value = getattr(args, name, None)
        if value is None:
            continue
        overrides[name] = value.absolute() if isinstance(value, Path) else value
    return load_config(args.workspace.absolute(), config_path=args.config, overrides=overrides)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.handler(args))
    except PlugpackError as exc:
        stage = exc.stage or "config"
        print(f"plugpack: {stage} failed [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        # Raised before any stage ran, e.g. an unusable cache directory.
        print(f"plugpack: config failed [{ErrorCode.VALIDATION}]: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
