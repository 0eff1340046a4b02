"""Convention-based paths for compiled libraries and plugin bundles.

Everything here is pure: no filesystem access, no compiler.
"""

from __future__ import annotations

import sys
from pathlib import Path

from plugpack.models import CLAP, Platform, PluginFormat, Profile

SHARED_LIBRARY_EXTENSIONS: dict[str, str] = {
    "linux": "so",
    "darwin": "dylib",
    "win32": "dll",
}
STATIC_LIBRARY_EXTENSIONS: dict[str, str] = {
    "linux": "a",
    "darwin": "a",
    "win32": "lib",
}


def host_platform() -> Platform:
    if sys.platform.startswith("linux"):
        return "linux"
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform in ("win32", "cygwin"):
        return "win32"
    # Other unixes follow the ELF conventions.
    return "linux"


def crate_file_stem(package: str) -> str:
    return package.replace("-", "_")


def shared_library_name(package: str, platform: Platform | None = None) -> str:
    platform = platform or host_platform()
    prefix = "" if platform == "win32" else "lib"
    return f"{prefix}{crate_file_stem(package)}.{SHARED_LIBRARY_EXTENSIONS[platform]}"


def static_library_name(package: str, platform: Platform | None = None) -> str:
    platform = platform or host_platform()
    prefix = "" if platform == "win32" else "lib"
    return f"{prefix}{crate_file_stem(package)}.{STATIC_LIBRARY_EXTENSIONS[platform]}"


def expected_library_path(
    package: str,
    profile: Profile = "release",
    platform: Platform | None = None,
) -> Path:
    """Relative path cargo writes a cdylib to, e.g. ``target/release/libcave.so``."""
    return Path("target") / profile / shared_library_name(package, platform)


def bundle_path(package: str, output_root: str | Path, plugin_format: PluginFormat = CLAP) -> Path:
    return Path(output_root) / "lib" / plugin_format.kind / f"{package}.{plugin_format.extension}"
