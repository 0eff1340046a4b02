"""Artifact locator and plugin bundle repackager."""

from .locate import (
    bundle_path,
    expected_library_path,
    host_platform,
    shared_library_name,
    static_library_name,
)
from .repackage import repackage

__all__ = [
    "bundle_path",
    "expected_library_path",
    "host_platform",
    "repackage",
    "shared_library_name",
    "static_library_name",
]
