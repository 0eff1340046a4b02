"""Dependency-cache and scoped package builders."""

from .deps import build_dependencies, dependency_cache_input
from .package import build_package

__all__ = ["build_dependencies", "build_package", "dependency_cache_input"]
