"""Toolchain runners used by the dependency and package builders."""

from .base import Toolchain, ToolchainRequest, ToolchainResult
from .cargo import CargoToolchain
from .inprocess import InProcessToolchain

__all__ = [
    "CargoToolchain",
    "InProcessToolchain",
    "Toolchain",
    "ToolchainRequest",
    "ToolchainResult",
]
