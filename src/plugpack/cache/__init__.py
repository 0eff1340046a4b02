"""Content-addressed dependency cache APIs."""

from .keys import DependencyCacheInput, cache_key
from .store import ArtifactStore, FilesystemArtifactStore, InMemoryArtifactStore

__all__ = [
    "ArtifactStore",
    "DependencyCacheInput",
    "FilesystemArtifactStore",
    "InMemoryArtifactStore",
    "cache_key",
]
