"""Source closure APIs."""

from .closure import SourceClosure, SourceFile, resolve_source_closure
from .dummy import dummy_source, structure_digest

__all__ = [
    "SourceClosure",
    "SourceFile",
    "dummy_source",
    "resolve_source_closure",
    "structure_digest",
]
