"""Dependency-only view of a workspace closure.

Keeps every manifest, the lock file and Cargo configuration, and replaces
each crate root with a stub so that building it compiles third-party
dependencies but none of the workspace's own code. Its digest is the
*structure digest*: editing a ``.rs`` file never changes it.
"""

from __future__ import annotations

from plugpack.source.closure import SourceClosure, SourceFile
from plugpack.workspace import Workspace, load_workspace

DUMMY_RS = b"""#![allow(clippy::all)]
#![allow(dead_code)]
pub fn main() {}
"""


def dummy_source(closure: SourceClosure, workspace: Workspace | None = None) -> SourceClosure:
    workspace = workspace or load_workspace(closure)
    files: dict[str, SourceFile] = {item.path: item for item in closure if item.is_manifest}
    for member in workspace.members:
        for root in member.target_roots:
            files[root] = SourceFile.from_bytes(root, DUMMY_RS)
    return closure.with_files(list(files.values()))


def structure_digest(closure: SourceClosure, workspace: Workspace | None = None) -> str:
    return dummy_source(closure, workspace).digest()
