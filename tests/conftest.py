"""Shared test fixtures: a small two-member Cargo workspace on disk."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from textwrap import dedent
from typing import Any

import pytest

from plugpack.toolchain import InProcessToolchain

ANYHOW_CHECKSUM = "b3d1d046238990b9cf5bcde22a3fb3584ee5cf65fb2765f454ed428c7a0063da"
CLACK_COMMIT = "57e89b3a16d5c47e6a2cd3e1e2a8e2ab7b01f2c3"
BASEVIEW_COMMIT = "9a0b42c09d712777b2edb4c5e0cb6baf21e988f0"

ROOT_MANIFEST = """\
[workspace]
members = ["crates/*"]
resolver = "2"

[workspace.package]
version = "0.1.0"
edition = "2021"

[workspace.dependencies]
clack-plugin = { git = "https://github.com/prokopyl/clack.git" }
"""

CAVE_MANIFEST = """\
[package]
name = "cave"
version.workspace = true
edition.workspace = true

[lib]
crate-type = ["{crate_type}"]

[dependencies]
clack-plugin = {{ workspace = true }}
baseview = {{ git = "https://github.com/RustAudio/baseview.git" }}
"""

XTASK_MANIFEST = """\
[package]
name = "xtask"
version = "0.1.0"
edition = "2021"

[dependencies]
anyhow = "1"
"""

CARGO_LOCK = f"""\
# This file is automatically @generated by Cargo.
# It is not intended for manual editing.
version = 4

[[package]]
name = "anyhow"
version = "1.0.86"
source = "registry+https://github.com/rust-lang/crates.io-index"
checksum = "{ANYHOW_CHECKSUM}"

[[package]]
name = "baseview"
version = "0.1.0"
source = "git+https://github.com/RustAudio/baseview.git#{BASEVIEW_COMMIT}"

[[package]]
name = "cave"
version = "0.1.0"
dependencies = [
 "baseview",
 "clack-plugin",
]

[[package]]
name = "clack-plugin"
version = "0.1.0"
source = "git+https://github.com/prokopyl/clack.git#{CLACK_COMMIT}"

[[package]]
name = "xtask"
version = "0.1.0"
dependencies = [
 "anyhow",
]
"""


def write_workspace(
    root: Path,
    *,
    crate_type: str = "cdylib",
    lock: str | None = CARGO_LOCK,
) -> Path:
    """Write a ``cave`` plugin workspace with an ``xtask`` helper binary."""
    files = {
        "Cargo.toml": ROOT_MANIFEST,
        "crates/cave/Cargo.toml": CAVE_MANIFEST.format(crate_type=crate_type),
        "crates/cave/src/lib.rs": "mod gui;\nmod params;\n\npub fn entry() {}\n",
        "crates/cave/src/gui.rs": "pub fn open() {}\n",
        "crates/cave/src/params.rs": "pub const GAIN: f32 = 1.0;\n",
        "crates/xtask/Cargo.toml": XTASK_MANIFEST,
        "crates/xtask/src/main.rs": "fn main() {}\n",
        "README.md": "# cave\n",
    }
    if lock is not None:
        files["Cargo.lock"] = lock
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dedent(content), encoding="utf-8")
    return root


@pytest.fixture
def cave_workspace(tmp_path: Path) -> Path:
    return write_workspace(tmp_path / "workspace")


@pytest.fixture
def make_workspace(tmp_path: Path) -> Callable[..., Path]:
    """Factory for variants of the ``cave`` workspace under *tmp_path*."""

    def make(name: str = "workspace", **kwargs: Any) -> Path:
        return write_workspace(tmp_path / name, **kwargs)

    return make


@pytest.fixture
def cargo_lock() -> str:
    return CARGO_LOCK


@pytest.fixture
def anyhow_checksum() -> str:
    return ANYHOW_CHECKSUM


@pytest.fixture
def clack_commit() -> str:
    return CLACK_COMMIT


@pytest.fixture
def toolchain() -> InProcessToolchain:
    return InProcessToolchain()
