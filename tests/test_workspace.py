from pathlib import Path

import pytest

from plugpack.errors import ValidationError
from plugpack.lockfile import read_lock, verify_lock
from plugpack.source import resolve_source_closure
from plugpack.workspace import load_workspace


def test_workspace_members_are_discovered_from_globs(cave_workspace: Path) -> None:
    workspace = load_workspace(resolve_source_closure(cave_workspace))

    assert workspace.names == ("cave", "xtask")
    assert workspace.virtual is True


def test_member_inherits_workspace_version_and_records_crate_types(cave_workspace: Path) -> None:
    workspace = load_workspace(resolve_source_closure(cave_workspace))

    cave = workspace.member("cave")
    assert cave is not None
    assert cave.version == "0.1.0"
    assert cave.crate_types == ("cdylib",)
    assert cave.produces("cdylib")
    assert cave.crate_name == "cave"
    assert cave.manifest_path == "crates/cave/Cargo.toml"
    assert cave.dependencies == ("baseview", "clack-plugin")

    xtask = workspace.member("xtask")
    assert xtask is not None
    assert xtask.crate_types == ()
    assert xtask.target_roots == ("crates/xtask/src/main.rs",)


def test_unknown_member_is_none(cave_workspace: Path) -> None:
    workspace = load_workspace(resolve_source_closure(cave_workspace))

    assert workspace.member("reverb") is None


def test_single_package_root(tmp_path: Path) -> None:
    root = tmp_path / "single"
    (root / "src").mkdir(parents=True)
    (root / "Cargo.toml").write_text(
        "\n".join(
            [
                "[package]",
                'name = "my-plugin"',
                'version = "2.0.0"',
                'build = "build/main.rs"',
                "",
                "[lib]",
                'crate-type = ["cdylib", "rlib"]',
                "",
                "[dependencies]",
                'rand_core = { package = "rand-core", version = "0.6" }',
                "",
                "[target.'cfg(unix)'.dependencies]",
                'libc = "0.2"',
                "",
                "[dev-dependencies]",
                'approx = "0.5"',
                "",
            ]
        ),
        encoding="utf-8",
    )
    (root / "src" / "lib.rs").write_text("", encoding="utf-8")
    (root / "tests").mkdir()
    (root / "tests" / "smoke.rs").write_text("", encoding="utf-8")
    (root / "tests" / "common").mkdir()
    (root / "tests" / "common" / "mod.rs").write_text("", encoding="utf-8")

    workspace = load_workspace(resolve_source_closure(root))

    assert workspace.virtual is False
    (member,) = workspace.members
    assert member.name == "my-plugin"
    assert member.crate_name == "my_plugin"
    assert member.crate_types == ("cdylib", "rlib")
    assert member.dependencies == ("approx", "libc", "rand-core")
    assert member.target_roots == ("build/main.rs", "src/lib.rs", "tests/smoke.rs")


def test_excluded_members_are_skipped(cave_workspace: Path) -> None:
    manifest = cave_workspace / "Cargo.toml"
    manifest.write_text(
        manifest.read_text(encoding="utf-8").replace(
            'members = ["crates/*"]',
            'members = ["crates/*"]\nexclude = ["crates/xtask"]',
        ),
        encoding="utf-8",
    )

    workspace = load_workspace(resolve_source_closure(cave_workspace))

    assert workspace.names == ("cave",)


def test_missing_root_manifest_is_validation_error(tmp_path: Path) -> None:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "lib.rs").write_text("", encoding="utf-8")

    with pytest.raises(ValidationError) as excinfo:
        load_workspace(resolve_source_closure(tmp_path))

    assert excinfo.value.context["path"] == "Cargo.toml"


def test_invalid_manifest_is_validation_error(tmp_path: Path) -> None:
    (tmp_path / "Cargo.toml").write_text("[package\nname = 1\n", encoding="utf-8")

    with pytest.raises(ValidationError) as excinfo:
        load_workspace(resolve_source_closure(tmp_path))

    assert "not valid TOML" in str(excinfo.value)


def test_single_star_glob_does_not_match_nested_crates(cave_workspace: Path) -> None:
    _write_manifest(cave_workspace / "crates" / "cave" / "fuzz", "cave-fuzz")

    workspace = load_workspace(resolve_source_closure(cave_workspace))

    assert workspace.names == ("cave", "xtask")
    verify_lock(read_lock(cave_workspace / "Cargo.lock"), workspace)


def test_double_star_glob_matches_nested_crates(cave_workspace: Path) -> None:
    _write_manifest(cave_workspace / "crates" / "cave" / "fuzz", "cave-fuzz")
    _set_members(cave_workspace, 'members = ["crates/**"]')

    workspace = load_workspace(resolve_source_closure(cave_workspace))

    assert workspace.names == ("cave", "cave-fuzz", "xtask")


def test_exclude_covers_directories_below_it(cave_workspace: Path) -> None:
    _write_manifest(cave_workspace / "crates" / "cave" / "fuzz", "cave-fuzz")
    _set_members(cave_workspace, 'members = ["crates/**"]\nexclude = ["crates/cave"]')

    workspace = load_workspace(resolve_source_closure(cave_workspace))

    assert workspace.names == ("xtask",)


def _write_manifest(directory: Path, name: str) -> None:
    (directory / "src").mkdir(parents=True)
    (directory / "src" / "main.rs").write_text("fn main() {}\n", encoding="utf-8")
    (directory / "Cargo.toml").write_text(
        f'[package]\nname = "{name}"\nversion = "0.0.0"\nedition = "2021"\n',
        encoding="utf-8",
    )


def _set_members(root: Path, members: str) -> None:
    manifest = root / "Cargo.toml"
    manifest.write_text(
        manifest.read_text(encoding="utf-8").replace('members = ["crates/*"]', members),
        encoding="utf-8",
    )
