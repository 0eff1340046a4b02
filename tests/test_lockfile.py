from pathlib import Path

import pytest

from plugpack.errors import LockMismatchError
from plugpack.lockfile import parse_lock, read_lock, verify_lock
from plugpack.source import resolve_source_closure
from plugpack.workspace import load_workspace


def test_parse_lock_reads_packages(cargo_lock: str, anyhow_checksum: str) -> None:
    lock = parse_lock(cargo_lock.encode())

    assert lock.version == 4
    assert lock.names == {"anyhow", "baseview", "cave", "clack-plugin", "xtask"}
    (anyhow,) = lock.find("anyhow")
    assert anyhow.checksum == anyhow_checksum
    assert anyhow.is_registry
    (cave,) = lock.find("cave", "0.1.0")
    assert cave.is_local
    assert cave.dependencies == ("baseview", "clack-plugin")
    assert {p.name for p in lock.third_party()} == {"anyhow", "baseview", "clack-plugin"}


def test_lock_digest_is_byte_identity(cargo_lock: str) -> None:
    first = parse_lock(cargo_lock.encode())
    same = parse_lock(cargo_lock.encode())
    reformatted = parse_lock(cargo_lock.replace("# It is not", "#  It is not").encode())

    assert first.digest() == same.digest()
    assert first.packages == reformatted.packages
    assert first.digest() != reformatted.digest()


def test_parse_lock_rejects_invalid_toml() -> None:
    with pytest.raises(LockMismatchError) as excinfo:
        parse_lock(b"[[package]\nname = ")

    assert excinfo.value.code == "E_LOCK_MISMATCH"


def test_parse_lock_rejects_empty_and_unsupported_versions(cargo_lock: str) -> None:
    with pytest.raises(LockMismatchError):
        parse_lock(b"version = 4\n")
    with pytest.raises(LockMismatchError) as excinfo:
        parse_lock(cargo_lock.replace("version = 4", "version = 99", 1).encode())

    assert "Unsupported" in str(excinfo.value)


def test_parse_lock_reads_legacy_metadata_checksums(anyhow_checksum: str) -> None:
    raw = (
        "[[package]]\n"
        'name = "anyhow"\n'
        'version = "1.0.86"\n'
        'source = "registry+https://github.com/rust-lang/crates.io-index"\n'
        "\n"
        "[metadata]\n"
        '"checksum anyhow 1.0.86 (registry+https://github.com/rust-lang/crates.io-index)" = '
        f'"{anyhow_checksum}"\n'
    )

    lock = parse_lock(raw.encode())

    assert lock.version is None
    assert lock.find("anyhow")[0].checksum == anyhow_checksum


def test_read_lock_missing_file(tmp_path: Path) -> None:
    with pytest.raises(LockMismatchError) as excinfo:
        read_lock(tmp_path / "Cargo.lock")

    assert "does not exist" in str(excinfo.value)


def test_verify_lock_accepts_consistent_workspace(cave_workspace: Path) -> None:
    workspace = load_workspace(resolve_source_closure(cave_workspace))

    verify_lock(read_lock(cave_workspace / "Cargo.lock"), workspace)


def test_verify_lock_rejects_stale_member_version(cave_workspace: Path, cargo_lock: str) -> None:
    workspace = load_workspace(resolve_source_closure(cave_workspace))
    stale = cargo_lock.replace(
        'name = "xtask"\nversion = "0.1.0"', 'name = "xtask"\nversion = "0.0.9"'
    )

    with pytest.raises(LockMismatchError) as excinfo:
        verify_lock(parse_lock(stale.encode()), workspace)

    assert "xtask 0.1.0" in str(excinfo.value)


def test_verify_lock_rejects_undeclared_dependency(cave_workspace: Path) -> None:
    manifest = cave_workspace / "crates" / "cave" / "Cargo.toml"
    contents = manifest.read_text(encoding="utf-8") + 'nih_plug = "0.1"\n'
    manifest.write_text(contents, encoding="utf-8")
    workspace = load_workspace(resolve_source_closure(cave_workspace))

    with pytest.raises(LockMismatchError) as excinfo:
        verify_lock(read_lock(cave_workspace / "Cargo.lock"), workspace)

    assert excinfo.value.context["missing"] == "nih_plug"
    assert excinfo.value.context["package"] == "cave"


def test_verify_lock_rejects_registry_package_without_checksum(
    cave_workspace: Path,
    cargo_lock: str,
    anyhow_checksum: str,
) -> None:
    workspace = load_workspace(resolve_source_closure(cave_workspace))
    unpinned = cargo_lock.replace(f'checksum = "{anyhow_checksum}"\n', "")

    with pytest.raises(LockMismatchError) as excinfo:
        verify_lock(parse_lock(unpinned.encode()), workspace)

    assert "checksum" in str(excinfo.value)


def test_verify_lock_rejects_git_source_without_commit(
    cave_workspace: Path,
    cargo_lock: str,
    clack_commit: str,
) -> None:
    workspace = load_workspace(resolve_source_closure(cave_workspace))
    unpinned = cargo_lock.replace(f"#{clack_commit}", "?branch=main")

    with pytest.raises(LockMismatchError) as excinfo:
        verify_lock(parse_lock(unpinned.encode()), workspace)

    assert excinfo.value.context["package"] == "clack-plugin"


def test_verify_lock_rejects_dangling_reference(cave_workspace: Path, cargo_lock: str) -> None:
    workspace = load_workspace(resolve_source_closure(cave_workspace))
    dangling = cargo_lock.replace(' "anyhow",\n]', ' "anyhow 2.0.0",\n]')

    with pytest.raises(LockMismatchError) as excinfo:
        verify_lock(parse_lock(dangling.encode()), workspace)

    assert "unknown package" in str(excinfo.value)
