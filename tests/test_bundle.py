import stat
from pathlib import Path

import pytest

from plugpack.bundle import (
    bundle_path,
    expected_library_path,
    repackage,
    shared_library_name,
    static_library_name,
)
from plugpack.errors import MissingArtifactError
from plugpack.models import CLAP, LV2, VST3, PluginFormat


@pytest.mark.parametrize(
    ("platform", "expected"),
    [
        ("linux", "target/release/libcave.so"),
        ("darwin", "target/release/libcave.dylib"),
        ("win32", "target/release/cave.dll"),
    ],
)
def test_expected_library_path_follows_platform_conventions(platform, expected) -> None:
    assert expected_library_path("cave", platform=platform).as_posix() == expected


def test_library_names_use_crate_file_stem() -> None:
    assert shared_library_name("my-plugin", "linux") == "libmy_plugin.so"
    assert static_library_name("my-plugin", "linux") == "libmy_plugin.a"
    assert static_library_name("my-plugin", "win32") == "my_plugin.lib"
    assert expected_library_path("cave", "debug", "linux").as_posix() == "target/debug/libcave.so"


def test_bundle_path_layout(tmp_path: Path) -> None:
    assert bundle_path("cave", tmp_path) == tmp_path / "lib" / "clap" / "cave.clap"
    assert bundle_path("cave", tmp_path, VST3) == tmp_path / "lib" / "vst3" / "cave.vst3"
    assert bundle_path("cave", tmp_path, LV2) == tmp_path / "lib" / "lv2" / "cave.so"


def test_repackage_copies_bytes_and_mode(tmp_path: Path) -> None:
    library = _library(tmp_path / "target" / "release" / "libcave.so")

    bundle = repackage(library, "cave", tmp_path / "out")

    assert bundle.path == tmp_path / "out" / "lib" / "clap" / "cave.clap"
    assert bundle.path.read_bytes() == library.read_bytes()
    assert stat.S_IMODE(bundle.path.stat().st_mode) == 0o755
    assert bundle.size == len(library.read_bytes())
    assert bundle.plugin_format == CLAP
    assert [path.name for path in bundle.path.parent.iterdir()] == ["cave.clap"]


def test_repackage_overwrites_previous_bundle(tmp_path: Path) -> None:
    old = _library(tmp_path / "old" / "libcave.so", payload=b"\x7fELF old")
    new = _library(tmp_path / "new" / "libcave.so", payload=b"\x7fELF new")

    repackage(old, "cave", tmp_path / "out")
    first = repackage(new, "cave", tmp_path / "out")
    second = repackage(new, "cave", tmp_path / "out")

    assert first.path.read_bytes() == b"\x7fELF new"
    assert first.sha256 == second.sha256
    assert sorted(p.name for p in (tmp_path / "out").rglob("*") if p.is_file()) == ["cave.clap"]


def test_repackage_custom_format(tmp_path: Path) -> None:
    library = _library(tmp_path / "libcave.so")

    ladspa = PluginFormat("ladspa", "so")

    bundle = repackage(library, "cave", tmp_path / "out", plugin_format=ladspa)

    assert bundle.path == tmp_path / "out" / "lib" / "ladspa" / "cave.so"


def test_missing_library_writes_nothing(tmp_path: Path) -> None:
    missing = tmp_path / "target" / "release" / "libcave.so"

    with pytest.raises(MissingArtifactError) as excinfo:
        repackage(missing, "cave", tmp_path / "out")

    assert str(missing) in excinfo.value.message
    assert excinfo.value.message.startswith("Could not find")
    assert "cdylib" in (excinfo.value.hint or "")
    assert excinfo.value.context["expected_path"] == str(missing)
    assert not (tmp_path / "out").exists()


def _library(path: Path, payload: bytes = b"\x7fELF cdylib") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(payload)
    path.chmod(0o755)
    return path
