import json
from pathlib import Path

from plugpack.bundle import expected_library_path
from plugpack.cli import main


def test_build_prints_bundle_path(cave_workspace: Path, tmp_path: Path, capsys) -> None:
    out = tmp_path / "out"

    code = main(_build_args(cave_workspace, tmp_path, "--log-json", str(tmp_path / "log.jsonl")))

    assert code == 0
    assert capsys.readouterr().out.strip() == str(out / "lib" / "clap" / "cave.clap")
    records = [
        json.loads(line)
        for line in (tmp_path / "log.jsonl").read_text(encoding="utf-8").splitlines()
    ]
    assert {record["stage"] for record in records} >= {"dependencies", "repackage"}


def test_build_failure_reports_stage_and_code(make_workspace, tmp_path: Path, capsys) -> None:
    workspace = make_workspace(crate_type="staticlib")

    code = main(_build_args(workspace, tmp_path, "--log-json", str(tmp_path / "log.jsonl")))

    assert code == 1
    err = capsys.readouterr().err
    assert err.startswith("plugpack: repackage failed [E_MISSING_ARTIFACT]: Could not find")
    assert "cdylib" in err
    assert (tmp_path / "log.jsonl").is_file()


def test_filesystem_failure_is_reported_with_stage(
    cave_workspace: Path,
    tmp_path: Path,
    capsys,
) -> None:
    (tmp_path / "out").write_text("not a directory\n", encoding="utf-8")

    code = main(_build_args(cave_workspace, tmp_path))

    assert code == 1
    assert capsys.readouterr().err.startswith("plugpack: repackage failed [E_VALIDATION]")


def test_unusable_cache_dir_is_reported(cave_workspace: Path, tmp_path: Path, capsys) -> None:
    (tmp_path / "cache").write_text("not a directory\n", encoding="utf-8")

    code = main(_build_args(cave_workspace, tmp_path))

    assert code == 1
    assert capsys.readouterr().err.startswith("plugpack: config failed [E_VALIDATION]")


def test_key_is_stable(cave_workspace: Path, tmp_path: Path, capsys) -> None:
    args = [
        "key",
        "--workspace",
        str(cave_workspace),
        "--cache-dir",
        str(tmp_path / "cache"),
        "--toolchain",
        "inprocess",
    ]

    assert main(args) == 0
    first = capsys.readouterr().out.strip()
    assert main(args) == 0
    second = capsys.readouterr().out.strip()

    assert first == second
    assert len(first) == 64


def test_locate(capsys) -> None:
    assert main(["locate", "--package", "cave", "--profile", "debug"]) == 0

    assert capsys.readouterr().out.strip() == str(expected_library_path("cave", "debug"))


def test_config_error_is_reported(cave_workspace: Path, tmp_path: Path, capsys) -> None:
    code = main(_build_args(cave_workspace, tmp_path, "--plugin-kind", "ladspa"))

    assert code == 1
    assert capsys.readouterr().err.startswith("plugpack: config failed [E_VALIDATION]")


def _build_args(workspace: Path, tmp_path: Path, *extra: str) -> list[str]:
    return [
        "build",
        "--workspace",
        str(workspace),
        "--out",
        str(tmp_path / "out"),
        "--cache-dir",
        str(tmp_path / "cache"),
        "--toolchain",
        "inprocess",
        *extra,
    ]
