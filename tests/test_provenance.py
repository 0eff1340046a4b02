import json
from pathlib import Path

import cbor2

from plugpack.provenance import BuildProvenance


def test_json_and_cbor_encode_the_same_record(tmp_path: Path) -> None:
    record = _record()

    json_path = record.write(tmp_path / "reports" / "build.json")
    cbor_path = record.write(tmp_path / "reports" / "build.cbor")

    assert json.loads(json_path.read_text(encoding="utf-8")) == cbor2.loads(cbor_path.read_bytes())


def test_cbor_encoding_is_canonical() -> None:
    first = BuildProvenance(package="cave", values={"b": "2", "a": "1"})
    second = BuildProvenance(package="cave", values={"a": "1", "b": "2"})

    assert first.to_cbor() == second.to_cbor()
    assert first.to_json() == second.to_json()


def test_differences_reports_changed_and_missing_keys() -> None:
    first = _record()
    second = BuildProvenance(
        package="cave",
        values={**first.values, "bundle_sha256": "f" * 64, "extra": "x"},
    )
    del second.values["profile"]

    assert first.differences(first) == {}
    assert first.differences(second) == {
        "bundle_sha256": ("a" * 64, "f" * 64),
        "extra": (None, "x"),
        "profile": ("release", None),
    }


def _record() -> BuildProvenance:
    return BuildProvenance(
        package="cave",
        values={
            "source_digest": "1" * 64,
            "lock_digest": "2" * 64,
            "dependency_key": "3" * 64,
            "profile": "release",
            "bundle_sha256": "a" * 64,
        },
    )
