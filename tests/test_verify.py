"""Verify pipeline: round trip, tamper detection, closed set, refusals."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from evpack.hashing import hash_file as real_hash_file
from evpack.manifest import compute_pack_id
from evpack.outcome import FindingCode, SchemaOutcome, VerifyOutcome
from evpack.refusal import RefusalCode
from evpack.seal import seal
from evpack.verify import verify_pack

from conftest import FIXED_CREATED


def _load(pack_dir: Path) -> dict:
    return json.loads((pack_dir / "manifest.json").read_text(encoding="utf-8"))


def _rewrite(pack_dir: Path, data: dict, *, rehash: bool = True) -> None:
    if rehash:
        data["pack_id"] = compute_pack_id(data)
    (pack_dir / "manifest.json").write_text(json.dumps(data, indent=2), encoding="utf-8")


def _codes(report) -> list[tuple[str, str | None]]:
    return [(f.code.value, f.path) for f in report.findings]


def test_fresh_pack_verifies_ok(sealed_pack: Path) -> None:
    report = verify_pack(sealed_pack)

    assert report.outcome is VerifyOutcome.OK
    assert report.exit_code == 0
    assert report.findings == []
    assert report.pack_id == _load(sealed_pack)["pack_id"]
    assert report.checks.to_dict() == {
        "manifest_parse": True,
        "member_count": True,
        "member_paths": True,
        "member_hashes": True,
        "extra_members": True,
        "pack_id": True,
        "schema_validation": "pass",
    }


def test_report_dict_shape(sealed_pack: Path) -> None:
    data = verify_pack(sealed_pack).to_dict()
    assert data["version"] == "pack.verify.v0"
    assert data["outcome"] == "OK"
    assert data["invalid"] == []
    assert data["refusal"] is None
    assert set(data) == {"version", "outcome", "pack_id", "checks", "invalid", "refusal"}


def test_deleted_member_is_missing(sealed_pack: Path) -> None:
    (sealed_pack / "b.json").unlink()

    report = verify_pack(sealed_pack)

    assert report.outcome is VerifyOutcome.INVALID
    assert report.exit_code == 1
    assert report.to_dict()["invalid"] == [{"code": "MISSING_MEMBER", "path": "b.json"}]
    assert report.checks.member_hashes is False
    assert report.checks.pack_id is True


def test_flipped_byte_is_single_hash_mismatch(sealed_pack: Path) -> None:
    target = sealed_pack / "a.json"
    original = target.read_bytes()
    target.write_bytes(original.replace(b"10", b"11"))

    report = verify_pack(sealed_pack)

    assert _codes(report) == [("HASH_MISMATCH", "a.json")]
    finding = report.findings[0]
    assert finding.expected == _load(sealed_pack)["members"][0]["bytes_hash"]
    assert finding.actual is not None and finding.actual != finding.expected
    checks = report.checks.to_dict()
    assert checks["member_hashes"] is False
    assert all(checks[k] is True for k in ("member_count", "member_paths", "extra_members", "pack_id"))


def test_edited_note_is_pack_id_mismatch_only(sealed_pack: Path) -> None:
    data = _load(sealed_pack)
    data["note"] = "edited after sealing"
    _rewrite(sealed_pack, data, rehash=False)

    report = verify_pack(sealed_pack)

    assert [f.code for f in report.findings] == [FindingCode.PACK_ID_MISMATCH]
    assert report.findings[0].expected == data["pack_id"]
    assert report.findings[0].actual == compute_pack_id(data)
    assert report.checks.pack_id is False
    assert report.checks.member_hashes is True


def test_extra_file_is_reported(sealed_pack: Path) -> None:
    (sealed_pack / "extra.txt").write_text("sneaky", encoding="utf-8")
    report = verify_pack(sealed_pack)
    assert _codes(report) == [("EXTRA_MEMBER", "extra.txt")]
    assert report.checks.extra_members is False


def test_nested_extra_file_is_reported(sealed_pack: Path) -> None:
    (sealed_pack / "sub" / "deeper").mkdir(parents=True)
    (sealed_pack / "sub" / "deeper" / "x.bin").write_bytes(b"\x00")
    report = verify_pack(sealed_pack)
    assert _codes(report) == [("EXTRA_MEMBER", "sub/deeper/x.bin")]


def test_empty_directory_is_not_extra(sealed_pack: Path) -> None:
    (sealed_pack / "empty").mkdir()
    assert verify_pack(sealed_pack).outcome is VerifyOutcome.OK


def test_symlinked_member_is_non_regular(sealed_pack: Path, tmp_path: Path) -> None:
    outside = tmp_path / "outside.json"
    outside.write_bytes((sealed_pack / "b.json").read_bytes())
    (sealed_pack / "b.json").unlink()
    (sealed_pack / "b.json").symlink_to(outside)

    report = verify_pack(sealed_pack)
    assert _codes(report) == [("NON_REGULAR_MEMBER", "b.json")]


def test_directory_in_place_of_member_is_non_regular(sealed_pack: Path) -> None:
    (sealed_pack / "b.json").unlink()
    (sealed_pack / "b.json").mkdir()
    report = verify_pack(sealed_pack)
    assert _codes(report) == [("NON_REGULAR_MEMBER", "b.json")]


def test_all_checks_run_and_findings_are_ordered(sealed_pack: Path) -> None:
    (sealed_pack / "b.json").unlink()
    (sealed_pack / "a.json").unlink()
    (sealed_pack / "zz.txt").write_text("z", encoding="utf-8")
    (sealed_pack / "aa.txt").write_text("a", encoding="utf-8")
    data = _load(sealed_pack)
    data["note"] = "x"
    _rewrite(sealed_pack, data, rehash=False)

    report = verify_pack(sealed_pack)

    assert _codes(report) == [
        ("MISSING_MEMBER", "a.json"),
        ("MISSING_MEMBER", "b.json"),
        ("EXTRA_MEMBER", "aa.txt"),
        ("EXTRA_MEMBER", "zz.txt"),
        ("PACK_ID_MISMATCH", "manifest.json"),
    ]
    # Schema checks only run on members present on disk.
    assert report.checks.schema_validation is SchemaOutcome.SKIPPED


def test_member_count_mismatch(sealed_pack: Path) -> None:
    data = _load(sealed_pack)
    data["member_count"] = 5
    _rewrite(sealed_pack, data)

    report = verify_pack(sealed_pack)

    assert report.to_dict()["invalid"] == [
        {"code": "MEMBER_COUNT_MISMATCH", "path": "manifest.json", "expected": "5", "actual": "2"}
    ]
    assert report.checks.member_count is False


def test_duplicate_member_path(sealed_pack: Path) -> None:
    data = _load(sealed_pack)
    data["members"].append(dict(data["members"][0]))
    data["member_count"] = 3
    _rewrite(sealed_pack, data)

    report = verify_pack(sealed_pack)
    assert _codes(report) == [("DUPLICATE_MEMBER_PATH", "a.json")]
    assert report.checks.member_paths is False


@pytest.mark.parametrize("bad_path", ["../escape.json", "/abs.json", "dir//x.json"])
def test_unsafe_member_path(sealed_pack: Path, bad_path: str) -> None:
    data = _load(sealed_pack)
    data["members"].append({**data["members"][0], "path": bad_path})
    data["member_count"] = 3
    _rewrite(sealed_pack, data)

    report = verify_pack(sealed_pack)
    assert _codes(report) == [("UNSAFE_MEMBER_PATH", bad_path)]


def test_reserved_member_path(sealed_pack: Path) -> None:
    data = _load(sealed_pack)
    data["members"].append({**data["members"][0], "path": "manifest.json"})
    data["member_count"] = 3
    _rewrite(sealed_pack, data)

    report = verify_pack(sealed_pack)
    assert _codes(report) == [("RESERVED_MEMBER_PATH", "manifest.json")]


def test_schema_violation(tmp_path: Path) -> None:
    rules = tmp_path / "rules.json"
    rules.write_text(json.dumps({"version": "verify.rules.v0"}), encoding="utf-8")
    out = tmp_path / "pack"
    seal([rules], out, created=FIXED_CREATED)

    report = verify_pack(out)

    assert report.outcome is VerifyOutcome.INVALID
    assert report.checks.schema_validation is SchemaOutcome.FAIL
    assert report.to_dict()["invalid"] == [
        {
            "code": "SCHEMA_VIOLATION",
            "path": "rules.json",
            "expected": "valid verify.rules.v0 schema",
            "actual": 'missing or non-array "rules" field',
        }
    ]


def test_schema_skipped_without_known_types(tmp_path: Path) -> None:
    f = tmp_path / "notes.txt"
    f.write_text("plain text", encoding="utf-8")
    out = tmp_path / "pack"
    seal([f], out, created=FIXED_CREATED)

    report = verify_pack(out)
    assert report.outcome is VerifyOutcome.OK
    assert report.checks.schema_validation is SchemaOutcome.SKIPPED


def test_custom_schema_lookup(sealed_pack: Path) -> None:
    report = verify_pack(sealed_pack, lookup_schema=lambda member: None)
    assert report.checks.schema_validation is SchemaOutcome.SKIPPED
    assert report.outcome is VerifyOutcome.OK


def test_missing_manifest_is_refusal(sealed_pack: Path) -> None:
    (sealed_pack / "manifest.json").unlink()
    report = verify_pack(sealed_pack)
    assert report.outcome is VerifyOutcome.REFUSAL
    assert report.exit_code == 2
    assert report.refusal.code is RefusalCode.BAD_PACK
    assert report.to_dict()["refusal"] == {"code": "E_BAD_PACK", "message": "Invalid pack directory"}
    assert report.to_dict()["pack_id"] is None


@pytest.mark.parametrize(
    "content",
    [b"", b"{not json", b"\xff\xfe", b"[]", b'{"version": "pack.v1"}', b'{"version": "pack.v0", "pack_id": NaN}'],
)
def test_unparseable_manifest_is_refusal(sealed_pack: Path, content: bytes) -> None:
    (sealed_pack / "b.json").unlink()
    (sealed_pack / "manifest.json").write_bytes(content)
    report = verify_pack(sealed_pack)
    assert report.outcome is VerifyOutcome.REFUSAL
    assert report.refusal.code is RefusalCode.BAD_PACK
    assert report.findings == []


@pytest.mark.parametrize(
    "replacement",
    ['"note": "\\ud800"', '"note": null, "x": 1e999', '"note": null, "x": -1e400'],
)
def test_unencodable_manifest_is_refusal(sealed_pack: Path, replacement: str) -> None:
    data = _load(sealed_pack)
    data["note"] = None
    text = json.dumps(data, indent=2)
    assert '"note": null' in text
    (sealed_pack / "manifest.json").write_text(text.replace('"note": null', replacement, 1), encoding="utf-8")

    report = verify_pack(sealed_pack)
    assert report.outcome is VerifyOutcome.REFUSAL
    assert report.exit_code == 2
    assert report.refusal.code is RefusalCode.BAD_PACK
    assert report.findings == []


def test_missing_pack_dir_is_refusal(tmp_path: Path) -> None:
    report = verify_pack(tmp_path / "nowhere")
    assert report.outcome is VerifyOutcome.REFUSAL
    assert report.refusal.code is RefusalCode.BAD_PACK


def test_verify_does_not_write(sealed_pack: Path) -> None:
    (sealed_pack / "extra.txt").write_text("x", encoding="utf-8")
    before = {p: (p.stat().st_mtime_ns, p.read_bytes()) for p in sealed_pack.rglob("*") if p.is_file()}
    verify_pack(sealed_pack)
    after = {p: (p.stat().st_mtime_ns, p.read_bytes()) for p in sealed_pack.rglob("*") if p.is_file()}
    assert before == after


def test_directory_pack_round_trip(tmp_path: Path) -> None:
    root = tmp_path / "bundle"
    (root / "reports").mkdir(parents=True)
    (root / "reports" / "shape.json").write_text(json.dumps({"version": "shape.v0"}), encoding="utf-8")
    (root / "nested.pack.json").write_text(
        json.dumps({"version": "pack.v0", "pack_id": "sha256:x", "members": []}), encoding="utf-8"
    )
    (root / "profile.yaml").write_text("schema_version: 2\nprofile_id: close\n", encoding="utf-8")
    out = tmp_path / "sealed"
    seal([root], out, created=FIXED_CREATED, workers=4)

    report = verify_pack(out)
    assert report.outcome is VerifyOutcome.OK
    assert report.checks.schema_validation is SchemaOutcome.PASS


def _fail_listing(monkeypatch: pytest.MonkeyPatch, name: str) -> None:
    real_scandir = os.scandir

    def scandir(path):
        if Path(path).name == name:
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", scandir)


def test_unreadable_member_is_hash_mismatch_and_checks_continue(
    sealed_pack: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def hash_file(path: Path) -> str:
        if path.name == "a.json":
            raise PermissionError(13, "Permission denied", str(path))
        return real_hash_file(path)

    monkeypatch.setattr("evpack.verify.hash_file", hash_file)
    (sealed_pack / "extra.txt").write_text("x", encoding="utf-8")

    report = verify_pack(sealed_pack)
    assert report.outcome is VerifyOutcome.INVALID
    assert report.refusal is None
    assert _codes(report) == [("HASH_MISMATCH", "a.json"), ("EXTRA_MEMBER", "extra.txt")]
    mismatch = report.findings[0]
    assert mismatch.expected.startswith("sha256:")
    assert mismatch.actual is None
    assert report.checks.pack_id is True


@pytest.mark.skipif(not hasattr(os, "geteuid") or os.geteuid() == 0, reason="root ignores file modes")
def test_chmod_zero_member_is_finding_not_refusal(sealed_pack: Path) -> None:
    member = sealed_pack / "a.json"
    member.chmod(0)
    try:
        report = verify_pack(sealed_pack)
    finally:
        member.chmod(0o644)
    assert report.outcome is VerifyOutcome.INVALID
    assert report.exit_code == 1
    assert _codes(report) == [("HASH_MISMATCH", "a.json")]


def test_unlistable_directory_members_are_still_checked(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    root = tmp_path / "bundle"
    root.mkdir()
    (root / "x.txt").write_text("kept", encoding="utf-8")
    (root / "y.txt").write_text("plain", encoding="utf-8")
    out = tmp_path / "sealed"
    seal([root], out, created=FIXED_CREATED)
    (out / "bundle" / "y.txt").write_text("changed", encoding="utf-8")

    _fail_listing(monkeypatch, "bundle")
    report = verify_pack(out)
    assert report.outcome is VerifyOutcome.INVALID
    assert _codes(report) == [("HASH_MISMATCH", "bundle/y.txt")]
    assert report.checks.extra_members is True


def test_unlistable_undeclared_directory_is_extra(sealed_pack: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (sealed_pack / "junk").mkdir()
    (sealed_pack / "junk" / "hidden.bin").write_bytes(b"\x00")

    _fail_listing(monkeypatch, "junk")
    report = verify_pack(sealed_pack)
    assert report.outcome is VerifyOutcome.INVALID
    assert _codes(report) == [("EXTRA_MEMBER", "junk")]
    assert report.checks.member_hashes is True
