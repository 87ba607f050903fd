"""Pytest configuration and fixtures."""

import json
from pathlib import Path

import pytest

from evpack.seal import seal

FIXED_CREATED = "2026-01-15T12:00:00Z"


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep witness records and config lookups inside the test's tmp dir."""
    witness_path = tmp_path / "witness" / "witness.jsonl"
    monkeypatch.setenv("EPISTEMIC_WITNESS", str(witness_path))
    monkeypatch.delenv("EVPACK_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    return witness_path


@pytest.fixture
def inputs_dir(tmp_path: Path) -> Path:
    """Two typed JSON inputs: a lockfile and an rvl report."""
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.json").write_text(json.dumps({"version": "lock.v0", "rows": 10}), encoding="utf-8")
    (src / "b.json").write_text(json.dumps({"version": "rvl.v0", "ok": True}), encoding="utf-8")
    return src


@pytest.fixture
def sealed_pack(tmp_path: Path, inputs_dir: Path) -> Path:
    out = tmp_path / "out" / "pack1"
    seal([inputs_dir / "b.json", inputs_dir / "a.json"], out, created=FIXED_CREATED)
    return out
