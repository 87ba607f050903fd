"""
Deterministic comparison of two pack manifests.

Members are matched by path. A member present in both with a different
bytes_hash is `changed`; the report lists entries sorted by path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .manifest import Manifest
from .verify import load_manifest_document

DIFF_REPORT_VERSION = "pack.diff.v0"


@dataclass(frozen=True)
class DiffEntry:
    kind: str
    path: str
    a_hash: str | None = None
    b_hash: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"kind": self.kind, "path": self.path}
        if self.a_hash is not None:
            out["a_hash"] = self.a_hash
        if self.b_hash is not None:
            out["b_hash"] = self.b_hash
        return out


@dataclass
class DiffReport:
    a_pack_id: str
    b_pack_id: str
    added: list[DiffEntry] = field(default_factory=list)
    removed: list[DiffEntry] = field(default_factory=list)
    changed: list[DiffEntry] = field(default_factory=list)
    unchanged: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.changed)

    @property
    def outcome(self) -> str:
        return "CHANGES" if self.has_changes else "NO_CHANGES"

    @property
    def exit_code(self) -> int:
        return 1 if self.has_changes else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": DIFF_REPORT_VERSION,
            "outcome": self.outcome,
            "a_pack_id": self.a_pack_id,
            "b_pack_id": self.b_pack_id,
            "added": [e.to_dict() for e in self.added],
            "removed": [e.to_dict() for e in self.removed],
            "changed": [e.to_dict() for e in self.changed],
            "unchanged": self.unchanged,
        }


def _key(path: str) -> bytes:
    return path.encode("utf-8", "surrogateescape")


def compare_manifests(a: Manifest, b: Manifest) -> DiffReport:
    a_members = {m.path: m for m in a.members}
    b_members = {m.path: m for m in b.members}
    report = DiffReport(a_pack_id=a.pack_id, b_pack_id=b.pack_id)

    for path in sorted(a_members.keys() | b_members.keys(), key=_key):
        left = a_members.get(path)
        right = b_members.get(path)
        if left is None:
            report.added.append(DiffEntry("added", path, b_hash=right.bytes_hash))
        elif right is None:
            report.removed.append(DiffEntry("removed", path, a_hash=left.bytes_hash))
        elif left.bytes_hash != right.bytes_hash:
            report.changed.append(DiffEntry("changed", path, a_hash=left.bytes_hash, b_hash=right.bytes_hash))
        else:
            report.unchanged += 1
    return report


def load_manifest(pack_dir: Path | str) -> Manifest:
    """Parse a pack's manifest. Raises PackRefusal(E_BAD_PACK)."""
    _, manifest = load_manifest_document(Path(pack_dir))
    return manifest


def diff_packs(a_dir: Path | str, b_dir: Path | str) -> DiffReport:
    return compare_manifests(load_manifest(a_dir), load_manifest(b_dir))
