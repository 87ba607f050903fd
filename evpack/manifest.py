"""
Pack manifest model.

The pack_id is the hash of the manifest's own canonical encoding, taken
while pack_id is the empty string. Construction is explicit and two-step:

    draft = build_draft(...)      # pack_id == ""
    manifest = finalize(draft)    # pack_id == canonical_hash(draft)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterable

from .canonical import canonical_bytes, canonical_hash

MANIFEST_FILENAME = "manifest.json"
MANIFEST_VERSION = "pack.v0"
CREATED_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class ManifestError(ValueError):
    """Manifest document is structurally invalid."""


def format_created(value: datetime | str | None = None) -> str:
    """Render a creation time as `YYYY-MM-DDTHH:MM:SSZ` (UTC)."""
    if value is None:
        value = datetime.now(timezone.utc)
    if isinstance(value, str):
        value = parse_created(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(CREATED_FORMAT)


def parse_created(text: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC."""
    raw = text.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as e:
        raise ValueError(f"Invalid timestamp: {text!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Member:
    path: str
    bytes_hash: str
    member_type: str
    artifact_version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "bytes_hash": self.bytes_hash,
            "type": self.member_type,
            "artifact_version": self.artifact_version,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Member":
        if not isinstance(data, dict):
            raise ManifestError("member entry must be an object")
        path = data.get("path")
        bytes_hash = data.get("bytes_hash")
        member_type = data.get("type")
        artifact_version = data.get("artifact_version")
        if not isinstance(path, str):
            raise ManifestError("member.path must be a string")
        if not isinstance(bytes_hash, str):
            raise ManifestError(f"member.bytes_hash must be a string ({path})")
        if not isinstance(member_type, str):
            raise ManifestError(f"member.type must be a string ({path})")
        if artifact_version is not None and not isinstance(artifact_version, str):
            raise ManifestError(f"member.artifact_version must be a string or null ({path})")
        return cls(
            path=path,
            bytes_hash=bytes_hash,
            member_type=member_type,
            artifact_version=artifact_version,
        )


@dataclass(frozen=True)
class Manifest:
    pack_id: str
    created: str
    tool_version: str
    members: tuple[Member, ...] = field(default_factory=tuple)
    member_count: int = 0
    note: str | None = None
    version: str = MANIFEST_VERSION

    @property
    def is_draft(self) -> bool:
        return self.pack_id == ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "pack_id": self.pack_id,
            "created": self.created,
            "note": self.note,
            "tool_version": self.tool_version,
            "members": [m.to_dict() for m in self.members],
            "member_count": self.member_count,
        }

    def to_bytes(self) -> bytes:
        return canonical_bytes(self.to_dict())

    @classmethod
    def from_dict(cls, data: Any) -> "Manifest":
        if not isinstance(data, dict):
            raise ManifestError("manifest must be a JSON object")
        version = data.get("version")
        if version != MANIFEST_VERSION:
            raise ManifestError(f"Unsupported manifest version: {version!r}")

        pack_id = data.get("pack_id")
        created = data.get("created")
        tool_version = data.get("tool_version")
        note = data.get("note")
        raw_members = data.get("members")
        member_count = data.get("member_count")

        if not isinstance(pack_id, str):
            raise ManifestError("pack_id must be a string")
        if not isinstance(created, str):
            raise ManifestError("created must be a string")
        if not isinstance(tool_version, str):
            raise ManifestError("tool_version must be a string")
        if note is not None and not isinstance(note, str):
            raise ManifestError("note must be a string or null")
        if not isinstance(raw_members, list):
            raise ManifestError("members must be an array")
        if isinstance(member_count, bool) or not isinstance(member_count, int):
            raise ManifestError("member_count must be an integer")

        return cls(
            pack_id=pack_id,
            created=created,
            tool_version=tool_version,
            members=tuple(Member.from_dict(m) for m in raw_members),
            member_count=member_count,
            note=note,
            version=version,
        )


def build_draft(
    members: Iterable[Member],
    *,
    created: str,
    tool_version: str,
    note: str | None = None,
) -> Manifest:
    """Assemble a manifest with an empty pack_id and members sorted by path."""
    ordered = tuple(sorted(members, key=lambda m: m.path.encode("utf-8", "surrogateescape")))
    return Manifest(
        pack_id="",
        created=created,
        tool_version=tool_version,
        members=ordered,
        member_count=len(ordered),
        note=note,
    )


def compute_pack_id(manifest: dict[str, Any]) -> str:
    """Hash a manifest document with its pack_id held empty."""
    draft = dict(manifest)
    draft["pack_id"] = ""
    return canonical_hash(draft)


def finalize(draft: Manifest) -> Manifest:
    if not draft.is_draft:
        raise ValueError("finalize() expects a draft manifest with an empty pack_id")
    return replace(draft, pack_id=compute_pack_id(draft.to_dict()))
