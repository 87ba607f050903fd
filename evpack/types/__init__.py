"""
Member schema packs.

Schema packs validate member content for artifact versions that have a local
schema. Lookup is by artifact version first, then by member type; anything
unregistered has no schema and is skipped by verify.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..manifest import Member


class SchemaPack(Protocol):
    def validate(self, content: bytes) -> list[str]:
        ...


from .lock_pack import LockTypePack
from .pack_pack import PackTypePack
from .profile_pack import ProfileTypePack
from .report_pack import ARTIFACT_VERSIONS, REPORT_VERSIONS, VersionedTypePack
from .rules_pack import RulesTypePack


SCHEMA_PACKS: dict[str, SchemaPack] = {
    "lock.v0": LockTypePack(),
    **{v: VersionedTypePack(REPORT_VERSIONS) for v in REPORT_VERSIONS},
    **{v: VersionedTypePack(ARTIFACT_VERSIONS) for v in ARTIFACT_VERSIONS},
    "verify.rules.v0": RulesTypePack(),
    "pack.v0": PackTypePack(),
}

# Member types without an artifact version that still have a schema.
TYPE_SCHEMA_PACKS: dict[str, SchemaPack] = {
    "profile": ProfileTypePack(),
}


def get_schema_pack(artifact_version: str | None, member_type: str | None = None) -> SchemaPack | None:
    if artifact_version is not None:
        return SCHEMA_PACKS.get(artifact_version)
    if member_type is not None:
        return TYPE_SCHEMA_PACKS.get(member_type)
    return None


def lookup_schema(member: "Member") -> SchemaPack | None:
    """Schema for a manifest member, or None when none is registered."""
    return get_schema_pack(member.artifact_version, member.member_type)


__all__ = [
    "SchemaPack",
    "SCHEMA_PACKS",
    "TYPE_SCHEMA_PACKS",
    "get_schema_pack",
    "lookup_schema",
]
