"""
Schema pack for versioned report and artifact families.

Reports (rvl, shape, verify, compare) and artifacts (canon, assess) share a
shape check: a JSON object whose `version` belongs to the family.
"""

from __future__ import annotations

from typing import Iterable

from ._parse import load_json_object

REPORT_VERSIONS = ("rvl.v0", "shape.v0", "verify.v0", "compare.v0")
ARTIFACT_VERSIONS = ("canon.v0", "assess.v0")


class VersionedTypePack:
    def __init__(self, versions: Iterable[str]):
        self.versions = frozenset(versions)

    def validate(self, content: bytes) -> list[str]:
        value, error = load_json_object(content)
        if value is None:
            return [error or "unparseable"]
        version = value.get("version")
        if not isinstance(version, str):
            return ['missing "version" field']
        if version not in self.versions:
            return [f'unexpected version "{version}"']
        return []
