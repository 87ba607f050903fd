"""Schema pack for nested pack.v0 manifests sealed as members."""

from __future__ import annotations

from ._parse import check_version, load_json_object


class PackTypePack:
    version = "pack.v0"

    def validate(self, content: bytes) -> list[str]:
        value, error = load_json_object(content)
        if value is None:
            return [error or "unparseable"]
        errors: list[str] = []
        error = check_version(value, self.version)
        if error:
            errors.append(error)
        if not isinstance(value.get("pack_id"), str):
            errors.append('missing "pack_id" field')
        if not isinstance(value.get("members"), list):
            errors.append('missing or non-array "members" field')
        return errors
