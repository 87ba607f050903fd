"""Schema pack for lock.v0 lockfiles."""

from __future__ import annotations

from ._parse import check_version, load_json_object


class LockTypePack:
    version = "lock.v0"

    def validate(self, content: bytes) -> list[str]:
        value, error = load_json_object(content)
        if value is None:
            return [error or "unparseable"]
        error = check_version(value, self.version)
        return [error] if error else []
