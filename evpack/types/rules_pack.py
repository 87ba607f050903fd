"""Schema pack for verify.rules.v0 rule sets."""

from __future__ import annotations

from ._parse import check_version, load_json_object


class RulesTypePack:
    version = "verify.rules.v0"

    def validate(self, content: bytes) -> list[str]:
        value, error = load_json_object(content)
        if value is None:
            return [error or "unparseable"]
        errors: list[str] = []
        error = check_version(value, self.version)
        if error:
            errors.append(error)
        if not isinstance(value.get("rules"), list):
            errors.append('missing or non-array "rules" field')
        return errors
