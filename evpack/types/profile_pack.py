"""Schema pack for YAML profiles (`schema_version` + `profile_id`)."""

from __future__ import annotations

import yaml


class ProfileTypePack:
    def validate(self, content: bytes) -> list[str]:
        try:
            value = yaml.safe_load(content.decode("utf-8"))
        except UnicodeDecodeError:
            return ["content is not valid UTF-8"]
        except (yaml.YAMLError, ValueError) as e:
            return [f"invalid YAML: {e}"]
        if not isinstance(value, dict):
            return ["top-level value must be a mapping"]

        errors: list[str] = []
        for key in ("schema_version", "profile_id"):
            raw = value.get(key)
            if raw is None:
                errors.append(f'missing "{key}" field')
            elif not isinstance(raw, (str, int, float)) or isinstance(raw, bool):
                errors.append(f'"{key}" must be a scalar')
        return errors
