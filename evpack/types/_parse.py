"""Shared parsing helpers for schema packs."""

from __future__ import annotations

import json
from typing import Any


def load_json_object(content: bytes) -> tuple[dict[str, Any] | None, str | None]:
    """Return (object, None) or (None, reason)."""
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError:
        return None, "content is not valid UTF-8"
    try:
        value = json.loads(text)
    except ValueError as e:
        return None, f"invalid JSON: {e}"
    if not isinstance(value, dict):
        return None, "top-level value must be an object"
    return value, None


def check_version(value: dict[str, Any], expected: str) -> str | None:
    version = value.get("version")
    if not isinstance(version, str):
        return 'missing "version" field'
    if version != expected:
        return f'expected version "{expected}", got "{version}"'
    return None
