"""
Canonical JSON encoding.

One value, one byte sequence: keys sorted at every level, array order kept,
no whitespace, UTF-8. The pack_id and every manifest comparison depend on it.
"""

from __future__ import annotations

import json
from typing import Any

from .hashing import hash_bytes


def canonical_bytes(value: Any) -> bytes:
    text = json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return text.encode("utf-8")


def canonical_hash(value: Any) -> str:
    return hash_bytes(canonical_bytes(value))
