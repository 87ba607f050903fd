"""
Refusals: operations that cannot even be attempted.

A refusal aborts the whole operation and leaves no partial artifact. The
core raises PackRefusal; the command layer renders the envelope.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from . import TOOL_NAME

ENVELOPE_VERSION = "pack.v0"
REFUSAL_EXIT_CODE = 2


class RefusalCode(str, Enum):
    EMPTY = "E_EMPTY"
    IO = "E_IO"
    DUPLICATE = "E_DUPLICATE"
    BAD_PACK = "E_BAD_PACK"

    @property
    def message(self) -> str:
        return _MESSAGES[self]

    @property
    def next_command(self) -> str:
        return _NEXT_COMMANDS[self]


_MESSAGES: dict[RefusalCode, str] = {
    RefusalCode.EMPTY: "No artifacts provided to seal",
    RefusalCode.IO: "IO operation failed",
    RefusalCode.DUPLICATE: "Resolved member path collision",
    RefusalCode.BAD_PACK: "Invalid pack directory",
}

_NEXT_COMMANDS: dict[RefusalCode, str] = {
    RefusalCode.EMPTY: "Provide files/directories to seal",
    RefusalCode.IO: "Check paths/permissions",
    RefusalCode.DUPLICATE: "Rename inputs or adjust source layout",
    RefusalCode.BAD_PACK: f"Recreate pack via `{TOOL_NAME} seal`",
}


class PackRefusal(Exception):
    """Raised when seal/verify/diff cannot proceed."""

    def __init__(
        self,
        code: RefusalCode,
        reason: str | None = None,
        *,
        detail: dict[str, Any] | None = None,
        message: str | None = None,
    ):
        self.code = code
        self.reason = reason
        self.message = message or code.message
        self.detail: dict[str, Any] = dict(detail or {})
        if reason and "error" not in self.detail:
            self.detail["error"] = reason
        super().__init__(f"{code.value}: {reason or self.message}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "detail": self.detail,
            "next_command": self.code.next_command,
        }

    def to_envelope(self) -> dict[str, Any]:
        return {
            "version": ENVELOPE_VERSION,
            "outcome": "REFUSAL",
            "refusal": self.to_dict(),
        }
