"""
Witness ledger.

Append-only JSON Lines record of seal/verify/diff outcomes, shared with other
tools of the same family (records carry a `tool` field). Writing a witness
is best-effort: a failure is logged and never changes a command's result.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from . import TOOL_NAME

logger = logging.getLogger(__name__)

WITNESS_VERSION = "witness.v0"
WITNESS_ENV = "EPISTEMIC_WITNESS"


def witness_ledger_path() -> Path:
    """`$EPISTEMIC_WITNESS`, else `~/.epistemic/witness.jsonl`."""
    env_path = os.environ.get(WITNESS_ENV)
    if env_path:
        return Path(env_path)
    return Path.home() / ".epistemic" / "witness.jsonl"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class WitnessRecord:
    command: str
    outcome: str
    pack_id: str | None = None
    timestamp: str = field(default_factory=_utc_timestamp)
    tool: str = TOOL_NAME
    version: str = WITNESS_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "tool": self.tool,
            "command": self.command,
            "outcome": self.outcome,
            "pack_id": self.pack_id,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WitnessRecord":
        return cls(
            command=str(data["command"]),
            outcome=str(data["outcome"]),
            pack_id=data.get("pack_id"),
            timestamp=str(data["timestamp"]),
            tool=str(data.get("tool", "")),
            version=str(data.get("version", WITNESS_VERSION)),
        )

    def to_human(self) -> str:
        return f"{self.timestamp} {self.command} {self.outcome} {self.pack_id or '-'}"


class WitnessLedger:
    """Append-only witness ledger for one tool.

    Other tools' records and malformed lines are skipped on read.
    """

    def __init__(self, path: Path | None = None, *, tool: str = TOOL_NAME):
        self.path = path if path is not None else witness_ledger_path()
        self.tool = tool

    def _ensure_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, record: WitnessRecord) -> None:
        self._ensure_dir()
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record.to_dict(), separators=(",", ":")) + "\n")

    def iter_records(self) -> Iterator[WitnessRecord]:
        if not self.path.exists():
            return
        with self.path.open("r", encoding="utf-8", errors="replace") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                    record = WitnessRecord.from_dict(data)
                except (ValueError, KeyError, TypeError, AttributeError):
                    continue
                if record.tool == self.tool:
                    yield record

    def read_all(self) -> list[WitnessRecord]:
        return list(self.iter_records())

    def last(self) -> WitnessRecord | None:
        record = None
        for record in self.iter_records():
            pass
        return record

    def count(self) -> int:
        return sum(1 for _ in self.iter_records())


def record_outcome(
    command: str,
    outcome: str,
    pack_id: str | None = None,
    *,
    ledger: WitnessLedger | None = None,
) -> bool:
    """Append a witness record; return False (and warn) if it could not be written."""
    ledger = ledger or WitnessLedger()
    try:
        ledger.append(WitnessRecord(command=command, outcome=outcome, pack_id=pack_id))
    except (OSError, ValueError) as e:
        logger.warning("Witness append failed (%s): %s", ledger.path, e)
        return False
    return True
