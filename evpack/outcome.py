"""Typed results of seal and verify, consumed by presentation and the witness ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .refusal import REFUSAL_EXIT_CODE, PackRefusal

VERIFY_REPORT_VERSION = "pack.verify.v0"


class FindingCode(str, Enum):
    MEMBER_COUNT_MISMATCH = "MEMBER_COUNT_MISMATCH"
    DUPLICATE_MEMBER_PATH = "DUPLICATE_MEMBER_PATH"
    RESERVED_MEMBER_PATH = "RESERVED_MEMBER_PATH"
    UNSAFE_MEMBER_PATH = "UNSAFE_MEMBER_PATH"
    MISSING_MEMBER = "MISSING_MEMBER"
    NON_REGULAR_MEMBER = "NON_REGULAR_MEMBER"
    HASH_MISMATCH = "HASH_MISMATCH"
    EXTRA_MEMBER = "EXTRA_MEMBER"
    PACK_ID_MISMATCH = "PACK_ID_MISMATCH"
    SCHEMA_VIOLATION = "SCHEMA_VIOLATION"


class VerifyOutcome(str, Enum):
    OK = "OK"
    INVALID = "INVALID"
    REFUSAL = "REFUSAL"

    @property
    def exit_code(self) -> int:
        return {"OK": 0, "INVALID": 1, "REFUSAL": REFUSAL_EXIT_CODE}[self.value]


class SchemaOutcome(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Finding:
    code: FindingCode
    path: str | None = None
    expected: str | None = None
    actual: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code.value}
        if self.path is not None:
            out["path"] = self.path
        if self.expected is not None:
            out["expected"] = self.expected
        if self.actual is not None:
            out["actual"] = self.actual
        return out


@dataclass(frozen=True)
class PackCreated:
    pack_id: str
    output_dir: Path
    member_count: int

    exit_code = 0
    outcome = "PACK_CREATED"

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": "pack.v0",
            "outcome": self.outcome,
            "pack_id": self.pack_id,
            "output_dir": str(self.output_dir),
            "member_count": self.member_count,
        }


@dataclass
class VerifyChecks:
    manifest_parse: bool = False
    member_count: bool = False
    member_paths: bool = False
    member_hashes: bool = False
    extra_members: bool = False
    pack_id: bool = False
    schema_validation: SchemaOutcome = SchemaOutcome.SKIPPED

    def to_dict(self) -> dict[str, Any]:
        return {
            "manifest_parse": self.manifest_parse,
            "member_count": self.member_count,
            "member_paths": self.member_paths,
            "member_hashes": self.member_hashes,
            "extra_members": self.extra_members,
            "pack_id": self.pack_id,
            "schema_validation": self.schema_validation.value,
        }


@dataclass
class VerifyReport:
    outcome: VerifyOutcome
    pack_id: str | None = None
    checks: VerifyChecks = field(default_factory=VerifyChecks)
    findings: list[Finding] = field(default_factory=list)
    refusal: PackRefusal | None = None

    @property
    def exit_code(self) -> int:
        return self.outcome.exit_code

    @classmethod
    def refused(cls, refusal: PackRefusal) -> "VerifyReport":
        return cls(outcome=VerifyOutcome.REFUSAL, refusal=refusal)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": VERIFY_REPORT_VERSION,
            "outcome": self.outcome.value,
            "pack_id": self.pack_id,
            "checks": self.checks.to_dict(),
            "invalid": [f.to_dict() for f in self.findings],
            "refusal": (
                {"code": self.refusal.code.value, "message": self.refusal.message}
                if self.refusal is not None
                else None
            ),
        }
