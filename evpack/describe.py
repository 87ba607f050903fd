"""Self-description output for `--describe` and `--schema`."""

from __future__ import annotations

from typing import Any

from . import TOOL_NAME, __version__
from .manifest import MANIFEST_VERSION
from .outcome import VERIFY_REPORT_VERSION, FindingCode
from .refusal import RefusalCode

_HASH_PATTERN = "^sha256:[0-9a-f]{64}$"


def operator_json() -> dict[str, Any]:
    return {
        "name": TOOL_NAME,
        "schema_version": "operator.v0",
        "version": __version__,
        "description": (
            "Seal lockfiles, reports, rules, and registry artifacts into one "
            "immutable, self-verifiable evidence pack."
        ),
        "output_mode": "mixed",
        "subcommands": {
            "seal": {
                "description": "Seal artifacts into an evidence pack directory",
                "output_mode": "directory_artifact",
                "exit_codes": {"0": "PACK_CREATED", "2": "REFUSAL"},
            },
            "verify": {
                "description": "Verify pack integrity (members + pack_id)",
                "output_mode": "report",
                "exit_codes": {"0": "OK", "1": "INVALID", "2": "REFUSAL"},
            },
            "diff": {
                "description": "Deterministically diff two packs",
                "output_mode": "report",
                "exit_codes": {"0": "NO_CHANGES", "1": "CHANGES", "2": "REFUSAL"},
            },
            "witness": {
                "description": "Query witness ledger",
                "output_mode": "report",
                "exit_codes": {"0": "OK"},
            },
        },
        "refusal_codes": {
            RefusalCode.EMPTY.value: "seal called with no artifacts",
            RefusalCode.IO.value: "Cannot read input or write output",
            RefusalCode.DUPLICATE.value: "Member path collision during seal (including reserved paths)",
            RefusalCode.BAD_PACK.value: "Missing or invalid manifest.json for verify/diff",
        },
        "global_flags": ["--describe", "--schema", "--version", "--no-witness"],
    }


def manifest_schema() -> dict[str, Any]:
    member = {
        "type": "object",
        "required": ["path", "bytes_hash", "type", "artifact_version"],
        "properties": {
            "path": {"type": "string", "minLength": 1},
            "bytes_hash": {"type": "string", "pattern": _HASH_PATTERN},
            "type": {"type": "string"},
            "artifact_version": {"type": ["string", "null"]},
        },
        "additionalProperties": False,
    }
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "title": MANIFEST_VERSION,
        "type": "object",
        "required": ["version", "pack_id", "created", "note", "tool_version", "members", "member_count"],
        "properties": {
            "version": {"const": MANIFEST_VERSION},
            "pack_id": {"type": "string", "pattern": _HASH_PATTERN},
            "created": {"type": "string", "format": "date-time"},
            "note": {"type": ["string", "null"]},
            "tool_version": {"type": "string"},
            "members": {"type": "array", "items": member},
            "member_count": {"type": "integer", "minimum": 0},
        },
        "additionalProperties": False,
    }


def verify_report_schema() -> dict[str, Any]:
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "title": VERIFY_REPORT_VERSION,
        "type": "object",
        "required": ["version", "outcome", "pack_id", "checks", "invalid", "refusal"],
        "properties": {
            "version": {"const": VERIFY_REPORT_VERSION},
            "outcome": {"enum": ["OK", "INVALID", "REFUSAL"]},
            "pack_id": {"type": ["string", "null"]},
            "checks": {
                "type": "object",
                "properties": {
                    "manifest_parse": {"type": "boolean"},
                    "member_count": {"type": "boolean"},
                    "member_paths": {"type": "boolean"},
                    "member_hashes": {"type": "boolean"},
                    "extra_members": {"type": "boolean"},
                    "pack_id": {"type": "boolean"},
                    "schema_validation": {"enum": ["pass", "fail", "skipped"]},
                },
            },
            "invalid": {
                "type": "array",
                "items": {
                    "type": "object",
                    "required": ["code"],
                    "properties": {
                        "code": {"enum": [c.value for c in FindingCode]},
                        "path": {"type": "string"},
                        "expected": {"type": "string"},
                        "actual": {"type": "string"},
                    },
                },
            },
            "refusal": {
                "oneOf": [
                    {"type": "null"},
                    {
                        "type": "object",
                        "required": ["code", "message"],
                        "properties": {
                            "code": {"enum": [c.value for c in RefusalCode]},
                            "message": {"type": "string"},
                        },
                    },
                ]
            },
        },
    }


def schema_json() -> dict[str, Any]:
    return {
        "manifest": manifest_schema(),
        "verify_report": verify_report_schema(),
    }
