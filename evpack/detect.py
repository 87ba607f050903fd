"""
Member type detection.

Detection is an ordered list of classifiers. Each one looks at the member's
bytes and path and either claims it (returns a MemberType) or passes. The
first claim wins; anything unclaimed is `other`. Adding an artifact type
means appending a classifier or extending VERSION_TYPES.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable

import yaml


@dataclass(frozen=True)
class MemberType:
    member_type: str
    artifact_version: str | None = None


OTHER = MemberType("other", None)

VERSION_TYPES: dict[str, str] = {
    "lock.v0": "lockfile",
    "rvl.v0": "report",
    "shape.v0": "report",
    "verify.v0": "report",
    "compare.v0": "report",
    "canon.v0": "artifact",
    "assess.v0": "artifact",
    "verify.rules.v0": "rules",
    "pack.v0": "pack",
}

REGISTRY_BASENAME = "registry.json"
REGISTRY_SUFFIX = ".registry.json"
REGISTRY_DIR_MARKER = "registry/"


Classifier = Callable[[bytes, str], "MemberType | None"]


def _decode(content: bytes) -> str | None:
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        return None


def classify_json_version(content: bytes, path: str) -> MemberType | None:
    text = _decode(content)
    if text is None:
        return None
    try:
        value: Any = json.loads(text)
    except (ValueError, RecursionError):
        return None
    if not isinstance(value, dict):
        return None
    version = value.get("version")
    if not isinstance(version, str):
        return None
    member_type = VERSION_TYPES.get(version)
    if member_type is None:
        return None
    return MemberType(member_type, version)


def classify_yaml_profile(content: bytes, path: str) -> MemberType | None:
    text = _decode(content)
    if text is None:
        return None
    try:
        value = yaml.safe_load(text)
    except (yaml.YAMLError, ValueError, RecursionError):
        return None
    if isinstance(value, dict) and "schema_version" in value and "profile_id" in value:
        return MemberType("profile", None)
    return None


def classify_registry_path(content: bytes, path: str) -> MemberType | None:
    basename = path.rsplit("/", 1)[-1]
    if (
        basename == REGISTRY_BASENAME
        or basename.endswith(REGISTRY_SUFFIX)
        or REGISTRY_DIR_MARKER in path
    ):
        return MemberType("registry", None)
    return None


CLASSIFIERS: list[Classifier] = [
    classify_json_version,
    classify_yaml_profile,
    classify_registry_path,
]


def detect_member_type(content: bytes, path: str) -> MemberType:
    """Classify member bytes. Total: never raises, falls back to `other`."""
    for classifier in CLASSIFIERS:
        result = classifier(content, path)
        if result is not None:
            return result
    return OTHER
