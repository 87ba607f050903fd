"""
Verify: reproduce a pack's expected state and report every defect.

Every check runs; findings from one check never stop the next. The only
early exit is a manifest that cannot be read, parsed, or is of an unknown
version, which is a refusal rather than a finding.

Declared and observed paths are kept as two explicit sets:

    missing = declared - observed
    extra   = observed - declared - {manifest.json}

Verify never writes to the pack directory.
"""

from __future__ import annotations

import json
import logging
import math
import os
import stat
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from .canonical import canonical_bytes
from .collect import is_safe_member_path
from .hashing import hash_file
from .manifest import MANIFEST_FILENAME, Manifest, ManifestError, Member, compute_pack_id
from .outcome import Finding, FindingCode, SchemaOutcome, VerifyChecks, VerifyOutcome, VerifyReport
from .refusal import PackRefusal, RefusalCode
from .types import SchemaPack, lookup_schema as default_lookup_schema

logger = logging.getLogger(__name__)

SchemaLookup = Callable[[Member], "SchemaPack | None"]


def _path_key(path: str | None) -> bytes:
    return (path or "").encode("utf-8", "surrogateescape")


@dataclass
class ObservedTree:
    """Entries under a pack root, keyed by relative path.

    `unreadable` holds directories that could not be listed (`""` is the root).
    """

    files: set[str] = field(default_factory=set)
    non_regular: set[str] = field(default_factory=set)
    dirs: set[str] = field(default_factory=set)
    unreadable: set[str] = field(default_factory=set)

    @property
    def entries(self) -> set[str]:
        return self.files | self.non_regular

    def hides(self, path: str) -> bool:
        """True if `path` lies under a directory that could not be listed."""
        return any(d == "" or path.startswith(d + "/") for d in self.unreadable)


def scan_tree(root: Path) -> ObservedTree:
    """Walk `root` without following symlinks. Unlistable directories are recorded, not fatal."""
    tree = ObservedTree()

    def walk(directory: Path, prefix: str) -> None:
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as e:
            logger.warning("Cannot list pack directory %s: %s", directory, e.strerror or e)
            tree.unreadable.add(prefix.rstrip("/"))
            return
        for entry in entries:
            rel = f"{prefix}{entry.name}"
            if entry.is_dir(follow_symlinks=False):
                tree.dirs.add(rel)
                walk(Path(entry.path), rel + "/")
            elif entry.is_file(follow_symlinks=False):
                tree.files.add(rel)
            else:
                tree.non_regular.add(rel)

    walk(root, "")
    return tree


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not allowed")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"number {text} is out of range")
    return value


def load_manifest_document(pack_dir: Path) -> tuple[dict[str, Any], Manifest]:
    """Read and parse `manifest.json`; raise PackRefusal(E_BAD_PACK) on any failure."""
    manifest_path = pack_dir / MANIFEST_FILENAME
    if not pack_dir.is_dir():
        raise PackRefusal(
            RefusalCode.BAD_PACK,
            f"Pack directory not found: {pack_dir}",
            detail={"path": str(pack_dir)},
        )
    if manifest_path.is_symlink() or not manifest_path.is_file():
        raise PackRefusal(
            RefusalCode.BAD_PACK,
            f"Missing {MANIFEST_FILENAME} in {pack_dir}",
            detail={"path": str(manifest_path)},
        )
    try:
        raw = json.loads(
            manifest_path.read_bytes().decode("utf-8"),
            parse_constant=_reject_constant,
            parse_float=_finite_float,
        )
        manifest = Manifest.from_dict(raw)
        # Lone surrogates parse but cannot be canonically encoded.
        canonical_bytes(raw)
    except OSError as e:
        raise PackRefusal(
            RefusalCode.BAD_PACK,
            f"Cannot read {MANIFEST_FILENAME}: {e.strerror or e}",
            detail={"path": str(manifest_path)},
        ) from e
    except (ValueError, RecursionError) as e:
        # ManifestError, JSONDecodeError and Unicode{De,En}codeError are all ValueErrors.
        raise PackRefusal(
            RefusalCode.BAD_PACK,
            f"Invalid {MANIFEST_FILENAME}: {e}",
            detail={"path": str(manifest_path)},
        ) from e
    return raw, manifest


def _sorted(findings: list[Finding]) -> list[Finding]:
    return sorted(findings, key=lambda f: _path_key(f.path))


def check_member_count(manifest: Manifest) -> list[Finding]:
    if manifest.member_count == len(manifest.members):
        return []
    return [
        Finding(
            FindingCode.MEMBER_COUNT_MISMATCH,
            MANIFEST_FILENAME,
            expected=str(manifest.member_count),
            actual=str(len(manifest.members)),
        )
    ]


def check_member_paths(manifest: Manifest) -> list[Finding]:
    counts = Counter(m.path for m in manifest.members)
    findings: list[Finding] = []
    for path in counts:
        if counts[path] > 1:
            findings.append(Finding(FindingCode.DUPLICATE_MEMBER_PATH, path))
        if path == MANIFEST_FILENAME:
            findings.append(Finding(FindingCode.RESERVED_MEMBER_PATH, path))
        elif not is_safe_member_path(path):
            findings.append(Finding(FindingCode.UNSAFE_MEMBER_PATH, path))
    return _sorted(findings)


def _checkable(member: Member) -> bool:
    return member.path != MANIFEST_FILENAME and is_safe_member_path(member.path)


def check_member_files(manifest: Manifest, pack_dir: Path, tree: ObservedTree) -> list[Finding]:
    """Existence, regularity, and hash of every declared member."""
    findings: list[Finding] = []
    for member in manifest.members:
        if not _checkable(member):
            continue
        if member.path in tree.files:
            try:
                actual = hash_file(pack_dir.joinpath(*member.path.split("/")))
            except OSError as e:
                logger.warning("Cannot read pack member %s: %s", member.path, e.strerror or e)
                findings.append(Finding(FindingCode.HASH_MISMATCH, member.path, expected=member.bytes_hash))
                continue
            if actual != member.bytes_hash:
                findings.append(
                    Finding(
                        FindingCode.HASH_MISMATCH,
                        member.path,
                        expected=member.bytes_hash,
                        actual=actual,
                    )
                )
        elif member.path in tree.non_regular or member.path in tree.dirs:
            findings.append(Finding(FindingCode.NON_REGULAR_MEMBER, member.path))
        else:
            findings.append(Finding(FindingCode.MISSING_MEMBER, member.path))
    return _sorted(findings)


def stat_hidden_members(manifest: Manifest, pack_dir: Path, tree: ObservedTree) -> None:
    """Place declared members under unlistable directories into `tree` by direct lstat."""
    for member in manifest.members:
        if not _checkable(member) or member.path in tree.entries or not tree.hides(member.path):
            continue
        try:
            mode = pack_dir.joinpath(*member.path.split("/")).lstat().st_mode
        except OSError:
            continue
        if stat.S_ISREG(mode):
            tree.files.add(member.path)
        elif stat.S_ISDIR(mode):
            tree.dirs.add(member.path)
        else:
            tree.non_regular.add(member.path)


def check_extra_members(manifest: Manifest, tree: ObservedTree) -> list[Finding]:
    declared = {m.path for m in manifest.members} | {MANIFEST_FILENAME}
    extra = tree.entries - declared
    # An unlistable directory with no declared member under it is undeclared content.
    extra |= {d for d in tree.unreadable if d and not any(p.startswith(d + "/") for p in declared)}
    return [Finding(FindingCode.EXTRA_MEMBER, p) for p in sorted(extra, key=_path_key)]


def check_pack_id(raw: dict[str, Any], manifest: Manifest) -> list[Finding]:
    recomputed = compute_pack_id(raw)
    if recomputed == manifest.pack_id:
        return []
    return [
        Finding(
            FindingCode.PACK_ID_MISMATCH,
            MANIFEST_FILENAME,
            expected=manifest.pack_id,
            actual=recomputed,
        )
    ]


def check_schemas(
    manifest: Manifest,
    pack_dir: Path,
    tree: ObservedTree,
    lookup_schema: SchemaLookup,
) -> tuple[SchemaOutcome, list[Finding]]:
    findings: list[Finding] = []
    attempted = 0
    for member in manifest.members:
        if not _checkable(member) or member.path not in tree.files:
            continue
        schema = lookup_schema(member)
        if schema is None:
            continue
        try:
            content = pack_dir.joinpath(*member.path.split("/")).read_bytes()
        except OSError:
            logger.debug("Skipping schema check for unreadable member %s", member.path)
            continue
        attempted += 1
        errors = schema.validate(content)
        if errors:
            label = member.artifact_version or member.member_type
            findings.append(
                Finding(
                    FindingCode.SCHEMA_VIOLATION,
                    member.path,
                    expected=f"valid {label} schema",
                    actual="; ".join(errors),
                )
            )

    if attempted == 0:
        return SchemaOutcome.SKIPPED, findings
    return (SchemaOutcome.FAIL if findings else SchemaOutcome.PASS), _sorted(findings)


def verify_pack(
    pack_dir: Path | str,
    *,
    lookup_schema: SchemaLookup = default_lookup_schema,
) -> VerifyReport:
    """Verify a pack directory and return the full report.

    A manifest that cannot be read or parsed comes back as a REFUSAL report.
    Unreadable members and unlistable directories are findings, not refusals.
    """
    pack_dir = Path(pack_dir)
    try:
        raw, manifest = load_manifest_document(pack_dir)
    except PackRefusal as refusal:
        return VerifyReport.refused(refusal)

    checks = VerifyChecks(manifest_parse=True)
    findings: list[Finding] = []

    tree = scan_tree(pack_dir)
    stat_hidden_members(manifest, pack_dir, tree)

    count_findings = check_member_count(manifest)
    checks.member_count = not count_findings

    path_findings = check_member_paths(manifest)
    checks.member_paths = not path_findings

    file_findings = check_member_files(manifest, pack_dir, tree)
    checks.member_hashes = not file_findings

    extra_findings = check_extra_members(manifest, tree)
    checks.extra_members = not extra_findings

    pack_id_findings = check_pack_id(raw, manifest)
    checks.pack_id = not pack_id_findings

    checks.schema_validation, schema_findings = check_schemas(manifest, pack_dir, tree, lookup_schema)

    for group in (count_findings, path_findings, file_findings, extra_findings, pack_id_findings, schema_findings):
        findings.extend(group)

    outcome = VerifyOutcome.OK if not findings else VerifyOutcome.INVALID
    logger.debug("Verified %s: %s (%d finding(s))", pack_dir, outcome.value, len(findings))
    return VerifyReport(
        outcome=outcome,
        pack_id=manifest.pack_id,
        checks=checks,
        findings=findings,
        refusal=None,
    )
