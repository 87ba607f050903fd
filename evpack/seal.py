"""
Seal: collect inputs, copy into staging, self-hash the manifest, promote.

Nothing becomes visible at the destination until the single rename at the
end. Any refusal or error before that removes the staging directory.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Iterable

from . import __version__
from .collect import MemberCandidate, collect_members
from .detect import detect_member_type
from .hashing import copy_and_hash
from .manifest import MANIFEST_FILENAME, Manifest, Member, build_draft, finalize, format_created
from .outcome import PackCreated
from .refusal import PackRefusal, RefusalCode

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_ROOT = Path("pack")
STAGING_PREFIX = ".pack-staging-"


def _occupied(dest: Path) -> bool:
    if not dest.exists() and not dest.is_symlink():
        return False
    if dest.is_dir() and not dest.is_symlink():
        return any(dest.iterdir())
    return True


def _refuse_occupied(dest: Path) -> PackRefusal:
    return PackRefusal(
        RefusalCode.IO,
        "Output directory already exists and is non-empty",
        detail={"path": str(dest)},
    )


def _copy_member(candidate: MemberCandidate, staging: Path) -> Member:
    target = staging.joinpath(*candidate.path.split("/"))
    try:
        bytes_hash = copy_and_hash(candidate.source, target)
        content = target.read_bytes()
    except OSError as e:
        raise PackRefusal(
            RefusalCode.IO,
            f"Cannot copy input: {candidate.source}: {e.strerror or e}",
            detail={"path": str(candidate.source)},
        ) from e
    detected = detect_member_type(content, candidate.path)
    return Member(
        path=candidate.path,
        bytes_hash=bytes_hash,
        member_type=detected.member_type,
        artifact_version=detected.artifact_version,
    )


def _copy_members(candidates: list[MemberCandidate], staging: Path, workers: int) -> list[Member]:
    if workers <= 1 or len(candidates) <= 1:
        return [_copy_member(c, staging) for c in candidates]
    # map() yields in submission order, so members stay in collector order.
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(lambda c: _copy_member(c, staging), candidates))


def _write_manifest(staging: Path, manifest: Manifest) -> None:
    path = staging / MANIFEST_FILENAME
    try:
        with path.open("xb") as f:
            f.write(manifest.to_bytes())
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        raise PackRefusal(
            RefusalCode.IO,
            f"Cannot write manifest: {e.strerror or e}",
            detail={"path": str(path)},
        ) from e


def _promote(staging: Path, dest: Path) -> None:
    if _occupied(dest):
        raise _refuse_occupied(dest)
    try:
        if dest.is_dir():
            dest.rmdir()
        os.replace(staging, dest)
    except OSError as e:
        # A concurrent sealer got there first, or the destination is unwritable.
        if _occupied(dest):
            raise _refuse_occupied(dest) from e
        raise PackRefusal(
            RefusalCode.IO,
            f"Cannot promote pack to {dest}: {e.strerror or e}",
            detail={"path": str(dest)},
        ) from e
    logger.debug("Promoted %s -> %s", staging, dest)


def seal(
    inputs: Iterable[Path | str],
    output: Path | str | None = None,
    *,
    note: str | None = None,
    created: datetime | str | None = None,
    tool_version: str = __version__,
    output_root: Path | str = DEFAULT_OUTPUT_ROOT,
    workers: int = 1,
) -> PackCreated:
    """Seal inputs into a new pack directory.

    Args:
        inputs: Files and directories to seal.
        output: Destination directory. Defaults to `<output_root>/<pack_id>`.
        note: Free-form note stored in the manifest.
        created: Fixed creation time for reproducible sealing; defaults to now (UTC).
        tool_version: Version string recorded in the manifest.
        output_root: Parent of the default destination.
        workers: Thread count for copying and hashing members.

    Raises:
        PackRefusal: E_EMPTY, E_IO, or E_DUPLICATE. No partial output remains.
    """
    candidates = collect_members(inputs)
    created_text = format_created(created)

    dest = Path(output) if output is not None else None
    if dest is not None and _occupied(dest):
        raise _refuse_occupied(dest)

    parent = dest.parent if dest is not None else Path(output_root)
    try:
        parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=parent))
    except OSError as e:
        raise PackRefusal(
            RefusalCode.IO,
            f"Cannot create staging directory in {parent}: {e.strerror or e}",
            detail={"path": str(parent)},
        ) from e
    logger.debug("Staging %d member(s) in %s", len(candidates), staging)

    try:
        members = _copy_members(candidates, staging, workers)
        manifest = finalize(
            build_draft(members, created=created_text, tool_version=tool_version, note=note)
        )
        _write_manifest(staging, manifest)
        if dest is None:
            dest = Path(output_root) / manifest.pack_id
        _promote(staging, dest)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    return PackCreated(pack_id=manifest.pack_id, output_dir=dest, member_count=manifest.member_count)
