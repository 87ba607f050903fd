"""
Member collection for seal.

Turns the user's inputs into a safe, collision-free, bytewise-sorted list of
candidates. All checks happen before anything is written.
"""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .manifest import MANIFEST_FILENAME
from .refusal import PackRefusal, RefusalCode


@dataclass(frozen=True)
class MemberCandidate:
    path: str
    source: Path


def is_safe_member_path(path: str) -> bool:
    """Relative, forward-slash, no empty segment, no `.`/`..` segment."""
    if not path or path.startswith("/") or "\\" in path:
        return False
    return all(segment not in ("", ".", "..") for segment in path.split("/"))


def normalize_member_path(path: str) -> str:
    return path.replace("\\", "/")


def _kind(mode: int) -> str:
    if stat.S_ISLNK(mode):
        return "symlink"
    if stat.S_ISSOCK(mode):
        return "socket"
    if stat.S_ISFIFO(mode):
        return "fifo"
    if stat.S_ISCHR(mode) or stat.S_ISBLK(mode):
        return "device"
    return "unknown"


def _lstat(path: Path) -> os.stat_result:
    try:
        return path.lstat()
    except OSError as e:
        raise PackRefusal(
            RefusalCode.IO,
            f"Cannot read input: {path}: {e.strerror or e}",
            detail={"path": str(path)},
        ) from e


def _non_regular(path: Path, mode: int) -> PackRefusal:
    return PackRefusal(
        RefusalCode.IO,
        f"Non-regular input ({_kind(mode)}): {path}",
        detail={"path": str(path)},
    )


def _candidate(member_path: str, source: Path) -> MemberCandidate:
    member_path = normalize_member_path(member_path)
    if not is_safe_member_path(member_path):
        raise PackRefusal(
            RefusalCode.IO,
            "UNSAFE_MEMBER_PATH",
            detail={"path": member_path, "source": str(source)},
        )
    return MemberCandidate(path=member_path, source=source)


def _collect_dir(root: Path, prefix: str, out: list[MemberCandidate]) -> None:
    try:
        entries = sorted(os.scandir(root), key=lambda e: e.name)
    except OSError as e:
        raise PackRefusal(
            RefusalCode.IO,
            f"Cannot read directory: {root}: {e.strerror or e}",
            detail={"path": str(root)},
        ) from e

    for entry in entries:
        entry_path = Path(entry.path)
        mode = _lstat(entry_path).st_mode
        member_path = f"{prefix}/{entry.name}"
        if stat.S_ISDIR(mode):
            _collect_dir(entry_path, member_path, out)
        elif stat.S_ISREG(mode):
            out.append(_candidate(member_path, entry_path))
        else:
            raise _non_regular(entry_path, mode)


def check_collisions(candidates: list[MemberCandidate]) -> None:
    """Refuse with E_DUPLICATE on a repeated path or the reserved manifest name."""
    sources: dict[str, list[str]] = {}
    for c in candidates:
        sources.setdefault(c.path, []).append(str(c.source))

    for c in candidates:
        if c.path == MANIFEST_FILENAME:
            raise PackRefusal(
                RefusalCode.DUPLICATE,
                "Reserved member path collision",
                detail={"path": MANIFEST_FILENAME, "sources": sources[c.path]},
            )
        if len(sources[c.path]) > 1:
            raise PackRefusal(
                RefusalCode.DUPLICATE,
                "Resolved member path collision",
                detail={"path": c.path, "sources": sources[c.path]},
            )


def collect_members(inputs: Iterable[Path | str]) -> list[MemberCandidate]:
    """Resolve inputs to member candidates sorted bytewise by path.

    Files become one member named by their basename; directories contribute
    every regular file beneath them as `<dir-basename>/<relative-path>`.
    Raises PackRefusal (E_EMPTY, E_IO, E_DUPLICATE).
    """
    paths = [Path(p) for p in inputs]
    if not paths:
        raise PackRefusal(RefusalCode.EMPTY)

    candidates: list[MemberCandidate] = []
    for path in paths:
        mode = _lstat(path).st_mode
        name = path.resolve().name if path.name in ("", ".", "..") else path.name
        if stat.S_ISREG(mode):
            candidates.append(_candidate(name, path))
        elif stat.S_ISDIR(mode):
            _collect_dir(path, name, candidates)
        else:
            raise _non_regular(path, mode)

    check_collisions(candidates)
    candidates.sort(key=lambda c: c.path.encode("utf-8", "surrogateescape"))

    if not candidates:
        raise PackRefusal(RefusalCode.EMPTY, "Inputs contain no regular files")
    return candidates
