"""SHA-256 content hashing in the `sha256:<hex>` form."""

from __future__ import annotations

import hashlib
from pathlib import Path

HASH_PREFIX = "sha256:"
CHUNK_SIZE = 1024 * 1024


def hash_bytes(data: bytes) -> str:
    return HASH_PREFIX + hashlib.sha256(data).hexdigest()


def hash_file(path: Path, *, chunk_size: int = CHUNK_SIZE) -> str:
    """Hash a file's bytes without loading it whole."""
    digest = hashlib.sha256()
    with path.open("rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
    return HASH_PREFIX + digest.hexdigest()


def copy_and_hash(src: Path, dst: Path, *, chunk_size: int = CHUNK_SIZE) -> str:
    """Copy `src` to `dst` byte-for-byte and return the hash of the written bytes."""
    digest = hashlib.sha256()
    dst.parent.mkdir(parents=True, exist_ok=True)
    with src.open("rb") as fin, dst.open("xb") as fout:
        while True:
            chunk = fin.read(chunk_size)
            if not chunk:
                break
            fout.write(chunk)
            digest.update(chunk)
    return HASH_PREFIX + digest.hexdigest()
