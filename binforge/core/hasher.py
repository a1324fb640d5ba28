"""SHA-256 helpers for whole-binary identity and per-chunk integrity."""

from __future__ import annotations

import base64
import hashlib
from pathlib import Path
from typing import BinaryIO

_BLOCK_SIZE = 1024 * 1024


def sha256_hex(data: bytes | memoryview) -> str:
    """Return the lowercase SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def hash_stream(stream: BinaryIO, *, block_size: int = _BLOCK_SIZE) -> tuple[str, int]:
    """Hash a readable byte stream without loading it whole.

    Returns ``(hex_digest, total_bytes)``.
    """
    hasher = hashlib.sha256()
    total = 0
    while True:
        block = stream.read(block_size)
        if not block:
            break
        hasher.update(block)
        total += len(block)
    return hasher.hexdigest(), total


def hash_file(path: Path) -> tuple[str, int]:
    """Streaming SHA-256 of a file. Returns ``(hex_digest, size)``."""
    with Path(path).open("rb") as fh:
        return hash_stream(fh)


def checksum_b64(hex_digest: str) -> str:
    """Base64 of the raw digest bytes, as object stores expect in checksum headers."""
    return base64.b64encode(bytes.fromhex(hex_digest)).decode("ascii")
