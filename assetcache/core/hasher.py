"""Canonical hashing helpers for content addressing and diff IDs."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, BinaryIO

DIGEST_ALGORITHM = "sha256"
_CHUNK_SIZE = 1 << 20


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

    - sorted keys
    - no whitespace separators (",", ":")
    - ensure_ascii=True
    - UTF-8 encoding
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def format_digest(hex_digest: str, algorithm: str = DIGEST_ALGORITHM) -> str:
    """Return ``"<algorithm>:<hex>"``."""
    return f"{algorithm}:{hex_digest}"


def split_digest(digest: str) -> tuple[str, str]:
    """Split ``"<algorithm>:<hex>"`` into its parts.

    A bare hex string is taken to be sha256.
    """
    algorithm, sep, hex_digest = digest.partition(":")
    if not sep:
        return DIGEST_ALGORITHM, digest
    return algorithm, hex_digest


def file_digest(path: Path) -> str:
    """Stream a file through SHA-256 and return ``"sha256:<hex>"``."""
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            h.update(chunk)
    return format_digest(h.hexdigest())


class HashingWriter:
    """Write-through file wrapper that hashes every byte it forwards.

    The tar stream goes through this once: bytes land in ``target`` and in
    the digest in the same call, so nothing is re-read afterwards.
    """

    def __init__(self, target: BinaryIO, algorithm: str = DIGEST_ALGORITHM) -> None:
        self._target = target
        self._algorithm = algorithm
        self._hash = hashlib.new(algorithm)
        self._written = 0

    def write(self, data: bytes) -> int:
        self._target.write(data)
        self._hash.update(data)
        self._written += len(data)
        return len(data)

    def flush(self) -> None:
        self._target.flush()

    @property
    def bytes_written(self) -> int:
        return self._written

    def digest(self) -> str:
        """Return ``"<algorithm>:<hex>"`` for everything written so far."""
        return format_digest(self._hash.hexdigest(), self._algorithm)
