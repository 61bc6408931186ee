"""Query identifiers and per-query chunk alignment jitter."""

from __future__ import annotations

import hashlib

MINUTE = 60
HOUR = 60 * MINUTE
CHUNK_SIZE = HOUR

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193


def _fnv32a(data: bytes) -> int:
    h = _FNV32_OFFSET
    for byte in data:
        h ^= byte
        h = (h * _FNV32_PRIME) & 0xFFFFFFFF
    return h


def query_hash(query: str) -> str:
    """Return the hex MD5 digest identifying a query."""
    return hashlib.md5(query.encode()).hexdigest()


def chunk_jitter(project_id: str, query_hash: str) -> int:
    """Return a whole-minute offset, below one chunk size, that spreads chunk boundaries."""
    key = f"{project_id}-{query_hash}".encode()
    return _fnv32a(key) % (CHUNK_SIZE // MINUTE) * MINUTE


def query_id(project_id: str, query: str) -> tuple[str, int]:
    """Return the query's hash and its chunk jitter within the project."""
    hashed = query_hash(query)
    return hashed, chunk_jitter(project_id, hashed)