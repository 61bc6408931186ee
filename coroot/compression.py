"""LZ4 block compression with a little-endian length prefix."""

from __future__ import annotations

import struct

import lz4.block

_LENGTH = struct.Struct("<I")


def compress(data: bytes) -> bytes:
    """Compress `data` into a 4-byte uncompressed length followed by an LZ4 block."""
    data = bytes(data)
    return _LENGTH.pack(len(data)) + lz4.block.compress(data, store_size=False)


def decompress(data: bytes) -> bytes:
    """Reverse `compress`; raises ValueError on malformed input."""
    data = bytes(data)
    if len(data) < _LENGTH.size:
        raise ValueError("compressed data is shorter than its length prefix")
    (size,) = _LENGTH.unpack_from(data)
    if size == 0:
        return b""
    try:
        return lz4.block.uncompress(data[_LENGTH.size:], uncompressed_size=size)
    except lz4.block.LZ4BlockError as exc:
        raise ValueError(f"corrupt compressed block: {exc}") from exc