"""
Minimal ustar pack/unpack for soul archives.

Regular files only, no compression. Every entry is one 512-byte
header block followed by its data padded to the block size, and
the stream ends with two zero blocks.

Decoding is deliberately permissive: checksum, typeflag, and magic
are never validated. A zero block or an unreadable size field ends
the scan, and a truncated stream yields whatever was decoded so far.
"""

from __future__ import annotations

import time
from typing import Iterable, NamedTuple, Optional

BLOCK_SIZE = 512
NAME_SIZE = 100

_MODE = 0o644
_CHECKSUM_OFFSET = 148
_CHECKSUM_SIZE = 8
_TYPEFLAG_OFFSET = 156
_MAGIC_OFFSET = 257
_VERSION_OFFSET = 263
_SIZE_FIELD = slice(124, 136)


class TarEntry(NamedTuple):
    """A named byte buffer stored in (or read from) a tar stream."""

    name: str
    data: bytes


def _octal(value: int, width: int) -> bytes:
    """Zero-padded octal digits plus a trailing NUL, ``width`` bytes total."""
    return format(value, "o").zfill(width - 1).encode("ascii") + b"\0"


def _header_checksum(header: bytes | bytearray) -> int:
    """Unsigned byte sum with the checksum field counted as spaces."""
    end = _CHECKSUM_OFFSET + _CHECKSUM_SIZE
    return sum(header[:_CHECKSUM_OFFSET]) + 32 * _CHECKSUM_SIZE + sum(header[end:])


def _build_header(name: str, size: int, mtime: int) -> bytes:
    header = bytearray(BLOCK_SIZE)

    # Names longer than the field are cut silently; callers that care
    # (create_soul_archive) reject them before encoding.
    raw_name = name.encode("utf-8")[:NAME_SIZE]
    header[0:len(raw_name)] = raw_name
    header[100:108] = _octal(_MODE, 8)
    header[108:116] = _octal(0, 8)
    header[116:124] = _octal(0, 8)
    header[_SIZE_FIELD] = _octal(size, 12)
    header[136:148] = _octal(mtime, 12)
    header[_TYPEFLAG_OFFSET:_TYPEFLAG_OFFSET + 1] = b"0"
    header[_MAGIC_OFFSET:_MAGIC_OFFSET + 6] = b"ustar\0"
    header[_VERSION_OFFSET:_VERSION_OFFSET + 2] = b"00"

    checksum = _header_checksum(header)
    header[_CHECKSUM_OFFSET:_CHECKSUM_OFFSET + 7] = _octal(checksum, 7)
    header[_CHECKSUM_OFFSET + 7] = 0x20

    return bytes(header)


def encode(entries: Iterable[TarEntry | tuple[str, bytes]], mtime: Optional[int] = None) -> bytes:
    """Pack named byte buffers into a tar stream.

    Args:
        entries: Ordered ``(name, data)`` pairs.
        mtime: Header modification time in epoch seconds. Defaults to
            the current wall-clock time, so two encodes of identical
            content differ unless this is pinned.

    Returns:
        bytes: The uncompressed tar stream, terminated by two zero blocks.
    """
    stamp = int(time.time()) if mtime is None else int(mtime)
    blocks: list[bytes] = []

    for name, data in entries:
        data = bytes(data)
        blocks.append(_build_header(name, len(data), stamp))
        blocks.append(data)
        remainder = len(data) % BLOCK_SIZE
        if remainder:
            blocks.append(b"\0" * (BLOCK_SIZE - remainder))

    blocks.append(b"\0" * (BLOCK_SIZE * 2))
    return b"".join(blocks)


def decode(data: bytes) -> list[TarEntry]:
    """Unpack a tar stream into its named byte buffers.

    Args:
        data: Uncompressed tar bytes.

    Returns:
        list[TarEntry]: Entries in stream order.
    """
    entries: list[TarEntry] = []
    view = memoryview(data)
    offset = 0

    while offset + BLOCK_SIZE <= len(view):
        header = bytes(view[offset:offset + BLOCK_SIZE])
        if not any(header):
            break

        name = header[:NAME_SIZE].rstrip(b"\0").decode("utf-8", errors="replace")
        size_field = header[_SIZE_FIELD].rstrip(b"\0").strip()
        try:
            size = int(size_field, 8)
        except ValueError:
            break
        if size < 0:
            break

        offset += BLOCK_SIZE
        entries.append(TarEntry(name, bytes(view[offset:offset + size])))

        offset += size
        remainder = size % BLOCK_SIZE
        if remainder:
            offset += BLOCK_SIZE - remainder

    return entries
