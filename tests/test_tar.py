"""Tests for the minimal ustar codec."""

from __future__ import annotations

import io
import tarfile

import pytest

from skscp.tar import BLOCK_SIZE, TarEntry, decode, encode


class TestEncode:
    """Tests for the tar writer."""

    def test_layout_single_entry(self) -> None:
        """Header + one padded data block + two terminator blocks."""
        blob = encode([TarEntry("hello.txt", b"hello world")], mtime=0)
        assert len(blob) == BLOCK_SIZE * 4
        assert blob[-2 * BLOCK_SIZE:] == b"\0" * (2 * BLOCK_SIZE)

    def test_header_fields(self) -> None:
        """Fixed ustar fields land at their offsets."""
        header = encode([TarEntry("SOUL.md", b"x" * 10)], mtime=0o1234)[:BLOCK_SIZE]
        assert header[0:7] == b"SOUL.md"
        assert header[7:100] == b"\0" * 93
        assert header[100:108] == b"0000644\0"
        assert header[108:116] == b"0000000\0"
        assert header[116:124] == b"0000000\0"
        assert header[124:136] == b"00000000012\0"
        assert header[136:148] == b"00000001234\0"
        assert header[156:157] == b"0"
        assert header[257:263] == b"ustar\0"
        assert header[263:265] == b"00"

    def test_header_checksum(self) -> None:
        """Checksum is the byte sum with the field counted as spaces."""
        header = encode([TarEntry("a.md", b"abc")], mtime=0)[:BLOCK_SIZE]
        expected = sum(header[:148]) + 8 * 32 + sum(header[156:])
        assert header[148:155] == format(expected, "o").zfill(6).encode() + b"\0"
        assert header[155:156] == b" "

    def test_long_name_truncated(self) -> None:
        """Names beyond 100 bytes are cut, not rejected."""
        name = "n" * 150
        entries = decode(encode([TarEntry(name, b"data")]))
        assert entries[0].name == "n" * 100

    def test_mtime_defaults_to_now(self) -> None:
        """Unpinned mtime is the current wall-clock time."""
        import time

        before = int(time.time())
        header = encode([TarEntry("a", b"")])[:BLOCK_SIZE]
        stamp = int(header[136:147], 8)
        assert before <= stamp <= int(time.time())

    def test_pinned_mtime_is_reproducible(self) -> None:
        """Same entries and mtime give identical bytes."""
        entries = [TarEntry("a.md", b"one"), TarEntry("b.md", b"two")]
        assert encode(entries, mtime=42) == encode(entries, mtime=42)

    def test_stdlib_tarfile_reads_output(self) -> None:
        """Output is a valid ustar stream for other readers."""
        blob = encode([TarEntry("memory/day.md", b"A day.")], mtime=0)
        with tarfile.open(fileobj=io.BytesIO(blob), mode="r:") as tar:
            member = tar.getmember("memory/day.md")
            assert member.isfile()
            assert member.mode == 0o644
            assert tar.extractfile(member).read() == b"A day."


class TestDecode:
    """Tests for the permissive tar reader."""

    def test_roundtrip_single_file(self) -> None:
        data = b"hello world"
        entries = decode(encode([TarEntry("hello.txt", data)]))
        assert entries == [TarEntry("hello.txt", data)]

    def test_roundtrip_multiple_files_keeps_order(self) -> None:
        files = [
            TarEntry("SOUL.md", b"# Soul"),
            TarEntry("MEMORY.md", b"# Memory\nStuff happened."),
            TarEntry("memory/2026-02-02.md", b"Daily notes"),
        ]
        assert decode(encode(files)) == files

    @pytest.mark.parametrize("size", [0, 1, 511, 512, 513, 1000, 4096])
    def test_roundtrip_sizes(self, size: int) -> None:
        """Empty, unaligned and aligned payloads survive."""
        data = bytes(i % 251 for i in range(size))
        entries = decode(encode([TarEntry("blob.bin", data)]))
        assert len(entries) == 1
        assert entries[0].data == data

    def test_accepts_plain_tuples(self) -> None:
        entries = decode(encode([("a.md", b"A")]))
        assert entries[0].name == "a.md"

    def test_empty_archive(self) -> None:
        assert decode(b"\0" * 1024) == []

    def test_empty_input(self) -> None:
        assert decode(b"") == []

    def test_truncated_stream_returns_partial(self) -> None:
        """Missing terminator blocks are not an error."""
        blob = encode([TarEntry("a.md", b"A"), TarEntry("b.md", b"B")])
        truncated = blob[:BLOCK_SIZE * 2]
        assert decode(truncated) == [TarEntry("a.md", b"A")]

    def test_bad_size_field_stops_scan(self) -> None:
        blob = bytearray(encode([TarEntry("a.md", b"A"), TarEntry("b.md", b"B")]))
        second = BLOCK_SIZE * 2
        blob[second + 124:second + 136] = b"zzzzzzzzzzz\0"
        assert decode(bytes(blob)) == [TarEntry("a.md", b"A")]

    def test_checksum_not_validated(self) -> None:
        """A corrupt header checksum is still read."""
        blob = bytearray(encode([TarEntry("a.md", b"A")]))
        blob[148:155] = b"7777777"
        assert decode(bytes(blob)) == [TarEntry("a.md", b"A")]
