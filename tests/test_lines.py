"""Tests for the chunked line decoder."""

import pytest

from podsync.feed.lines import iter_lines


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


async def _collect(chunks) -> list[str]:
    return [line async for line in iter_lines(chunks)]


class TestIterLines:
    """Tests for iter_lines."""

    @pytest.mark.asyncio
    async def test_single_chunk(self):
        """Test splitting a single chunk."""
        lines = await _collect(_chunks(b"one\ntwo\nthree\n"))
        assert lines == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_trailing_remainder_emitted(self):
        """Test a final line without newline is emitted."""
        lines = await _collect(_chunks(b"one\ntwo"))
        assert lines == ["one", "two"]

    @pytest.mark.asyncio
    async def test_empty_interior_lines_kept(self):
        """Test empty lines between newlines are kept."""
        lines = await _collect(_chunks(b"a\n\nb\n"))
        assert lines == ["a", "", "b"]

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        """Test an empty stream yields nothing."""
        assert await _collect(_chunks()) == []
        assert await _collect(_chunks(b"")) == []

    @pytest.mark.asyncio
    async def test_line_split_across_chunks(self):
        """Test lines split across chunks are joined."""
        lines = await _collect(_chunks(b"hel", b"lo\nwor", b"ld"))
        assert lines == ["hello", "world"]

    @pytest.mark.asyncio
    async def test_multibyte_character_split(self):
        """A UTF-8 sequence cut between reads still decodes."""
        data = "café\n\U0001f600 ok\n".encode("utf-8")
        # Split inside both the 2-byte and the 4-byte sequences
        e_index = data.index(b"\xc3") + 1
        emoji_index = data.index(b"\xf0") + 2
        lines = await _collect(
            _chunks(data[:e_index], data[e_index:emoji_index], data[emoji_index:])
        )
        assert lines == ["café", "\U0001f600 ok"]

    @pytest.mark.asyncio
    async def test_every_split_point_matches_single_read(self):
        """Test any chunking decodes like a single read."""
        data = "first üñî\n\nsecond 中文\nthird \U0001f680".encode("utf-8")
        expected = await _collect(_chunks(data))

        for i in range(len(data) + 1):
            for j in range(i, len(data) + 1):
                lines = await _collect(_chunks(data[:i], data[i:j], data[j:]))
                assert lines == expected, (i, j)

    @pytest.mark.asyncio
    async def test_byte_at_a_time(self):
        """Test decoding one byte per chunk."""
        data = "xé\ny\n".encode("utf-8")
        lines = await _collect(_chunks(*(data[i:i + 1] for i in range(len(data)))))
        assert lines == ["xé", "y"]

    @pytest.mark.asyncio
    async def test_invalid_bytes_replaced(self):
        """Test invalid UTF-8 is replaced."""
        lines = await _collect(_chunks(b"ok\n\xff\n"))
        assert lines == ["ok", "\ufffd"]

    @pytest.mark.asyncio
    async def test_truncated_sequence_at_end(self):
        """An incomplete character at end of stream is not dropped silently."""
        lines = await _collect(_chunks(b"abc\xc3"))
        assert lines == ["abc\ufffd"]
