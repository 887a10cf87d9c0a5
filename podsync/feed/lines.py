"""Newline-delimited text decoding over a chunked byte stream."""

import codecs
from typing import AsyncIterable, AsyncIterator


async def iter_lines(
    chunks: AsyncIterable[bytes], encoding: str = "utf-8"
) -> AsyncIterator[str]:
    """Yield the lines of a chunked byte stream, newline stripped.

    Decoder state is kept across chunks so a multi-byte character split
    over two reads still decodes. Undecodable bytes become U+FFFD. A
    non-empty remainder without a trailing newline is yielded last.

    Args:
        chunks: Async iterable of raw body chunks.
        encoding: Text encoding of the body.

    Yields:
        Each line, without its "\\n".
    """
    decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
    buffer = ""

    async for chunk in chunks:
        if not chunk:
            continue
        buffer += decoder.decode(chunk)
        parts = buffer.split("\n")
        buffer = parts.pop()
        for part in parts:
            yield part

    buffer += decoder.decode(b"", final=True)
    if buffer:
        yield buffer
