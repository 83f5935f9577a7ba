"""
Line framing for the chat event stream.

Turns an unbounded sequence of byte (or text) chunks into complete ``data:``
lines. Chunk boundaries may fall anywhere, including inside a line or inside a
multi-byte UTF-8 sequence; the last partial line is held back until its line
terminator arrives.
"""

from __future__ import annotations

import codecs

from collections.abc import AsyncIterable, AsyncIterator

from chat_stream.core.constants import SSE_DATA_PREFIX
from chat_stream.utils.logger import logger


class LineFramer:
    """Incremental splitter that yields complete frame lines.

    Usage:
        framer = LineFramer()
        for chunk in chunks:
            for frame in framer.feed(chunk):
                handle(frame)
        framer.close()
    """

    def __init__(self, prefix: str = SSE_DATA_PREFIX) -> None:
        self._prefix = prefix
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text held back because its line terminator has not been seen yet."""
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[str]:
        """Add a chunk and return the frames it completed, in order."""
        text = chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        if not text:
            return []

        lines = (self._buffer + text).split("\n")
        self._buffer = lines.pop()
        return [frame for frame in (self._to_frame(line) for line in lines) if frame is not None]

    def close(self) -> None:
        """End of stream: release held-back data.

        An unterminated last line is never emitted as a frame.
        """
        tail = self._buffer + self._decoder.decode(b"", final=True)
        if tail.strip():
            logger.debug(f"Dropping unterminated stream tail ({len(tail)} chars)")
        self._buffer = ""
        self._decoder.reset()

    def _to_frame(self, line: str) -> str | None:
        line = line.removesuffix("\r")
        if line.startswith(self._prefix):
            return line
        return None


async def iter_frames(
    chunks: AsyncIterable[bytes | str],
    prefix: str = SSE_DATA_PREFIX,
) -> AsyncIterator[str]:
    """Lazily frame an async chunk stream.

    Stops when the chunk stream ends; the framer is released on every exit
    path, including cancellation of the consumer.

    Args:
        chunks: Raw response body chunks
        prefix: Frame marker

    Yields:
        Complete frame lines in arrival order
    """
    framer = LineFramer(prefix)
    try:
        async for chunk in chunks:
            for frame in framer.feed(chunk):
                yield frame
    finally:
        framer.close()
