from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncGenerator, AsyncIterable, Awaitable, Callable
from typing import Literal

from . import chunks as chunks_
from . import errors as errors_

_CHUNKING_PATTERNS = {
    "word": re.compile(r"\s*\S+\s+"),
    "line": re.compile(r"[^\n]*\n"),
}


def smooth_stream(
    *,
    delay_ms: float | None = 10,
    chunking: Literal["word", "line"] | re.Pattern[str] = "word",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Callable[[AsyncIterable[chunks_.Chunk]], AsyncGenerator[chunks_.Chunk]]:
    """Re-chunk text deltas into words (or lines) released at a steady pace.

    Buffered text is flushed before every ``step-finish`` and at the end of
    the stream. ``delay_ms=None`` disables the pause between chunks.
    """
    if isinstance(chunking, re.Pattern):
        pattern = chunking
    elif chunking in _CHUNKING_PATTERNS:
        pattern = _CHUNKING_PATTERNS[chunking]
    else:
        raise errors_.InvalidArgumentError(
            argument="chunking",
            message=f'Chunking must be "word" or "line" or a compiled pattern. Received: {chunking}',
            value=chunking,
        )

    async def transform(
        stream: AsyncIterable[chunks_.Chunk],
    ) -> AsyncGenerator[chunks_.Chunk]:
        buffer = ""
        async for chunk in stream:
            if isinstance(chunk, chunks_.StepFinishChunk):
                if buffer:
                    yield chunks_.TextDeltaChunk(text_delta=buffer)
                    buffer = ""
                yield chunk
                continue

            if not isinstance(chunk, chunks_.TextDeltaChunk):
                yield chunk
                continue

            buffer += chunk.text_delta
            while (match := pattern.match(buffer)) is not None and match.end() > 0:
                yield chunks_.TextDeltaChunk(text_delta=buffer[: match.end()])
                buffer = buffer[match.end() :]
                if delay_ms is not None:
                    await sleep(delay_ms / 1000)

        if buffer:
            yield chunks_.TextDeltaChunk(text_delta=buffer)

    return transform
