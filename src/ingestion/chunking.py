"""Character-window chunking for long documents."""

from __future__ import annotations

from src.ingestion.models import Chunk

# A window is only shrunk to a sentence boundary found in its last 30%.
BOUNDARY_SEARCH_FRACTION = 0.7


def chunk_text(
    text: str,
    max_chunk_size: int = 4000,
    overlap: int = 200,
) -> list[Chunk]:
    """Split *text* into overlapping windows of at most *max_chunk_size* characters.

    Text that fits in one window is returned as a single chunk spanning the
    whole input. Otherwise each window that stops short of the end of the text
    is pulled back to just after the last ``.`` or newline found at or beyond
    70% of the window, so chunks avoid ending mid-sentence. The next window
    starts *overlap* characters before the previous one ended.

    Chunk content is the exact slice ``text[start_offset:end_offset]``, so the
    original can be rebuilt from the offsets.

    Args:
        text: Normalized document text.
        max_chunk_size: Maximum characters per chunk.
        overlap: Characters shared by consecutive chunks.

    Returns:
        Ordered list of :class:`Chunk` instances.
    """
    if max_chunk_size <= 0:
        raise ValueError("max_chunk_size must be positive")
    if overlap < 0:
        raise ValueError("overlap must not be negative")

    length = len(text)
    if length <= max_chunk_size:
        return [Chunk(content=text, start_offset=0, end_offset=length, chunk_index=0)]

    boundary_floor = int(max_chunk_size * BOUNDARY_SEARCH_FRACTION)
    chunks: list[Chunk] = []
    start = 0

    while start < length:
        end = min(start + max_chunk_size, length)

        if end < length:
            window = text[start:end]
            breakpoint_ = max(window.rfind(".", boundary_floor), window.rfind("\n", boundary_floor))
            if breakpoint_ != -1:
                end = start + breakpoint_ + 1

        chunks.append(
            Chunk(
                content=text[start:end],
                start_offset=start,
                end_offset=end,
                chunk_index=len(chunks),
            )
        )

        if end >= length:
            break
        # Always move forward, even when overlap is as large as the window.
        start = max(end - overlap, start + 1)

    return chunks
