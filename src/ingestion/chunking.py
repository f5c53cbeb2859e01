"""Character-window chunking with overlap and sentence-boundary snapping."""

from __future__ import annotations

from typing import Any

from src.ingestion.models import Chunk

SENTENCE_BREAKS = (".", "!", "?", "\n")


def _find_breakpoint(text: str, start: int, end: int) -> int | None:
    """Index just past the last sentence break inside ``text[start:end]``."""
    last_break = max(text.rfind(mark, start, end) for mark in SENTENCE_BREAKS)
    if last_break < 0:
        return None
    return last_break + 1


def chunk_text(
    text: str,
    max_chunk_size: int = 8000,
    overlap: int = 200,
    metadata: dict[str, Any] | None = None,
) -> list[Chunk]:
    """Split *text* into overlapping chunks of at most *max_chunk_size* characters.

    Each window is cut at the last sentence terminator or newline inside it,
    provided that cut lies past the window midpoint; otherwise the window is
    cut at its raw edge. The next window starts *overlap* characters before
    the previous cut. Chunk content is kept verbatim so that dropping the
    overlap from every chunk after the first reconstructs *text*.

    Args:
        text: Document text.
        max_chunk_size: Upper bound on chunk length in characters.
        overlap: Characters shared between consecutive chunks.
        metadata: Copied into every chunk's metadata, alongside ``total_chunks``.

    Returns:
        List of :class:`Chunk` instances with sequential ``chunk_index``.
    """
    if max_chunk_size <= 0:
        msg = f"max_chunk_size must be positive, got {max_chunk_size}"
        raise ValueError(msg)
    if not 0 <= overlap < max_chunk_size / 2:
        msg = f"overlap must be in [0, {max_chunk_size // 2}), got {overlap}"
        raise ValueError(msg)

    base = dict(metadata or {})
    if not text:
        return []

    if len(text) <= max_chunk_size:
        return [Chunk(content=text, chunk_index=0, metadata={**base, "total_chunks": 1})]

    chunks: list[Chunk] = []
    start = 0
    while start < len(text):
        end = min(start + max_chunk_size, len(text))
        breakpoint_ = end

        if end < len(text):
            candidate = _find_breakpoint(text, start, end)
            if candidate is not None and candidate - 1 > start + max_chunk_size // 2:
                breakpoint_ = candidate

        chunks.append(
            Chunk(
                content=text[start:breakpoint_],
                chunk_index=len(chunks),
                metadata={**base, "total_chunks": 0},
            )
        )

        if breakpoint_ >= len(text):
            break
        start = max(breakpoint_ - overlap, 0)

    # The total is only known once splitting is done.
    for chunk in chunks:
        chunk.metadata["total_chunks"] = len(chunks)

    return chunks
