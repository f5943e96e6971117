"""Fixed-size sliding-window chunker.

Operates on character positions only: window ``i + 1`` starts
``size - overlap`` characters after window ``i``. The last window may be
shorter than ``size``.
"""

from __future__ import annotations

import logging

from reposeek.chunk.base import BaseChunker
from reposeek.exceptions import ChunkError

__all__ = ["SlidingWindowChunker", "effective_overlap", "split_text"]

logger = logging.getLogger(__name__)

# Fallback overlap ratio used when the configured overlap leaves no stride
FALLBACK_OVERLAP_RATIO = 0.15


def split_text(text: str, size: int, overlap: int) -> list[str]:
    """Split ``text`` into overlapping windows of up to ``size`` characters.

    Requires ``0 <= overlap < size``; callers clamp with
    :func:`effective_overlap` first.

    Raises:
        ChunkError: If ``size`` or ``overlap`` would prevent forward progress.
    """
    if size < 1:
        raise ChunkError(f"chunk size must be >= 1, got {size}")
    if overlap < 0 or overlap >= size:
        raise ChunkError(f"chunk overlap must be in [0, {size}), got {overlap}")

    stride = size - overlap
    out: list[str] = []
    start = 0
    length = len(text)
    while start < length:
        out.append(text[start : start + size])
        if start + size >= length:
            break
        start += stride
    return out


def effective_overlap(size: int, overlap: int) -> int:
    """Return an overlap that leaves a positive stride.

    An overlap >= size falls back to ``floor(size * 0.15)``.
    """
    if overlap < 0:
        return 0
    if overlap >= size:
        return int(size * FALLBACK_OVERLAP_RATIO)
    return overlap


class SlidingWindowChunker(BaseChunker):
    """Deterministic character-window chunker.

    Usage::

        chunker = SlidingWindowChunker(size=800, overlap=120)
        windows = chunker.split(text)
    """

    def __init__(self, size: int = 800, overlap: int = 120) -> None:
        if size < 1:
            raise ChunkError(f"chunk size must be >= 1, got {size}")
        self.size = size
        self.configured_overlap = overlap
        self.overlap = effective_overlap(size, overlap)
        if self.overlap != overlap:
            logger.warning(
                "Chunk overlap %d is not smaller than chunk size %d; using %d instead",
                overlap,
                size,
                self.overlap,
            )

    @property
    def overlap_clamped(self) -> bool:
        """True when the configured overlap had to be corrected."""
        return self.overlap != self.configured_overlap

    def split(self, text: str) -> list[str]:
        return split_text(text, self.size, self.overlap)
