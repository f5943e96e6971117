"""Chunking engine: fixed-size sliding windows with overlap."""

from reposeek.chunk.base import BaseChunker
from reposeek.chunk.window import SlidingWindowChunker, effective_overlap, split_text

__all__ = ["BaseChunker", "SlidingWindowChunker", "effective_overlap", "split_text"]
