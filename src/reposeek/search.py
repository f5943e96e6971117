"""Similarity ranking over the in-memory corpus.

A full linear scan: every embedded chunk is scored by cosine similarity
against the query vector. No approximate index is used.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from reposeek.embed.base import cosine_similarity
from reposeek.types import Match

if TYPE_CHECKING:
    from collections.abc import Sequence

    from reposeek.types import Chunk

__all__ = ["DEFAULT_TOP_K", "MAX_TOP_K", "clamp_top_k", "rank"]

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
MAX_TOP_K = 50
SCORE_DIGITS = 4
_EPSILON = 1e-10


def clamp_top_k(top_k: object) -> int:
    """Clamp a caller-supplied ``top_k`` into ``[1, MAX_TOP_K]``."""
    if isinstance(top_k, bool):
        return DEFAULT_TOP_K
    try:
        k = int(top_k)  # type: ignore[call-overload]
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_TOP_K
    return max(1, min(MAX_TOP_K, k))


def _score_all(chunks: Sequence[Chunk], query: Sequence[float]) -> list[float]:
    """Cosine score of every chunk; vectorized when dimensions agree."""
    dims = {len(c.embedding) for c in chunks if c.embedding is not None}
    if dims == {len(query)}:
        matrix = np.asarray([c.embedding for c in chunks], dtype=np.float64)
        q = np.asarray(query, dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q) + _EPSILON
        return [float(s) for s in (matrix @ q) / norms]
    return [cosine_similarity(c.embedding, query) for c in chunks]  # type: ignore[arg-type]


def rank(chunks: Sequence[Chunk], query: Sequence[float], top_k: object) -> list[Match]:
    """Return the ``top_k`` best chunks for ``query``, best first.

    Chunks without an embedding are skipped. Ties keep corpus order.
    """
    candidates = [c for c in chunks if c.embedding is not None]
    if not candidates or not query:
        return []

    scores = _score_all(candidates, query)
    order = sorted(range(len(candidates)), key=lambda i: scores[i], reverse=True)
    limit = clamp_top_k(top_k)

    return [
        Match(
            path=candidates[i].path,
            score=round(scores[i], SCORE_DIGITS),
            snippet=candidates[i].text,
            line_count=candidates[i].line_count,
            file_size=candidates[i].file_size,
        )
        for i in order[:limit]
    ]
