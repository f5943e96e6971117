"""Abstract base class for embedding providers and vector helpers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = ["BaseEmbedder", "cosine_similarity"]

logger = logging.getLogger(__name__)

_EPSILON = 1e-10


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity ``dot / (|a| * |b| + eps)``.

    Vectors of different length are compared over the shorter prefix.
    """
    n = min(len(a), len(b))
    va = np.asarray(a[:n], dtype=np.float64)
    vb = np.asarray(b[:n], dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb)) + _EPSILON
    return float(np.dot(va, vb)) / denom


class BaseEmbedder(ABC):
    """Base class for all embedding providers.

    Subclasses turn one text into one fixed-length, L2-normalized vector.
    Calls are made one chunk at a time by the indexer.
    """

    @abstractmethod
    def embed(self, text: str) -> tuple[float, ...]:
        """Generate an embedding for one chunk of text.

        Args:
            text: Chunk text.

        Returns:
            Embedding vector as a tuple of floats.

        Raises:
            EmbeddingError: If embedding generation fails.
        """

    def embed_query(self, text: str) -> tuple[float, ...]:
        """Generate an embedding for a search query.

        Defaults to :meth:`embed`; providers with asymmetric query encoding
        override this.
        """
        return self.embed(text)

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier recorded in the persisted index."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the dimensionality of the embedding vectors."""
