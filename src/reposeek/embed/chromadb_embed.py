"""ChromaDB built-in embedding provider using ONNX runtime.

Uses the all-MiniLM-L6-v2 model via ONNX without PyTorch or a server.
Model is auto-downloaded on first use (~80MB).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
from chromadb.utils.embedding_functions import DefaultEmbeddingFunction

from reposeek.embed.base import BaseEmbedder
from reposeek.exceptions import EmbeddingError

if TYPE_CHECKING:
    from reposeek.config import ReposeekConfig

__all__ = ["ChromaDBEmbedder"]

logger = logging.getLogger(__name__)


class ChromaDBEmbedder(BaseEmbedder):
    """Embedding provider using ChromaDB's built-in ONNX embedding function.

    Uses ``all-MiniLM-L6-v2`` (384 dimensions) via ONNX runtime. Vectors are
    re-normalized here so cosine scores match the other providers.

    Config fields used::

        [embedding]
        provider = "chromadb"
    """

    _FIXED_MODEL = "all-MiniLM-L6-v2"

    def __init__(self, config: ReposeekConfig) -> None:
        if config.embedding.model and config.embedding.model != self._FIXED_MODEL:
            logger.warning(
                "ChromaDB provider only supports %s, ignoring model=%r",
                self._FIXED_MODEL,
                config.embedding.model,
            )

        try:
            self._ef = DefaultEmbeddingFunction()
        except Exception as e:
            raise EmbeddingError(f"Failed to initialize ChromaDB embedding function: {e}") from e

        self._dimension: int | None = None
        logger.info("ChromaDBEmbedder initialized (ONNX %s)", self._FIXED_MODEL)

    @property
    def model_name(self) -> str:
        return self._FIXED_MODEL

    def embed(self, text: str) -> tuple[float, ...]:
        """Generate an embedding for one text.

        Raises:
            EmbeddingError: If embedding generation fails.
        """
        try:
            vectors = self._ef([text])
        except Exception as e:
            raise EmbeddingError(f"ChromaDB embedding failed: {e}") from e

        if vectors is None or len(vectors) != 1:
            raise EmbeddingError("ChromaDB returned unexpected result for single input")

        vec = np.asarray(vectors[0], dtype=np.float64)
        norm = float(np.linalg.norm(vec))
        if norm > 0:
            vec = vec / norm

        if self._dimension is None:
            self._dimension = int(vec.shape[0])

        return tuple(float(v) for v in vec)

    @property
    def dimension(self) -> int:
        """Return the dimensionality of the embedding vectors (384 for MiniLM)."""
        if self._dimension is None:
            self._dimension = len(self.embed("dimension check"))
        return self._dimension
