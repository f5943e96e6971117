"""Local embedding provider backed by sentence-transformers.

Default provider for reposeek. Runs the feature-extraction model in-process
with mean pooling and L2 normalization. The model is downloaded once into a
filesystem cache and reused across restarts.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from reposeek.embed.base import BaseEmbedder
from reposeek.exceptions import EmbeddingError

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer

    from reposeek.config import ReposeekConfig

__all__ = ["SentenceTransformerEmbedder", "resolve_cache_dir"]

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "jinaai/jina-embeddings-v2-base-code"

# Model families that ship custom modelling code on the hub
_REMOTE_CODE_PREFIXES = ("jinaai/",)


def resolve_cache_dir(explicit: str = "") -> Path:
    """Pick the model cache directory and make sure it exists.

    Precedence: explicit value, ``TRANSFORMERS_CACHE``, ``./.cache/transformers``.
    """
    raw = explicit.strip() or os.environ.get("TRANSFORMERS_CACHE", "").strip()
    cache_dir = Path(raw) if raw else Path.cwd() / ".cache" / "transformers"
    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("Cannot create model cache directory %s: %s", cache_dir, e)
    return cache_dir


class SentenceTransformerEmbedder(BaseEmbedder):
    """Embedding provider using the sentence-transformers library.

    The model is loaded lazily on first use so that constructing the
    embedder (and the CLI around it) stays cheap.

    Config fields used::

        [embedding]
        provider = "sentence-transformers"
        model = "jinaai/jina-embeddings-v2-base-code"
        cache_dir = ""          # empty = $TRANSFORMERS_CACHE or ./.cache/transformers
    """

    def __init__(self, config: ReposeekConfig) -> None:
        self._model_name = config.embedding.model or DEFAULT_MODEL
        self._cache_dir = config.embedding.cache_dir
        self._model: SentenceTransformer | None = None

    @property
    def model(self) -> SentenceTransformer:
        """Lazy-load the model on first access."""
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as e:
                raise EmbeddingError(
                    "sentence-transformers is required: pip install sentence-transformers"
                ) from e

            cache_dir = resolve_cache_dir(self._cache_dir)
            logger.info("Loading embedding model %s (cache: %s)", self._model_name, cache_dir)
            try:
                self._model = SentenceTransformer(
                    self._model_name,
                    cache_folder=str(cache_dir),
                    trust_remote_code=self._model_name.startswith(_REMOTE_CODE_PREFIXES),
                )
            except Exception as e:
                raise EmbeddingError(f"Failed to load model {self._model_name}: {e}") from e
            logger.info("Model ready: %s", self._model_name)
        return self._model

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimension(self) -> int:
        dim = self.model.get_sentence_embedding_dimension()
        if dim is None:
            return len(self.embed("dimension check"))
        return int(dim)

    def embed(self, text: str) -> tuple[float, ...]:
        """Embed one text with normalization applied (ready for cosine)."""
        model = self.model
        try:
            vec = model.encode(text, convert_to_numpy=True, normalize_embeddings=True)
        except Exception as e:
            raise EmbeddingError(f"sentence-transformers embedding failed: {e}") from e
        return tuple(float(v) for v in vec)
