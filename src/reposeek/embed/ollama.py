"""Ollama embedding provider using the /api/embed endpoint.

Alternative to the in-process model for machines that already run Ollama.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from reposeek.embed.base import BaseEmbedder
from reposeek.exceptions import EmbeddingError

if TYPE_CHECKING:
    from reposeek.config import ReposeekConfig

__all__ = ["OllamaEmbedder"]

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "http://localhost:11434"
_DEFAULT_MODEL = "nomic-embed-text"


class OllamaEmbedder(BaseEmbedder):
    """Embedding provider using a local Ollama instance.

    Calls ``/api/embed`` with a single input per request; the indexer
    embeds chunks strictly one after another.

    Config fields used::

        [embedding]
        provider = "ollama"
        model = "nomic-embed-text"
        base_url = ""           # empty = http://localhost:11434
    """

    _DEFAULT_TIMEOUT = 120  # seconds

    def __init__(self, config: ReposeekConfig) -> None:
        model = config.embedding.model
        # The sentence-transformers default is a hub id Ollama cannot serve
        if not model or "/" in model:
            model = _DEFAULT_MODEL
        self._model = model
        self._base_url = (config.embedding.base_url or _DEFAULT_BASE_URL).rstrip("/")
        self._dimension: int | None = None

    @property
    def model_name(self) -> str:
        return self._model

    def embed(self, text: str) -> tuple[float, ...]:
        """Generate an embedding for one text via Ollama.

        Raises:
            EmbeddingError: If Ollama is not reachable or returns an error.
        """
        return tuple(self._call_embed([text])[0])

    @property
    def dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Warning:
            First access makes a network call to measure the model.
        """
        if self._dimension is None:
            vec = self.embed("dimension check")
            self._dimension = len(vec)
        return self._dimension

    def _call_embed(self, texts: list[str]) -> list[list[float]]:
        """Call the Ollama /api/embed endpoint.

        Raises:
            EmbeddingError: On connection or API errors.
        """
        url = f"{self._base_url}/api/embed"
        payload = json.dumps({"model": self._model, "input": texts}).encode("utf-8")
        req = Request(url, data=payload, headers={"Content-Type": "application/json"})

        try:
            with urlopen(req, timeout=self._DEFAULT_TIMEOUT) as resp:
                body = resp.read()
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise EmbeddingError(f"Ollama returned invalid JSON from {url}") from e
        except HTTPError as e:
            raise EmbeddingError(f"Ollama API error (HTTP {e.code}): {e.reason}") from e
        except (ConnectionError, URLError) as e:
            raise EmbeddingError(
                f"Ollama not reachable at {self._base_url}. Is Ollama running? Error: {e}"
            ) from e

        embeddings: list[list[float]] = data.get("embeddings", [])
        if len(embeddings) != len(texts):
            raise EmbeddingError(
                f"Ollama returned {len(embeddings)} embeddings for {len(texts)} inputs"
            )

        if embeddings and self._dimension is None:
            self._dimension = len(embeddings[0])

        return embeddings
