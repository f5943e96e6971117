"""Embedding engine: abstract provider interface and concrete providers."""

from reposeek.embed.base import BaseEmbedder, cosine_similarity
from reposeek.embed.chromadb_embed import ChromaDBEmbedder
from reposeek.embed.ollama import OllamaEmbedder
from reposeek.embed.sentence_transformer import SentenceTransformerEmbedder
from reposeek.registry import default_registry

__all__ = [
    "BaseEmbedder",
    "ChromaDBEmbedder",
    "OllamaEmbedder",
    "SentenceTransformerEmbedder",
    "cosine_similarity",
]

# Register built-in embedding providers
default_registry.register(
    "embedding", "sentence-transformers", lambda cfg: SentenceTransformerEmbedder(cfg)
)
default_registry.register("embedding", "ollama", lambda cfg: OllamaEmbedder(cfg))
default_registry.register("embedding", "chromadb", lambda cfg: ChromaDBEmbedder(cfg))
