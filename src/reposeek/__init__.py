"""reposeek: local semantic search over a repository tree."""

__version__ = "0.3.0"
