"""Custom exception hierarchy for reposeek."""

__all__ = [
    "ChunkError",
    "ConfigError",
    "EmbeddingError",
    "IndexBuildError",
    "InvalidRequestError",
    "NotIndexedError",
    "OutOfBoundsError",
    "ParseError",
    "PluginError",
    "ProjectError",
    "ReposeekError",
]


class ReposeekError(Exception):
    """Base exception for all reposeek errors."""


class ConfigError(ReposeekError):
    """Raised when configuration loading or validation fails."""


class ProjectError(ReposeekError):
    """Raised when project initialization or discovery fails."""


class ParseError(ReposeekError):
    """Raised when text extraction from a file fails."""


class ChunkError(ReposeekError):
    """Raised when chunking operations fail."""


class EmbeddingError(ReposeekError):
    """Raised when embedding generation fails."""


class IndexBuildError(ReposeekError):
    """Raised when a build or incremental update cannot complete."""


class PluginError(ReposeekError):
    """Raised when plugin loading or registration fails."""


class InvalidRequestError(ReposeekError):
    """Raised when a caller supplies bad input (missing query, bad path, ...)."""


class OutOfBoundsError(InvalidRequestError):
    """Raised when a path resolves outside the configured root."""


class NotIndexedError(InvalidRequestError):
    """Raised when a cached-format file has no valid extraction cached yet."""
