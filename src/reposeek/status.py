"""Indexing progress and server status.

Both objects are created once by the caller at startup and handed to the
indexer; only the indexer mutates them, health checks read them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from reposeek import __version__

__all__ = ["IndexStatus", "ServerStatus"]

logger = logging.getLogger(__name__)


@dataclass
class IndexStatus:
    """Progress counters of the build/update worker.

    ``ready`` flips to ``True`` once, after the first pass in which every
    chunk carries an embedding, and never goes back.
    """

    files_discovered: int = 0
    chunks_total: int = 0
    chunks_embedded: int = 0
    ready: bool = False

    def set_totals(self, files: int, chunks: int) -> None:
        self.files_discovered = files
        self.chunks_total = chunks

    def inc_embedded(self, count: int = 1) -> None:
        self.chunks_embedded += count

    def reset_progress(self) -> None:
        """Zero the counters at the start of a pass; ``ready`` is untouched."""
        self.files_discovered = 0
        self.chunks_total = 0
        self.chunks_embedded = 0

    def mark_ready(self) -> None:
        if not self.ready:
            logger.info("Index ready")
        self.ready = True

    def to_dict(self) -> dict[str, object]:
        return {
            "filesDiscovered": self.files_discovered,
            "chunksTotal": self.chunks_total,
            "chunksEmbedded": self.chunks_embedded,
            "ready": self.ready,
        }


@dataclass
class ServerStatus:
    """Runtime status exposed by the health endpoint and ``status`` command."""

    repo_root: str = ""
    model_name: str = ""
    transport: str = "unknown"
    version: str = __version__
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    indexing: IndexStatus = field(default_factory=IndexStatus)

    @property
    def ready(self) -> bool:
        return self.indexing.ready

    def to_dict(self) -> dict[str, object]:
        return {
            "version": self.version,
            "repoRoot": self.repo_root,
            "modelName": self.model_name,
            "transport": self.transport,
            "ready": self.ready,
            "startedAt": self.started_at,
            "indexing": {
                k: v for k, v in self.indexing.to_dict().items() if k != "ready"
            },
        }
