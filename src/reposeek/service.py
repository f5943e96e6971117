"""Search service: the operations exposed to MCP tools and the CLI.

Wraps an :class:`~reposeek.indexer.Index` together with the sandboxed
navigation helpers. Invalid caller input raises
:class:`~reposeek.exceptions.InvalidRequestError` (or a subclass); transports
turn that into a "bad input" result.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from reposeek.chunk import SlidingWindowChunker
from reposeek.exceptions import InvalidRequestError, NotIndexedError
from reposeek.indexer import Index, IndexSettings
from reposeek.ingest import ExtractorSet, cache_path_for, is_pdf
from reposeek.navigation import list_directory, read_text, resolve_within_root, slice_lines
from reposeek.registry import default_registry
from reposeek.status import IndexStatus, ServerStatus

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from reposeek.config import ReposeekConfig
    from reposeek.indexer import BuildReport
    from reposeek.project import ProjectManager
    from reposeek.registry import ProviderRegistry

__all__ = ["SearchService", "create_service"]

logger = logging.getLogger(__name__)


class SearchService:
    """Query, read, list and reindex over one indexed root."""

    def __init__(self, index: Index, server_status: ServerStatus | None = None) -> None:
        self.index = index
        self.server_status = server_status or ServerStatus(
            repo_root=str(index.settings.root),
            model_name=index.embedder.model_name,
            indexing=index.status,
        )

    @property
    def root(self) -> Path:
        return self.index.settings.root

    @property
    def ready(self) -> bool:
        return self.index.ready

    def search(self, query: object, top_k: object = 5) -> dict[str, list[dict[str, object]]]:
        """Rank indexed chunks against ``query``.

        Raises:
            InvalidRequestError: If ``query`` is missing or blank.
            EmbeddingError: If the query cannot be embedded.
        """
        if query is None or not str(query).strip():
            raise InvalidRequestError("Missing query")
        matches = self.index.search(str(query), top_k)
        logger.debug("Query %r → %d matches", query, len(matches))
        return {"matches": [m.to_dict() for m in matches]}

    def read_range(
        self,
        path: object,
        start_line: object = None,
        end_line: object = None,
    ) -> str:
        """Read a file, or a 1-based inclusive line range of it.

        PDFs are served from the extraction cache only.

        Raises:
            InvalidRequestError: If ``path`` is missing or not a readable file.
            OutOfBoundsError: If ``path`` lies outside the root.
            NotIndexedError: If a PDF has no valid cached text.
        """
        if path is None or not str(path).strip():
            raise InvalidRequestError("Missing path")
        rel = str(path)
        start = _optional_int(start_line, "startLine")
        end = _optional_int(end_line, "endLine")

        if is_pdf(rel):
            text = self._read_cached_pdf(rel)
        else:
            _, text = read_text(self.root, rel)
        return slice_lines(text, start, end)

    def _read_cached_pdf(self, rel: str) -> str:
        abs_path = resolve_within_root(self.root, rel)
        if not abs_path.is_file():
            raise InvalidRequestError(f"File not found: {rel}")
        pdf = self.index.extractors.pdf
        text = pdf.get_cached(str(abs_path), abs_path.stat().st_size) if pdf else None
        if text is None:
            raise NotIndexedError(f"PDF not indexed yet (run reindex): {rel}")
        return text

    def list_directory(
        self,
        directory: str | None = None,
        recursive: bool = False,
        max_depth: int | None = None,
        include_extensions: Iterable[str] | None = None,
        limit: object = None,
    ) -> dict[str, list[dict[str, object]]]:
        """List directory entries under the root."""
        entries = list_directory(
            self.root,
            directory,
            recursive=bool(recursive),
            max_depth=_optional_int(max_depth, "maxDepth"),
            include_extensions=include_extensions,
            limit=limit,
        )
        return {"entries": [e.to_dict() for e in entries]}

    def status(self) -> dict[str, object]:
        """Indexing counters plus server metadata, as one flat mapping."""
        payload = self.index.status.to_dict()
        payload.update(
            {
                "version": self.server_status.version,
                "repoRoot": self.server_status.repo_root,
                "modelName": self.server_status.model_name,
                "transport": self.server_status.transport,
                "startedAt": self.server_status.started_at,
            }
        )
        return payload

    def reindex(self) -> BuildReport:
        """Run a build pass (incremental when a compatible store exists)."""
        return self.index.build()


def create_service(
    config: ReposeekConfig,
    project: ProjectManager,
    registry: ProviderRegistry | None = None,
) -> SearchService:
    """Wire a :class:`SearchService` from configuration.

    Raises:
        PluginError: If the embedding provider is unknown.
    """
    registry = registry or default_registry
    root = project.index_root(config)
    store_path = project.store_path(config)

    embedder = registry.create("embedding", config.embedding.provider, config)
    chunker = SlidingWindowChunker(config.index.chunk_size, config.index.chunk_overlap)
    extractors = ExtractorSet.with_pdf_cache(cache_path_for(store_path, root))

    status = IndexStatus()
    index = Index(
        settings=IndexSettings(
            root=root,
            allowed_ext=tuple(config.index.allowed_ext),
            excluded=tuple(config.index.excluded_folders),
            store_path=store_path,
        ),
        extractors=extractors,
        chunker=chunker,
        embedder=embedder,
        status=status,
    )
    server_status = ServerStatus(
        repo_root=str(root),
        model_name=embedder.model_name,
        transport=config.server.transport,
        indexing=status,
    )
    logger.info("Configured index of %s (model %s)", root, embedder.model_name)
    return SearchService(index, server_status)


# ── Module-level helpers ────────────────────────────────────────────


def _optional_int(value: object, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidRequestError(f"{name} must be a number")
    try:
        return int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError, OverflowError) as e:
        raise InvalidRequestError(f"{name} must be a number") from e
