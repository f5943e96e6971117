"""Index builder and incremental updater for reposeek.

Composes discovery → extraction → chunking → embedding → persistence via
constructor injection and owns the resulting in-memory corpus.

Lifecycle::

    EMPTY → COLD_BUILDING → READY
    EMPTY → LOADING → INCREMENTAL_UPDATING → READY

Calling :meth:`Index.build` again (a "reindex") restarts at ``LOADING``.
"""

from __future__ import annotations

import enum
import logging
import re
import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING

from reposeek.discovery import discover_files
from reposeek.exceptions import IndexBuildError, ReposeekError
from reposeek.persistence import load_index, save_index
from reposeek.search import rank
from reposeek.status import IndexStatus
from reposeek.types import Chunk

if TYPE_CHECKING:
    from reposeek.chunk.base import BaseChunker
    from reposeek.embed.base import BaseEmbedder
    from reposeek.ingest import ExtractorSet
    from reposeek.types import DiscoveredFile, Match

__all__ = ["BuildReport", "Index", "IndexSettings", "IndexState", "count_lines"]

logger = logging.getLogger(__name__)

_NEWLINE_RE = re.compile(r"\r?\n")


def count_lines(text: str) -> int:
    """Number of newline-delimited lines, as :func:`read_range` numbers them."""
    return len(_NEWLINE_RE.split(text))


class IndexState(enum.Enum):
    EMPTY = "empty"
    LOADING = "loading"
    COLD_BUILDING = "cold_building"
    INCREMENTAL_UPDATING = "incremental_updating"
    READY = "ready"


@dataclass(frozen=True)
class IndexSettings:
    """What to index and where to persist it."""

    root: Path
    allowed_ext: tuple[str, ...]
    excluded: tuple[str, ...] = ()
    store_path: Path | None = None


@dataclass(frozen=True)
class BuildReport:
    """Outcome of one build or update pass."""

    mode: str  # "cold" | "incremental" | "unchanged"
    files_discovered: int
    files_changed: int
    files_removed: int
    chunks_embedded: int
    chunks_total: int


class Index:
    """Owns the chunk corpus and the pipeline that keeps it current.

    All collaborators are injected, making the index fully testable with
    fake embedders and extractors.

    Usage::

        index = Index(
            settings=IndexSettings(root=repo, allowed_ext=("py", "md")),
            extractors=ExtractorSet.with_pdf_cache(cache_path),
            chunker=SlidingWindowChunker(800, 120),
            embedder=embedder,
            status=IndexStatus(),
        )
        index.build()
        matches = index.search("where is the retry policy", top_k=5)
    """

    def __init__(
        self,
        settings: IndexSettings,
        extractors: ExtractorSet,
        chunker: BaseChunker,
        embedder: BaseEmbedder,
        status: IndexStatus | None = None,
        chunk_size: int | None = None,
        chunk_overlap: int | None = None,
    ) -> None:
        self.settings = settings
        self.extractors = extractors
        self.chunker = chunker
        self.embedder = embedder
        self.status = status if status is not None else IndexStatus()
        # Compatibility metadata recorded in the store; defaults to the chunker's values
        self.chunk_size = chunk_size if chunk_size is not None else getattr(chunker, "size", 0)
        self.chunk_overlap = (
            chunk_overlap if chunk_overlap is not None else getattr(chunker, "overlap", 0)
        )
        self._docs: list[Chunk] = []
        self._state = IndexState.EMPTY
        self._lock = threading.RLock()
        self._build_lock = threading.Lock()

    # ── Read side ───────────────────────────────────────────────────

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def ready(self) -> bool:
        return self.status.ready

    def docs(self) -> tuple[Chunk, ...]:
        """Snapshot of the corpus, in corpus order."""
        with self._lock:
            return tuple(self._docs)

    def search(self, query: str, top_k: object = 5) -> list[Match]:
        """Embed ``query`` once and rank the corpus against it.

        Raises:
            EmbeddingError: If the query cannot be embedded.
        """
        query_vec = self.embedder.embed_query(query)
        return rank(self.docs(), query_vec, top_k)

    # ── Build side ──────────────────────────────────────────────────

    def build(self) -> BuildReport:
        """Cold build, or warm load plus incremental update when a store exists.

        Raises:
            EmbeddingError: If the embedding backend fails (the pass is aborted).
            IndexBuildError: On any other unexpected failure.
        """
        with self._build_lock:
            previous = self._state
            try:
                self.status.reset_progress()
                self._state = IndexState.LOADING
                loaded = load_index(
                    self.settings.store_path,
                    self.chunk_size,
                    self.chunk_overlap,
                    self.embedder.model_name,
                )
                if loaded is None:
                    report = self._cold_build()
                else:
                    report = self._incremental_update(loaded)
            except ReposeekError:
                self._state = IndexState.READY if self.ready else previous
                raise
            except Exception as e:
                self._state = IndexState.READY if self.ready else previous
                raise IndexBuildError(f"Index build failed for {self.settings.root}: {e}") from e

            self._state = IndexState.READY
            return report

    def _publish(self, docs: list[Chunk]) -> None:
        with self._lock:
            self._docs = docs

    def _persist(self) -> None:
        save_index(
            self.settings.store_path,
            self.docs(),
            self.chunk_size,
            self.chunk_overlap,
            self.embedder.model_name,
        )

    def _discover(self) -> list[DiscoveredFile]:
        files = discover_files(
            self.settings.root, self.settings.allowed_ext, self.settings.excluded
        )
        logger.info("Loading files from %s ... (%d files)", self.settings.root, len(files))
        return files

    def _chunk_file(self, file: DiscoveredFile, next_id: int) -> list[Chunk]:
        """Extract and chunk one file; unreadable files yield no chunks."""
        text = self.extractors.extract(file.abs_path, file.rel_path, file.size)
        if text is None:
            return []
        line_count = count_lines(text)
        return [
            Chunk(
                id=str(next_id + i),
                path=file.rel_path,
                chunk_index=i,
                text=window,
                file_size=file.size,
                line_count=line_count,
            )
            for i, window in enumerate(self.chunker.split(text))
        ]

    def _embed_all(self, chunks: list[Chunk]) -> list[Chunk]:
        """Embed chunks one at a time, in order, updating progress."""
        embedded: list[Chunk] = []
        total = len(chunks)
        for i, chunk in enumerate(chunks):
            if i % 200 == 0:
                logger.info("Embedding %d/%d", i, total)
            elif i % 50 == 0:
                logger.debug("Embedding progress: %d/%d (%.1f%%)", i, total, i / total * 100)
            embedded.append(replace(chunk, embedding=self.embedder.embed(chunk.text)))
            self.status.inc_embedded()
        return embedded

    def _cold_build(self) -> BuildReport:
        self._state = IndexState.COLD_BUILDING
        files = self._discover()

        pending: list[Chunk] = []
        for n, file in enumerate(files, start=1):
            pending.extend(self._chunk_file(file, len(pending)))
            if n % 100 == 0:
                logger.debug("Processed %d/%d files", n, len(files))

        logger.info(
            "Created %d chunks. Generating embeddings... (first run may take a while)",
            len(pending),
        )
        self.status.set_totals(len(files), len(pending))

        docs = self._embed_all(pending)
        self._publish(docs)
        logger.info("Embeddings ready.")
        self.status.mark_ready()
        self._persist()

        return BuildReport(
            mode="cold",
            files_discovered=len(files),
            files_changed=len(files),
            files_removed=0,
            chunks_embedded=len(docs),
            chunks_total=len(docs),
        )

    def _incremental_update(self, loaded: list[Chunk]) -> BuildReport:
        self._publish(list(loaded))
        self._state = IndexState.INCREMENTAL_UPDATING
        files = self._discover()

        prior_size: dict[str, int] = {}
        for chunk in loaded:
            prior_size.setdefault(chunk.path, chunk.file_size)

        current = {f.rel_path for f in files}
        removed = {p for p in prior_size if p not in current}
        changed = [
            f for f in files if f.rel_path not in prior_size or prior_size[f.rel_path] != f.size
        ]
        purge = removed | {f.rel_path for f in changed}

        if not removed and not changed:
            self.status.set_totals(len(files), len(loaded))
            self.status.inc_embedded(len(loaded))
            self.status.mark_ready()
            logger.info("Index up to date (%d chunks); no re-embedding needed", len(loaded))
            return BuildReport(
                mode="unchanged",
                files_discovered=len(files),
                files_changed=0,
                files_removed=0,
                chunks_embedded=0,
                chunks_total=len(loaded),
            )

        kept = [c for c in loaded if c.path not in purge]
        next_id = max((c.numeric_id for c in loaded), default=-1) + 1
        logger.info(
            "Incremental update: %d changed/new, %d removed file(s)", len(changed), len(removed)
        )

        pending: list[Chunk] = []
        for file in changed:
            pending.extend(self._chunk_file(file, next_id + len(pending)))

        self.status.set_totals(len(files), len(kept) + len(pending))
        fresh = self._embed_all(pending)
        docs = kept + fresh
        self._publish(docs)

        self.status.set_totals(len(files), len(docs))
        self.status.inc_embedded(len(docs) - len(fresh))
        self.status.mark_ready()
        self._persist()

        return BuildReport(
            mode="incremental",
            files_discovered=len(files),
            files_changed=len(changed),
            files_removed=len(removed),
            chunks_embedded=len(fresh),
            chunks_total=len(docs),
        )
