"""Index data contracts for reposeek.

Frozen dataclasses that flow between indexing stages:
  DiscoveredFile → text → list[str] windows → list[Chunk] → Match
"""

from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "Chunk",
    "DirEntry",
    "DiscoveredFile",
    "Match",
]


@dataclass(frozen=True)
class DiscoveredFile:
    """A regular, non-empty file found under the indexed root."""

    rel_path: str
    abs_path: str
    size: int


@dataclass(frozen=True)
class Chunk:
    """A single window of a source file, the atomic unit of retrieval.

    ``file_size`` and ``line_count`` describe the whole source file and are
    duplicated on every chunk of that file.
    """

    id: str
    path: str
    chunk_index: int
    text: str
    file_size: int
    line_count: int = -1
    embedding: tuple[float, ...] | None = None

    @property
    def numeric_id(self) -> int:
        try:
            return int(self.id)
        except ValueError:
            return -1


@dataclass(frozen=True)
class Match:
    """A search result: chunk text + file metadata + relevance score."""

    path: str
    score: float
    snippet: str
    line_count: int
    file_size: int

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "score": self.score,
            "snippet": self.snippet,
            "lineCount": self.line_count,
            "fileSize": self.file_size,
        }


@dataclass(frozen=True)
class DirEntry:
    """One entry of a directory listing."""

    path: str
    type: str
    size: int | None = None

    def to_dict(self) -> dict[str, object]:
        d: dict[str, object] = {"path": self.path, "type": self.type}
        if self.size is not None:
            d["size"] = self.size
        return d
