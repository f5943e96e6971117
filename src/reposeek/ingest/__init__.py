"""Text extraction: per-file-type strategies for turning files into text."""

from __future__ import annotations

from typing import TYPE_CHECKING

from reposeek.ingest.base import BaseExtractor
from reposeek.ingest.cache import CACHE_FILE_NAME, CacheEntry, ExtractionCache, cache_path_for
from reposeek.ingest.pdf import PdfExtractor, is_pdf
from reposeek.ingest.text import TextExtractor

if TYPE_CHECKING:
    from pathlib import Path

__all__ = [
    "CACHE_FILE_NAME",
    "BaseExtractor",
    "CacheEntry",
    "ExtractionCache",
    "ExtractorSet",
    "PdfExtractor",
    "TextExtractor",
    "cache_path_for",
    "is_pdf",
]


class ExtractorSet:
    """Routes each file to the extractor registered for its extension.

    The first extractor whose extensions claim a file wins; unclaimed files
    go to the default extractor.
    """

    def __init__(
        self,
        extractors: list[BaseExtractor] | None = None,
        default: BaseExtractor | None = None,
    ) -> None:
        self.default = default or TextExtractor()
        self._extractors = list(extractors or [])

    @classmethod
    def with_pdf_cache(cls, cache_path: Path) -> ExtractorSet:
        """Default set: UTF-8 text for everything, cached PyMuPDF for ``.pdf``."""
        return cls([PdfExtractor(ExtractionCache(cache_path))])

    def for_path(self, path: str) -> BaseExtractor:
        for extractor in self._extractors:
            if extractor.can_extract(path):
                return extractor
        return self.default

    def extract(self, abs_path: str, rel_path: str, file_size: int) -> str | None:
        """Extract text with the extractor matching ``rel_path``."""
        return self.for_path(rel_path).extract(abs_path, rel_path, file_size)

    @property
    def pdf(self) -> PdfExtractor | None:
        """The PDF extractor, when one is registered."""
        for extractor in self._extractors:
            if isinstance(extractor, PdfExtractor):
                return extractor
        return None
