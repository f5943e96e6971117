"""PDF extractor: plain text from PDF pages, cached by file size.

Parsing a PDF is far more expensive than reading a text file, so the
extracted text is kept in an :class:`ExtractionCache` and reused across
restarts until the file's byte size changes.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from reposeek.exceptions import ParseError
from reposeek.ingest.base import BaseExtractor
from reposeek.ingest.cache import CacheEntry

if TYPE_CHECKING:
    from reposeek.ingest.cache import ExtractionCache

__all__ = ["PdfExtractor", "is_pdf"]

logger = logging.getLogger(__name__)

# PyMuPDF text extraction flags: preserve ligatures + whitespace, suppress images
_TEXT_FLAGS = 11


def is_pdf(path: str) -> bool:
    """Check if a file is a PDF based on its extension (case-insensitive)."""
    return Path(path).suffix.lower() == ".pdf"


class PdfExtractor(BaseExtractor):
    """Extractor for PDF documents with a size-keyed text cache."""

    MAX_FILE_SIZE: int = 200 * 1024 * 1024  # 200 MB

    def __init__(self, cache: ExtractionCache) -> None:
        self.cache = cache

    def extract(self, abs_path: str, rel_path: str, file_size: int) -> str | None:
        """Return cached text, or extract, cache and return fresh text.

        Returns ``None`` when the PDF cannot be parsed.
        """
        cached = self.cache.get(abs_path, file_size)
        if cached is not None:
            return cached.text

        logger.debug("Extracting text from %s...", rel_path)
        try:
            text, page_count = _extract_text(Path(abs_path), self.MAX_FILE_SIZE)
        except ParseError as e:
            logger.warning("Failed to extract text from %s: %s", rel_path, e)
            return None

        entry = CacheEntry(
            rel_path=rel_path,
            size=file_size,
            extracted_at=datetime.now(UTC).isoformat(),
            text=text,
            page_count=page_count,
        )
        self.cache.put(abs_path, entry)
        logger.info("Extracted %s: %d pages, %d chars", rel_path, page_count, len(text))
        return text

    def get_cached(self, abs_path: str, file_size: int) -> str | None:
        """Cached text if valid for the current size, without extracting."""
        entry = self.cache.get(abs_path, file_size)
        return entry.text if entry is not None else None

    def supported_extensions(self) -> frozenset[str]:
        """Return supported file extensions."""
        return frozenset({".pdf"})


# ── Module-level helpers ────────────────────────────────────────────


def _check_pdf_safety(path: Path, max_size: int) -> None:
    """Validate PDF magic header and file size.

    Raises:
        ParseError: If the file is not a valid PDF or exceeds size limit.
    """
    try:
        file_size = path.stat().st_size
        with path.open("rb") as f:
            header = f.read(5)
    except OSError as e:
        msg = f"Cannot read PDF file {path.name}: {e}"
        raise ParseError(msg) from e

    if file_size > max_size:
        msg = f"PDF file {path.name} ({file_size} bytes) exceeds maximum size ({max_size} bytes)"
        raise ParseError(msg)

    if header != b"%PDF-":
        msg = f"File {path.name} is not a valid PDF (missing %PDF- header)"
        raise ParseError(msg)


def _extract_text(path: Path, max_size: int) -> tuple[str, int]:
    """Extract page text with PyMuPDF.

    Returns:
        (text, page_count), pages joined by blank lines.

    Raises:
        ParseError: If the PDF cannot be opened or read.
    """
    try:
        import pymupdf
    except ImportError as e:
        raise ParseError("pymupdf is required for PDF extraction: pip install pymupdf") from e

    _check_pdf_safety(path, max_size)

    try:
        doc = pymupdf.open(str(path))
    except (RuntimeError, ValueError, OSError) as e:
        logger.debug("PDF open failure (%s): %s", type(e).__name__, e, exc_info=True)
        raise ParseError(f"Failed to open PDF file {path.name}: {e}") from e

    try:
        pages: list[str] = []
        for page in doc:
            pages.append(page.get_text("text", flags=_TEXT_FLAGS))
        page_count = len(pages)
    except (RuntimeError, ValueError) as e:
        raise ParseError(f"Failed to read PDF file {path.name}: {e}") from e
    finally:
        doc.close()

    return "\n\n".join(p.strip("\n") for p in pages), page_count
