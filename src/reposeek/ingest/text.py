"""Plain text extractor: strict UTF-8 read of source and text files."""

from __future__ import annotations

import logging
from pathlib import Path

from reposeek.ingest.base import BaseExtractor

__all__ = ["TextExtractor"]

logger = logging.getLogger(__name__)


class TextExtractor(BaseExtractor):
    """Default extractor: decode the file bytes as UTF-8.

    Content is returned as-is (no whitespace normalization) so that line
    numbers in search results and read ranges stay aligned with the file.
    Files that are not valid UTF-8 are skipped.
    """

    def extract(self, abs_path: str, rel_path: str, file_size: int) -> str | None:
        try:
            raw = Path(abs_path).read_bytes()
        except OSError as e:
            logger.warning("Cannot read %s: %s", rel_path, e)
            return None

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning("Skipping %s: not valid UTF-8 (%s)", rel_path, e.reason)
            return None

        # Strip BOM if present
        if text.startswith("\ufeff"):
            text = text[1:]
        return text

    def supported_extensions(self) -> frozenset[str]:
        """Catch-all: every extension not claimed by another extractor."""
        return frozenset()
