"""Abstract base class for text extraction strategies."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import PurePath

__all__ = ["BaseExtractor"]

logger = logging.getLogger(__name__)


class BaseExtractor(ABC):
    """Base class for all text extractors.

    Subclasses turn one file into indexable plain text. Failures are
    reported as ``None`` so that indexing of other files continues.
    """

    @abstractmethod
    def extract(self, abs_path: str, rel_path: str, file_size: int) -> str | None:
        """Extract plain text from a file.

        Args:
            abs_path: Absolute path of the file on disk.
            rel_path: Path relative to the indexed root (for logs and caches).
            file_size: Current size of the file in bytes.

        Returns:
            Extracted text, or ``None`` if the file could not be read.
        """

    @abstractmethod
    def supported_extensions(self) -> frozenset[str]:
        """Return the set of lowercase file extensions this extractor handles.

        Extensions include the leading dot, e.g. ``{".pdf"}``. An empty set
        marks a catch-all extractor.
        """

    def can_extract(self, path: str) -> bool:
        """Check whether this extractor handles the given file."""
        return PurePath(path).suffix.lower() in self.supported_extensions()
