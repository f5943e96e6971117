"""Abstract base class for chunking strategies."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

__all__ = ["BaseChunker"]

logger = logging.getLogger(__name__)


class BaseChunker(ABC):
    """Base class for all chunking strategies.

    Subclasses split a file's text into an ordered list of windows.
    """

    @abstractmethod
    def split(self, text: str) -> list[str]:
        """Split text into chunks.

        Args:
            text: Full text of one source file.

        Returns:
            Ordered list of chunk texts; empty for empty input.

        Raises:
            ChunkError: If chunking fails.
        """
