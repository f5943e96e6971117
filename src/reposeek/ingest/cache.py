"""Extraction cache for expensive text formats.

A single JSON file holds the extracted text of every cached file, keyed by
absolute path::

    {"version": 1,
     "entries": {"/abs/doc.pdf": {"pdfPath": "doc.pdf", "pdfSize": 12345,
                                   "extractedAt": "...", "text": "...",
                                   "pageCount": 10}}}

An entry is valid only while the file's byte size is unchanged. Same-size
edits are not detected.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

__all__ = [
    "CACHE_FILE_NAME",
    "CacheEntry",
    "ExtractionCache",
    "cache_path_for",
]

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = "pdf-text-cache.json"
CACHE_VERSION = 1


@dataclass(frozen=True)
class CacheEntry:
    """Immutable record of one cached extraction."""

    rel_path: str
    size: int
    extracted_at: str
    text: str
    page_count: int = 0


def cache_path_for(store_path: Path | None, root: Path) -> Path:
    """Cache file location: beside the index store, else in the indexed root."""
    cache_dir = store_path.parent if store_path is not None else root
    return cache_dir / CACHE_FILE_NAME


def _entry_to_dict(entry: CacheEntry) -> dict[str, object]:
    return {
        "pdfPath": entry.rel_path,
        "pdfSize": entry.size,
        "extractedAt": entry.extracted_at,
        "text": entry.text,
        "pageCount": entry.page_count,
    }


def _entry_from_dict(data: object) -> CacheEntry | None:
    """Deserialize an entry; malformed records yield ``None``."""
    if not isinstance(data, dict):
        return None
    size = data.get("pdfSize")
    text = data.get("text")
    if isinstance(size, bool) or not isinstance(size, int) or not isinstance(text, str):
        return None
    page_count = data.get("pageCount", 0)
    return CacheEntry(
        rel_path=str(data.get("pdfPath", "")),
        size=size,
        extracted_at=str(data.get("extractedAt", "")),
        text=text,
        page_count=page_count if isinstance(page_count, int) else 0,
    )


class ExtractionCache:
    """Lazily loaded, write-through cache of extracted text.

    A missing or corrupt cache file is treated as empty. Save failures are
    logged and otherwise ignored; the in-memory entries stay usable.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._entries: dict[str, CacheEntry] | None = None

    def _load(self) -> dict[str, CacheEntry]:
        if self._entries is not None:
            return self._entries

        entries: dict[str, CacheEntry] = {}
        try:
            raw = self.path.read_text(encoding="utf-8")
            data = json.loads(raw)
        except FileNotFoundError:
            data = None
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable extraction cache %s: %s", self.path, e)
            data = None

        raw_entries = data.get("entries") if isinstance(data, dict) else None
        if isinstance(raw_entries, dict):
            for key, value in raw_entries.items():
                entry = _entry_from_dict(value)
                if entry is not None:
                    entries[str(key)] = entry
            logger.debug("Loaded %d extraction cache entries from %s", len(entries), self.path)

        self._entries = entries
        return entries

    def get(self, abs_path: str, size: int) -> CacheEntry | None:
        """Return the entry for ``abs_path`` if its size matches and text is present."""
        entry = self._load().get(abs_path)
        if entry is None:
            logger.debug("Cache miss for %s", Path(abs_path).name)
            return None
        if entry.size != size or not entry.text:
            logger.debug("Cache stale for %s (size mismatch)", Path(abs_path).name)
            return None
        logger.debug("Cache hit for %s", Path(abs_path).name)
        return entry

    def put(self, abs_path: str, entry: CacheEntry) -> None:
        """Store ``entry`` and write the whole cache file."""
        self._load()[abs_path] = entry
        self.save()

    def save(self) -> bool:
        """Write the cache to disk. Returns ``False`` on failure."""
        entries = self._load()
        data = {
            "version": CACHE_VERSION,
            "entries": {k: _entry_to_dict(v) for k, v in entries.items()},
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            logger.error("Failed to save extraction cache to %s: %s", self.path, e)
            return False
        return True
