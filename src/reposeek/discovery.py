"""File discovery for indexing.

Walks the root tree and yields the regular, non-empty files whose extension
is in the allow-list. Hidden (dot-prefixed) files and folders are skipped.
Exclusions are either plain folder names, which prune that folder wherever it
appears, or glob patterns (anything containing ``*``, ``?`` or ``[``), which
are matched against root-relative POSIX paths.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from reposeek.types import DiscoveredFile

if TYPE_CHECKING:
    from collections.abc import Iterable

__all__ = ["ExclusionRules", "discover_files", "matches_glob"]

logger = logging.getLogger(__name__)

_GLOB_CHARS = frozenset("*?[")


def matches_glob(rel_path: str, pattern: str) -> bool:
    """Check if a path matches a glob pattern, with ``**/`` any-depth support."""
    if fnmatch.fnmatch(rel_path, pattern):
        return True
    if pattern.startswith("**/"):
        return matches_glob(rel_path, pattern[3:])
    return False


class ExclusionRules:
    """Compiled form of the ``excluded_folders`` setting."""

    def __init__(self, patterns: Iterable[str]) -> None:
        self.folder_names: set[str] = set()
        self.globs: list[str] = []
        for raw in patterns:
            pattern = raw.strip().replace("\\", "/").strip("/")
            if not pattern:
                continue
            if _GLOB_CHARS.intersection(pattern):
                self.globs.append(pattern)
            else:
                self.folder_names.add(pattern)

    def excludes_dir(self, rel_dir: str, name: str) -> bool:
        if name in self.folder_names or rel_dir in self.folder_names:
            return True
        return any(
            matches_glob(rel_dir, g) or matches_glob(rel_dir + "/", g) for g in self.globs
        )

    def excludes_file(self, rel_path: str) -> bool:
        return any(matches_glob(rel_path, g) for g in self.globs)


def _normalize_extensions(allowed_ext: Iterable[str]) -> frozenset[str]:
    return frozenset("." + e.strip().lstrip(".").lower() for e in allowed_ext if e.strip())


def discover_files(
    root: Path,
    allowed_ext: Iterable[str],
    excluded: Iterable[str] = (),
) -> list[DiscoveredFile]:
    """Enumerate indexable files under ``root``.

    Args:
        root: Directory to walk.
        allowed_ext: Extensions without the leading dot (``"py"``, ``"md"``).
        excluded: Folder names or glob patterns to skip.

    Returns:
        Files sorted by relative path. Zero-byte files, symlinks, and
        unreadable entries are left out.
    """
    root = root.resolve()
    extensions = _normalize_extensions(allowed_ext)
    rules = ExclusionRules(excluded)
    found: list[DiscoveredFile] = []

    if not root.is_dir():
        logger.warning("Index root %s is not a directory", root)
        return found

    def _on_error(err: OSError) -> None:
        logger.warning("Cannot scan %s: %s", err.filename, err.strerror)

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        current = Path(dirpath)
        rel_dir = current.relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else rel_dir + "/"

        # Prune in place so os.walk never descends into skipped folders
        dirnames[:] = sorted(
            d
            for d in dirnames
            if not d.startswith(".")
            and not (current / d).is_symlink()
            and not rules.excludes_dir(prefix + d, d)
        )

        for name in sorted(filenames):
            if name.startswith("."):
                continue
            rel_path = prefix + name
            if Path(name).suffix.lower() not in extensions:
                continue
            if rules.excludes_file(rel_path):
                continue

            abs_path = current / name
            try:
                if abs_path.is_symlink() or not abs_path.is_file():
                    continue
                size = abs_path.stat().st_size
            except OSError as e:
                logger.warning("Cannot stat %s: %s", rel_path, e)
                continue
            if size == 0:
                logger.debug("Skipping empty file %s", rel_path)
                continue

            found.append(DiscoveredFile(rel_path=rel_path, abs_path=str(abs_path), size=size))

    found.sort(key=lambda f: f.rel_path)
    logger.debug("Discovered %d files under %s", len(found), root)
    return found
