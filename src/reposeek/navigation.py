"""Sandboxed file navigation: read line ranges and list directories.

Pure filesystem I/O with no index dependency. Every caller-supplied path is
resolved through :func:`resolve_within_root` before anything is touched.
Unlike discovery, hidden entries are listable when named explicitly.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from pathlib import Path
from typing import TYPE_CHECKING

from reposeek.exceptions import InvalidRequestError, OutOfBoundsError
from reposeek.types import DirEntry

if TYPE_CHECKING:
    from collections.abc import Iterable

__all__ = [
    "DEFAULT_LIST_LIMIT",
    "MAX_LIST_LIMIT",
    "list_directory",
    "normalize_dir",
    "read_text",
    "resolve_within_root",
    "slice_lines",
]

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 500
MAX_LIST_LIMIT = 2000

_NEWLINE_RE = re.compile(r"\r?\n")


def resolve_within_root(root: Path, rel_path: str) -> Path:
    """Resolve ``rel_path`` against ``root``, refusing escapes.

    Args:
        root: The sandbox root.
        rel_path: Caller-supplied path, relative to ``root``.

    Returns:
        The resolved absolute path (``root`` itself for ``""`` or ``"."``).

    Raises:
        OutOfBoundsError: If the path resolves outside ``root``.
        InvalidRequestError: If the path cannot be resolved (e.g. embedded NUL).
    """
    resolved_root = root.resolve()
    try:
        full_path = (resolved_root / rel_path).resolve()
    except (ValueError, OSError) as e:
        raise InvalidRequestError(f"Invalid path: {rel_path!r}") from e
    if full_path != resolved_root and not full_path.is_relative_to(resolved_root):
        raise OutOfBoundsError(f"Path outside root: {rel_path}")
    return full_path


def normalize_dir(dir_arg: str | None) -> str:
    """Normalize a directory argument to a root-relative path.

    ``"."`` and ``"./"`` map to the root, a leading ``./`` or separator is
    stripped, anything else (hidden names included) passes through.
    """
    if not dir_arg:
        return ""
    d = dir_arg.replace("\\", "/")
    if d in (".", "./"):
        return ""
    if d.startswith("./"):
        d = d[2:]
    return d.lstrip("/")


def _clamp_limit(limit: object) -> int:
    if limit is None or isinstance(limit, bool):
        return DEFAULT_LIST_LIMIT
    try:
        n = int(limit)  # type: ignore[call-overload]
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_LIST_LIMIT
    return max(1, min(MAX_LIST_LIMIT, n))


def _normalize_extensions(extensions: Iterable[str] | None) -> frozenset[str]:
    if not extensions:
        return frozenset()
    return frozenset(e.strip().lstrip(".").lower() for e in extensions if e.strip())


def list_directory(
    root: Path,
    dir_arg: str | None = None,
    recursive: bool = False,
    max_depth: int | None = None,
    include_extensions: Iterable[str] | None = None,
    limit: object = None,
) -> list[DirEntry]:
    """List entries under a directory of ``root``.

    Args:
        root: The sandbox root.
        dir_arg: Directory relative to ``root`` (default: the root).
        recursive: Descend into subdirectories.
        max_depth: Deepest level to list when recursive; 0 means immediate
            children only, ``None`` means unbounded.
        include_extensions: Only list files with these extensions. When set,
            directories are traversed but not reported.
        limit: Maximum number of entries (default 500, at most 2000).

    Returns:
        Entries sorted directories first, then by path.

    Raises:
        OutOfBoundsError: If the directory lies outside ``root``.
        InvalidRequestError: If the directory is missing or not a directory.
    """
    rel_dir = normalize_dir(dir_arg)
    target = resolve_within_root(root, rel_dir)
    if not target.exists():
        raise InvalidRequestError(f"Directory not found: {rel_dir or '.'}")
    if not target.is_dir():
        raise InvalidRequestError(f"Not a directory: {rel_dir or '.'}")

    resolved_root = root.resolve()
    cap = _clamp_limit(limit)
    extensions = _normalize_extensions(include_extensions)
    deepest = 0 if not recursive else (None if max_depth is None else max(0, int(max_depth)))

    entries: list[DirEntry] = []
    queue: deque[tuple[Path, int]] = deque([(target, 0)])
    while queue and len(entries) < cap:
        current, depth = queue.popleft()
        try:
            children = sorted(current.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.warning("Cannot list %s: %s", current, e)
            continue

        for child in children:
            rel = child.relative_to(resolved_root).as_posix()
            try:
                is_dir = child.is_dir()
                is_link = child.is_symlink()
            except OSError:
                continue

            if is_dir:
                if deepest is None or depth < deepest:
                    if not is_link:
                        queue.append((child, depth + 1))
                if not extensions and len(entries) < cap:
                    entries.append(DirEntry(path=rel, type="directory"))
                continue

            if extensions and child.suffix.lstrip(".").lower() not in extensions:
                continue
            if len(entries) < cap:
                try:
                    size: int | None = child.stat().st_size
                except OSError:
                    size = None
                entries.append(DirEntry(path=rel, type="file", size=size))

    entries.sort(key=lambda e: (e.type != "directory", e.path))
    return entries


def slice_lines(text: str, start_line: int | None = None, end_line: int | None = None) -> str:
    """Return the 1-based inclusive line range of ``text``.

    With neither bound the text is returned unchanged. Bounds outside the
    text clamp to its extent.
    """
    if start_line is None and end_line is None:
        return text
    lines = _NEWLINE_RE.split(text)
    start = max(0, (start_line if start_line is not None else 1) - 1)
    end = max(0, min(len(lines), end_line if end_line is not None else len(lines)))
    return "\n".join(lines[start:end])


def read_text(root: Path, rel_path: str) -> tuple[Path, str]:
    """Read a file under ``root`` as UTF-8 text.

    Returns:
        The resolved path and its content.

    Raises:
        OutOfBoundsError: If the path lies outside ``root``.
        InvalidRequestError: If the path is missing, not a file, or unreadable.
    """
    abs_path = resolve_within_root(root, rel_path)
    if not abs_path.is_file():
        raise InvalidRequestError(f"File not found: {rel_path}")
    try:
        return abs_path, abs_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise InvalidRequestError(f"Cannot read {rel_path}: {e}") from e
