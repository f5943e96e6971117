"""Project manager for reposeek.

Handles project initialization, config resolution, and project root discovery.
A project is any directory holding a ``.reposeek/`` folder; running without
one falls back to default settings rooted at the working directory.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from reposeek.config import (
    ReposeekConfig,
    apply_env_overrides,
    default_config,
    load_config,
    save_config,
)
from reposeek.exceptions import ProjectError

__all__ = [
    "CONFIG_FILE",
    "PROJECT_DIR",
    "ProjectManager",
    "ProjectStatus",
]

logger = logging.getLogger(__name__)

PROJECT_DIR = ".reposeek"
CONFIG_FILE = "config.toml"


@dataclass
class ProjectStatus:
    """Summary of the current project state."""

    initialized: bool
    root: Path
    index_root: Path
    store_path: Path | None
    chunk_count: int
    file_count: int
    config: ReposeekConfig | None


class ProjectManager:
    """Manages reposeek project lifecycle."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = root or Path.cwd()

    @property
    def project_dir(self) -> Path:
        return self.root / PROJECT_DIR

    @property
    def config_path(self) -> Path:
        return self.project_dir / CONFIG_FILE

    @property
    def is_initialized(self) -> bool:
        return self.project_dir.is_dir() and self.config_path.exists()

    def init(self, index_root: str = "") -> Path:
        """Initialize a new reposeek project.

        Creates ``.reposeek/`` with a default config. Safe to call on an
        already-initialized project; the existing config is preserved.

        Returns the ``.reposeek/`` directory path.

        Raises:
            ProjectError: If the project directory cannot be created.
        """
        try:
            self.project_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Failed to create %s: %s", self.project_dir, e)
            raise ProjectError(f"Cannot create project directory {self.project_dir}: {e}") from e

        if self.config_path.exists():
            config = load_config(self.config_path)
            logger.info("Existing config found at %s", self.config_path)
        else:
            config = default_config()

        if index_root:
            config.index.root = index_root

        save_config(config, self.config_path)
        logger.info("Initialized reposeek project at %s", self.project_dir)
        return self.project_dir

    def load(self, env_overrides: bool = True) -> ReposeekConfig:
        """Load the project config (defaults when uninitialized) plus env overrides."""
        config = load_config(self.config_path) if self.is_initialized else default_config()
        if env_overrides:
            apply_env_overrides(config)
        return config

    def index_root(self, config: ReposeekConfig) -> Path:
        """The directory to index; relative roots resolve against the project root."""
        raw = config.index.root.strip()
        if not raw:
            return self.root.resolve()
        path = Path(raw).expanduser()
        return (path if path.is_absolute() else self.root / path).resolve()

    def store_path(self, config: ReposeekConfig) -> Path | None:
        """Where the index is persisted; ``None`` disables persistence."""
        raw = config.index.store_path.strip()
        if not raw:
            return None
        path = Path(raw).expanduser()
        return path if path.is_absolute() else self.root / path

    def status(self) -> ProjectStatus:
        """Get current project status from the config and the persisted index."""
        config = self.load() if self.is_initialized else None
        effective = config or self.load()
        store = self.store_path(effective)
        chunks, files = _count_stored(store)

        return ProjectStatus(
            initialized=self.is_initialized,
            root=self.root,
            index_root=self.index_root(effective),
            store_path=store,
            chunk_count=chunks,
            file_count=files,
            config=config,
        )

    @staticmethod
    def find_project_root(start: Path | None = None) -> Path | None:
        """Walk up from start directory to find a ``.reposeek/`` directory.

        Returns the project root (parent of ``.reposeek/``) or None if not found.
        """
        current = (start or Path.cwd()).resolve()
        while True:
            if (current / PROJECT_DIR).is_dir():
                return current
            parent = current.parent
            if parent == current:
                return None
            current = parent


# ── Module-level helpers ────────────────────────────────────────────


def _count_stored(store_path: Path | None) -> tuple[int, int]:
    """Count chunks and distinct files in a persisted index without decoding vectors."""
    if store_path is None or not store_path.exists():
        return 0, 0
    try:
        data = json.loads(store_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("Cannot read index store %s: %s", store_path, e)
        return 0, 0
    docs = data.get("docs") if isinstance(data, dict) else None
    if not isinstance(docs, list):
        return 0, 0
    paths = {d.get("path") for d in docs if isinstance(d, dict)}
    return len(docs), len(paths)
