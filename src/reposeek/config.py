"""Configuration system for reposeek.

Manages project configuration via .reposeek/config.toml with typed dataclasses
and sensible defaults for all values. Environment variables override file
values so the server can be configured from an MCP client definition alone.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

import tomli_w

if sys.version_info >= (3, 12):
    import tomllib
else:
    import tomli as tomllib

from reposeek.exceptions import ConfigError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

_T = TypeVar("_T")

__all__ = [
    "DEFAULT_ALLOWED_EXT",
    "DEFAULT_EXCLUDED_FOLDERS",
    "EmbeddingConfig",
    "IndexConfig",
    "LoggingConfig",
    "ReposeekConfig",
    "ServerConfig",
    "apply_env_overrides",
    "default_config",
    "load_config",
    "save_config",
]

logger = logging.getLogger(__name__)

MAX_CHUNK_SIZE = 8000
MAX_CHUNK_OVERLAP = 4000

DEFAULT_ALLOWED_EXT: tuple[str, ...] = (
    "ts", "tsx", "js", "jsx",
    "py", "cs", "java", "kt", "kts",
    "go", "rs", "cpp", "c", "h", "hpp",
    "rb", "php", "swift", "scala",
    "md", "txt",
    "gradle", "groovy",
    "json", "yaml", "yml", "xml",
    "proto", "properties",
    "pdf",
)  # fmt: skip

DEFAULT_EXCLUDED_FOLDERS: tuple[str, ...] = (
    "node_modules",
    "dist",
    "build",
    ".git",
    "target",
    "bin",
    "obj",
    ".cache",
    "coverage",
    ".nyc_output",
)

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass
class IndexConfig:
    """[index] section."""

    root: str = ""
    allowed_ext: list[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_EXT))
    excluded_folders: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_FOLDERS))
    chunk_size: int = 800
    chunk_overlap: int = 120
    store_path: str = ".reposeek/index.json"


@dataclass
class EmbeddingConfig:
    """[embedding] section."""

    provider: str = "sentence-transformers"
    model: str = "jinaai/jina-embeddings-v2-base-code"
    base_url: str = ""
    cache_dir: str = ""


@dataclass
class ServerConfig:
    """[server] section."""

    transport: str = "stdio"
    host: str = "127.0.0.1"
    port: int = 3000
    folder_info_name: str = "REPO_ROOT"
    dns_rebinding_protection: bool = True
    allowed_hosts: list[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
    """[logging] section."""

    verbose: bool = False


@dataclass
class ReposeekConfig:
    """Root configuration combining all sections."""

    index: IndexConfig = field(default_factory=IndexConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTIONS: dict[str, type] = {
    "index": IndexConfig,
    "embedding": EmbeddingConfig,
    "server": ServerConfig,
    "logging": LoggingConfig,
}


def default_config() -> ReposeekConfig:
    """Return a config with all default values."""
    return ReposeekConfig()


def _config_to_dict(config: ReposeekConfig) -> dict[str, object]:
    """Convert ReposeekConfig to a nested dict suitable for TOML serialization."""
    return {name: dict(vars(getattr(config, name))) for name in _SECTIONS}


def save_config(config: ReposeekConfig, path: Path) -> None:
    """Save configuration to a TOML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = _config_to_dict(config)
    try:
        with path.open("wb") as f:
            tomli_w.dump(data, f)
        logger.info("Saved config to %s", path)
    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        raise ConfigError(f"Failed to save config to {path}: {e}") from e


def _load_section(cls: type[_T], data: dict[str, object]) -> _T:
    """Load a dataclass section from a dict, ignoring unknown keys."""
    known_fields = {f.name for f in cls.__dataclass_fields__.values()}  # type: ignore[attr-defined]
    filtered = {k: v for k, v in data.items() if k in known_fields}
    return cls(**filtered)


def load_config(path: Path) -> ReposeekConfig:
    """Load configuration from a TOML file.

    Missing sections or keys get default values.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        raw = path.read_bytes()
        data = tomllib.loads(raw.decode("utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        logger.error("Failed to load config from %s: %s", path, e)
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    config = ReposeekConfig()
    for name, cls in _SECTIONS.items():
        section = data.get(name)
        if isinstance(section, dict):
            try:
                setattr(config, name, _load_section(cls, section))
            except TypeError as e:
                raise ConfigError(f"Invalid [{name}] section in {path}: {e}") from e

    config.index.chunk_size = _clamp_int(config.index.chunk_size, 800, 1, MAX_CHUNK_SIZE)
    config.index.chunk_overlap = _clamp_int(config.index.chunk_overlap, 120, 0, MAX_CHUNK_OVERLAP)

    logger.info("Loaded config from %s", path)
    return config


# ── Environment overrides ───────────────────────────────────────────


def _split_list(raw: str) -> list[str]:
    return [s.strip() for s in raw.split(",") if s.strip()]


def _clamp_int(value: object, default: int, low: int, high: int) -> int:
    """Coerce to int within [low, high]; anything unparseable yields ``default``."""
    if isinstance(value, bool):
        return default
    try:
        n = int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return default
    if n < low:
        return default
    return min(high, n)


def apply_env_overrides(
    config: ReposeekConfig,
    environ: Mapping[str, str] | None = None,
) -> ReposeekConfig:
    """Apply environment variable overrides onto ``config`` in place.

    Recognized variables: ``REPO_ROOT``, ``ALLOWED_EXT``, ``EXCLUDED_FOLDERS``,
    ``CHUNK_SIZE``, ``CHUNK_OVERLAP``, ``INDEX_STORE_PATH``, ``MODEL_NAME``,
    ``EMBEDDING_PROVIDER``, ``MCP_TRANSPORT``, ``HOST``, ``MCP_PORT``,
    ``FOLDER_INFO_NAME``, ``ALLOWED_HOSTS``, ``ENABLE_DNS_REBINDING_PROTECTION``,
    ``VERBOSE``. Only the literal ``false`` disables rebinding protection.

    Returns:
        The same config object, for chaining.
    """
    env = os.environ if environ is None else environ

    def get(name: str) -> str:
        return (env.get(name) or "").strip()

    if root := get("REPO_ROOT"):
        config.index.root = root
    if raw := get("ALLOWED_EXT"):
        config.index.allowed_ext = [e.lstrip(".") for e in _split_list(raw)]
    if raw := get("EXCLUDED_FOLDERS"):
        config.index.excluded_folders = _split_list(raw)
    if raw := get("CHUNK_SIZE"):
        config.index.chunk_size = _clamp_int(raw, 800, 1, MAX_CHUNK_SIZE)
    if raw := get("CHUNK_OVERLAP"):
        config.index.chunk_overlap = _clamp_int(raw, 120, 0, MAX_CHUNK_OVERLAP)
    if raw := get("INDEX_STORE_PATH"):
        config.index.store_path = raw
    if raw := get("MODEL_NAME"):
        config.embedding.model = raw
    if raw := get("EMBEDDING_PROVIDER"):
        config.embedding.provider = raw.lower()
    if raw := get("MCP_TRANSPORT"):
        config.server.transport = raw.lower()
    if raw := get("HOST"):
        config.server.host = raw
    if raw := get("MCP_PORT"):
        config.server.port = _clamp_int(raw, 3000, 1, 65535)
    if raw := get("FOLDER_INFO_NAME"):
        config.server.folder_info_name = raw
    if raw := get("ALLOWED_HOSTS"):
        config.server.allowed_hosts = _split_list(raw)
    if raw := get("ENABLE_DNS_REBINDING_PROTECTION"):
        config.server.dns_rebinding_protection = raw.lower() != "false"
    if raw := get("VERBOSE"):
        config.logging.verbose = raw.lower() in _TRUTHY

    return config
