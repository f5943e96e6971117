"""Shared fixtures for reposeek tests."""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

import pytest

from reposeek.chunk import SlidingWindowChunker
from reposeek.config import ReposeekConfig, save_config
from reposeek.embed.base import BaseEmbedder
from reposeek.indexer import Index, IndexSettings
from reposeek.ingest import ExtractorSet
from reposeek.project import CONFIG_FILE, PROJECT_DIR
from reposeek.status import IndexStatus

if TYPE_CHECKING:
    from pathlib import Path


class FakeEmbedder(BaseEmbedder):
    """Deterministic bag-of-words embedder: one hashed bucket per word."""

    def __init__(self, dim: int = 32, name: str = "fake-model") -> None:
        self._dim = dim
        self._name = name
        self.calls: list[str] = []

    def embed(self, text: str) -> tuple[float, ...]:
        self.calls.append(text)
        vec = [0.0] * self._dim
        for word in text.lower().split():
            bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % self._dim
            vec[bucket] += 1.0
        return tuple(vec)

    @property
    def model_name(self) -> str:
        return self._name

    @property
    def dimension(self) -> int:
        return self._dim


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A small source tree to index."""
    root = tmp_path / "repo"
    (root / "src").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "node_modules" / "lib").mkdir(parents=True)
    (root / ".hidden").mkdir()

    (root / "src" / "retry.py").write_text(
        "def retry_with_backoff(fn):\n    return fn()\n", encoding="utf-8"
    )
    (root / "src" / "parser.py").write_text(
        "class TokenParser:\n    def parse(self, tokens):\n        return tokens\n",
        encoding="utf-8",
    )
    (root / "docs" / "guide.md").write_text(
        "# Guide\n\nInstall the package and run the server.\n", encoding="utf-8"
    )
    (root / "docs" / "empty.md").write_text("", encoding="utf-8")
    (root / "node_modules" / "lib" / "index.js").write_text("module.exports = 1\n")
    (root / ".hidden" / "secret.py").write_text("TOKEN = 'x'\n")
    (root / "image.png").write_bytes(b"\x89PNG\r\n")
    return root


def make_index(
    root: Path,
    embedder: BaseEmbedder,
    store_path: Path | None = None,
    size: int = 40,
    overlap: int = 10,
    status: IndexStatus | None = None,
) -> Index:
    """Index over ``root`` with small windows so tests produce several chunks."""
    cache_dir = store_path.parent if store_path is not None else root.parent
    return Index(
        settings=IndexSettings(
            root=root,
            allowed_ext=("py", "md", "txt", "pdf"),
            excluded=("node_modules",),
            store_path=store_path,
        ),
        extractors=ExtractorSet.with_pdf_cache(cache_dir / "pdf-text-cache.json"),
        chunker=SlidingWindowChunker(size, overlap),
        embedder=embedder,
        status=status,
    )


@pytest.fixture
def initialized_project(tmp_path: Path) -> Path:
    """A temporary project with .reposeek/ already initialized."""
    project = tmp_path / "project"
    (project / PROJECT_DIR).mkdir(parents=True)
    (project / "src").mkdir()
    (project / "src" / "app.py").write_text("print('hello world')\n", encoding="utf-8")
    save_config(ReposeekConfig(), project / PROJECT_DIR / CONFIG_FILE)
    return project


_ENV_OVERRIDES = (
    "REPO_ROOT",
    "ALLOWED_EXT",
    "EXCLUDED_FOLDERS",
    "CHUNK_SIZE",
    "CHUNK_OVERLAP",
    "INDEX_STORE_PATH",
    "MODEL_NAME",
    "EMBEDDING_PROVIDER",
    "MCP_TRANSPORT",
    "HOST",
    "MCP_PORT",
    "FOLDER_INFO_NAME",
    "ALLOWED_HOSTS",
    "ENABLE_DNS_REBINDING_PROTECTION",
    "VERBOSE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the caller's environment from leaking into config loading."""
    for name in _ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
