"""Tests for reposeek.service: the operation surface."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import patch

import pymupdf
import pytest
from conftest import FakeEmbedder, make_index

from reposeek.config import ReposeekConfig
from reposeek.exceptions import InvalidRequestError, NotIndexedError, OutOfBoundsError, PluginError
from reposeek.indexer import Index
from reposeek.project import ProjectManager
from reposeek.registry import ProviderRegistry
from reposeek.service import SearchService, create_service

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def service(repo: Path, tmp_path: Path) -> SearchService:
    index = make_index(repo, FakeEmbedder(), store_path=tmp_path / "state" / "index.json")
    return SearchService(index)


@pytest.fixture
def built(service: SearchService) -> SearchService:
    service.reindex()
    return service


def _write_pdf(path: Path, text: str) -> None:
    doc = pymupdf.open()
    doc.new_page().insert_text(pymupdf.Point(72, 72), text)
    doc.save(str(path))
    doc.close()


class TestSearch:
    def test_returns_matches_payload(self, built: SearchService):
        result = built.search("def retry_with_backoff(fn):", top_k=2)
        assert set(result) == {"matches"}
        assert len(result["matches"]) == 2
        first = result["matches"][0]
        assert set(first) == {"path", "score", "snippet", "lineCount", "fileSize"}

    @pytest.mark.parametrize("query", [None, "", "   "])
    def test_missing_query(self, built: SearchService, query: object):
        with pytest.raises(InvalidRequestError, match="Missing query"):
            built.search(query)

    def test_default_top_k_is_five(self, built: SearchService):
        assert len(built.search("parse tokens")["matches"]) == 5


class TestReadRange:
    def test_full_file(self, service: SearchService, repo: Path):
        content = (repo / "src" / "parser.py").read_text(encoding="utf-8")
        assert service.read_range("src/parser.py") == content

    def test_line_range(self, service: SearchService):
        assert service.read_range("src/parser.py", 2, 2) == "    def parse(self, tokens):"

    def test_range_clamps(self, service: SearchService):
        text = service.read_range("src/parser.py", 0, 100)
        assert text.startswith("class TokenParser:")

    def test_numeric_strings_are_accepted(self, service: SearchService):
        assert service.read_range("src/parser.py", "1", "1") == "class TokenParser:"

    def test_non_numeric_bounds(self, service: SearchService):
        with pytest.raises(InvalidRequestError, match="startLine"):
            service.read_range("src/parser.py", "first")

    def test_missing_path(self, service: SearchService):
        with pytest.raises(InvalidRequestError, match="Missing path"):
            service.read_range("")

    def test_missing_file(self, service: SearchService):
        with pytest.raises(InvalidRequestError, match="File not found"):
            service.read_range("src/absent.py")

    def test_outside_root(self, service: SearchService):
        with pytest.raises(OutOfBoundsError):
            service.read_range("../../etc/passwd")

    def test_pdf_not_indexed(self, service: SearchService, repo: Path):
        _write_pdf(repo / "docs" / "manual.pdf", "Rate limits")
        with pytest.raises(NotIndexedError):
            service.read_range("docs/manual.pdf")

    def test_pdf_served_from_cache(self, service: SearchService, repo: Path):
        _write_pdf(repo / "docs" / "manual.pdf", "Rate limits")
        service.reindex()
        with patch("reposeek.ingest.pdf._extract_text") as mock_extract:
            text = service.read_range("docs/manual.pdf")
        mock_extract.assert_not_called()
        assert "Rate limits" in text

    def test_pdf_changed_since_index(self, service: SearchService, repo: Path):
        pdf = repo / "docs" / "manual.pdf"
        _write_pdf(pdf, "Rate limits")
        service.reindex()
        _write_pdf(pdf, "Rate limits, burst sizes and quotas per tenant")
        with pytest.raises(NotIndexedError):
            service.read_range("docs/manual.pdf")


class TestListDirectory:
    def test_returns_entries_payload(self, service: SearchService):
        result = service.list_directory("src")
        assert result == {
            "entries": [
                {"path": "src/parser.py", "type": "file", "size": 70},
                {"path": "src/retry.py", "type": "file", "size": 44},
            ]
        }

    def test_defaults_to_root(self, service: SearchService):
        paths = [e["path"] for e in service.list_directory()["entries"]]
        assert "src" in paths

    def test_missing_dir(self, service: SearchService):
        with pytest.raises(InvalidRequestError):
            service.list_directory("nope")


class TestStatusAndReindex:
    def test_status_before_build(self, service: SearchService, repo: Path):
        status = service.status()
        assert status["ready"] is False
        assert status["chunksEmbedded"] == 0
        assert status["repoRoot"] == str(repo)
        assert status["modelName"] == "fake-model"

    def test_status_after_build(self, built: SearchService):
        status = built.status()
        assert status["ready"] is True
        assert status["filesDiscovered"] == 3
        assert status["chunksEmbedded"] == status["chunksTotal"] > 0

    def test_reindex_reports_mode(self, built: SearchService):
        assert built.reindex().mode == "unchanged"


class TestCreateService:
    def test_wires_from_config(self, repo: Path, tmp_path: Path):
        registry = ProviderRegistry()
        registry.register("embedding", "fake", lambda cfg: FakeEmbedder())
        config = ReposeekConfig()
        config.embedding.provider = "fake"
        config.index.root = str(repo)
        config.index.chunk_size = 100
        config.index.chunk_overlap = 100

        service = create_service(config, ProjectManager(tmp_path), registry)

        assert isinstance(service.index, Index)
        assert service.root == repo.resolve()
        assert service.index.settings.store_path == tmp_path / ".reposeek" / "index.json"
        assert service.index.chunk_overlap == 15
        assert service.server_status.model_name == "fake-model"
        assert service.server_status.transport == "stdio"

    def test_unknown_provider(self, tmp_path: Path):
        config = ReposeekConfig()
        config.embedding.provider = "nope"
        with pytest.raises(PluginError):
            create_service(config, ProjectManager(tmp_path), ProviderRegistry())
