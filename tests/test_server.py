"""Tests for reposeek.server: MCP tools, health route and background indexing."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import pytest
from conftest import FakeEmbedder, make_index
from mcp.server.fastmcp.exceptions import ToolError
from starlette.testclient import TestClient

from reposeek.exceptions import EmbeddingError
from reposeek.server import (
    NOT_READY_MESSAGE,
    IndexWorker,
    create_mcp_server,
    transport_security_settings,
)
from reposeek.service import SearchService

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from mcp.server.fastmcp import FastMCP


class FailingEmbedder(FakeEmbedder):
    def embed(self, text: str) -> tuple[float, ...]:
        raise EmbeddingError("model unavailable")


@pytest.fixture
def service(repo: Path, tmp_path: Path) -> SearchService:
    index = make_index(repo, FakeEmbedder(), store_path=tmp_path / "state" / "index.json")
    return SearchService(index)


@pytest.fixture
def mcp(service: SearchService) -> FastMCP:
    return create_mcp_server(service, folder_info_name="WORKSPACE")


def _tool(mcp: FastMCP, name: str) -> Callable[..., str]:
    tool = mcp._tool_manager.get_tool(name)
    assert tool is not None, name
    return tool.fn


class TestIndexWorker:
    def test_runs_build_in_background(self, service: SearchService):
        worker = IndexWorker(service)
        assert worker.start() is True
        worker.join(timeout=30)
        assert not worker.running
        assert service.ready
        assert worker.last_error == ""

    def test_records_failure(self, repo: Path):
        service = SearchService(make_index(repo, FailingEmbedder()))
        worker = IndexWorker(service)
        worker.start()
        worker.join(timeout=30)
        assert "model unavailable" in worker.last_error
        assert not service.ready


class TestTools:
    def test_registers_expected_tools(self, mcp: FastMCP):
        tools = asyncio.run(mcp.list_tools())
        names = {t.name for t in tools}
        assert names == {"rag_query", "read_file", "list_files", "reindex", "server_status"}
        rag = next(t for t in tools if t.name == "rag_query")
        assert "WORKSPACE" in (rag.description or "")

    def test_rag_query_before_ready(self, mcp: FastMCP):
        assert _tool(mcp, "rag_query")("retry") == NOT_READY_MESSAGE

    def test_rag_query_after_build(self, mcp: FastMCP, service: SearchService):
        service.reindex()
        payload = json.loads(_tool(mcp, "rag_query")("retry backoff", 2))
        assert len(payload["matches"]) == 2

    def test_rag_query_missing_query(self, mcp: FastMCP, service: SearchService):
        service.reindex()
        with pytest.raises(ToolError, match="Missing query"):
            _tool(mcp, "rag_query")("")

    def test_read_file(self, mcp: FastMCP):
        text = _tool(mcp, "read_file")("src/parser.py", 1, 1)
        assert text == "class TokenParser:"

    def test_read_file_outside_root(self, mcp: FastMCP):
        with pytest.raises(ToolError, match="outside root"):
            _tool(mcp, "read_file")("../secrets.txt")

    @pytest.mark.parametrize("tool", ["read_file", "list_files"])
    def test_nul_byte_path_is_a_request_error(self, mcp: FastMCP, tool: str):
        with pytest.raises(ToolError) as excinfo:
            _tool(mcp, tool)("src\x00/retry.py")
        assert "Internal error" not in str(excinfo.value)

    def test_list_files(self, mcp: FastMCP):
        payload = json.loads(_tool(mcp, "list_files")("src"))
        assert [e["path"] for e in payload["entries"]] == ["src/parser.py", "src/retry.py"]

    def test_list_files_extension_filter(self, mcp: FastMCP):
        payload = json.loads(_tool(mcp, "list_files")("", True, None, ["md"]))
        assert [e["path"] for e in payload["entries"]] == ["docs/empty.md", "docs/guide.md"]

    def test_reindex_starts_worker(self, service: SearchService):
        worker = IndexWorker(service)
        mcp = create_mcp_server(service, worker)
        assert _tool(mcp, "reindex")() == "Reindex started."
        worker.join(timeout=30)
        assert service.ready

    def test_server_status(self, mcp: FastMCP, service: SearchService):
        service.reindex()
        payload = json.loads(_tool(mcp, "server_status")())
        assert payload["ready"] is True
        assert payload["chunksEmbedded"] == payload["chunksTotal"]
        assert "lastError" not in payload

    def test_server_status_reports_last_error(self, repo: Path):
        service = SearchService(make_index(repo, FailingEmbedder()))
        worker = IndexWorker(service)
        mcp = create_mcp_server(service, worker)
        worker.start()
        worker.join(timeout=30)
        payload = json.loads(_tool(mcp, "server_status")())
        assert "model unavailable" in payload["lastError"]


class TestHealthRoute:
    def test_health_payload(self, mcp: FastMCP, service: SearchService, repo: Path):
        client = TestClient(mcp.streamable_http_app())
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["ready"] is False
        assert body["repoRoot"] == str(repo)
        assert set(body["indexing"]) == {"filesDiscovered", "chunksTotal", "chunksEmbedded"}

    def test_health_after_build(self, mcp: FastMCP, service: SearchService):
        service.reindex()
        client = TestClient(mcp.streamable_http_app())
        body = client.get("/health").json()
        assert body["ready"] is True
        assert body["indexing"]["chunksEmbedded"] == body["indexing"]["chunksTotal"]


class TestTransportSecurity:
    def test_default_allows_loopback_and_bind_address(self):
        settings = transport_security_settings("10.1.2.3", 8123)
        assert settings.enable_dns_rebinding_protection is True
        assert settings.allowed_hosts == [
            "127.0.0.1",
            "127.0.0.1:8123",
            "localhost",
            "localhost:8123",
            "10.1.2.3",
            "10.1.2.3:8123",
        ]

    def test_loopback_bind_has_no_duplicates(self):
        settings = transport_security_settings("127.0.0.1", 3000)
        assert settings.allowed_hosts == [
            "127.0.0.1",
            "127.0.0.1:3000",
            "localhost",
            "localhost:3000",
        ]

    def test_explicit_allow_list_replaces_defaults(self):
        settings = transport_security_settings("127.0.0.1", 3000, ["code.internal:3000"], False)
        assert settings.allowed_hosts == ["code.internal:3000"]
        assert settings.enable_dns_rebinding_protection is False

    def test_server_enables_protection_by_default(self, mcp: FastMCP):
        security = mcp.settings.transport_security
        assert security is not None
        assert security.enable_dns_rebinding_protection is True
        assert "localhost:3000" in security.allowed_hosts

    def test_foreign_host_header_is_rejected(self, mcp: FastMCP):
        with TestClient(mcp.streamable_http_app()) as client:
            response = client.post(
                "/mcp",
                headers={
                    "Host": "attacker.example:3000",
                    "Accept": "application/json, text/event-stream",
                    "Content-Type": "application/json",
                },
                json={"jsonrpc": "2.0", "id": 1, "method": "ping"},
            )
        assert response.status_code in (400, 421)
        assert "Host" in response.text
