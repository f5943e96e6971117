"""FastMCP server exposing the search service as MCP tools.

Design: 1 process = 1 indexed root. Indexing runs on a background thread so
the transport is available immediately; queries made before the first pass
completes get a not-ready message instead of partial results.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING, TypeVar

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.server.transport_security import TransportSecuritySettings
from starlette.responses import JSONResponse

from reposeek.exceptions import InvalidRequestError, ReposeekError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from starlette.requests import Request

    from reposeek.service import SearchService

__all__ = [
    "IndexWorker",
    "create_mcp_server",
    "run_server",
    "transport_security_settings",
]

_T = TypeVar("_T")

logger = logging.getLogger(__name__)

NOT_READY_MESSAGE = "Index is still building. Try again shortly (see server_status)."


class IndexWorker:
    """Runs index build passes on a daemon thread, one at a time."""

    def __init__(self, service: SearchService) -> None:
        self.service = service
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.last_error: str = ""

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """Start a pass unless one is already running.

        Returns:
            ``True`` if a new pass was started.
        """
        with self._lock:
            if self.running:
                return False
            self._thread = threading.Thread(target=self._run, name="reposeek-index", daemon=True)
            self._thread.start()
            return True

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        try:
            report = self.service.reindex()
        except ReposeekError as e:
            self.last_error = str(e)
            logger.error("Indexing failed: %s", e)
            return
        self.last_error = ""
        logger.info(
            "Indexing pass finished (%s): %d chunks, %d embedded",
            report.mode,
            report.chunks_total,
            report.chunks_embedded,
        )


def _dump(payload: object) -> str:
    return json.dumps(payload, ensure_ascii=False)


def transport_security_settings(
    host: str,
    port: int,
    allowed_hosts: Sequence[str] = (),
    enabled: bool = True,
) -> TransportSecuritySettings:
    """Host-header checks for the HTTP transport.

    Without an explicit ``allowed_hosts`` list, only loopback names and the
    configured bind address are accepted, with and without the port.
    """
    hosts = list(allowed_hosts) or [
        "127.0.0.1",
        f"127.0.0.1:{port}",
        "localhost",
        f"localhost:{port}",
        host,
        f"{host}:{port}",
    ]
    return TransportSecuritySettings(
        enable_dns_rebinding_protection=enabled,
        allowed_hosts=list(dict.fromkeys(hosts)),
    )


def create_mcp_server(
    service: SearchService,
    worker: IndexWorker | None = None,
    folder_info_name: str = "REPO_ROOT",
    host: str = "127.0.0.1",
    port: int = 3000,
    transport_security: TransportSecuritySettings | None = None,
) -> FastMCP:
    """Create an MCP server for one search service.

    Args:
        service: The service backing every tool.
        worker: Background indexer used by ``reindex``; created when omitted.
        folder_info_name: How tool descriptions refer to the indexed folder.
        host: Bind address for the HTTP transport.
        port: Bind port for the HTTP transport.
        transport_security: Host-header checks; loopback-only when omitted.

    Returns:
        Configured FastMCP server instance.
    """
    mcp = FastMCP(
        name="reposeek",
        host=host,
        port=port,
        transport_security=transport_security or transport_security_settings(host, port),
    )
    worker = worker or IndexWorker(service)

    def _call(fn: Callable[..., _T], *args: object) -> _T:
        try:
            return fn(*args)
        except InvalidRequestError as e:
            raise ToolError(str(e)) from e
        except ReposeekError as e:
            logger.error("Tool call failed: %s", e)
            raise ToolError(f"Internal error: {e}") from e

    @mcp.tool(
        description=(
            f"Semantically search files under {folder_info_name} and return relevant "
            "snippets (path, snippet, score, lineCount, fileSize)."
        )
    )
    def rag_query(query: str, top_k: int = 5) -> str:
        if not service.ready:
            return NOT_READY_MESSAGE
        return _dump(_call(service.search, query, top_k))

    @mcp.tool(
        description=(
            f"Read a specific file under {folder_info_name}, optionally a 1-based "
            "inclusive line range."
        )
    )
    def read_file(path: str, startLine: int | None = None, endLine: int | None = None) -> str:  # noqa: N803
        return _call(service.read_range, path, startLine, endLine)

    @mcp.tool(
        description=(
            f"List files and folders under {folder_info_name}. Directories first; "
            "includeExtensions filters files only."
        )
    )
    def list_files(
        dir: str = "",  # noqa: A002
        recursive: bool = False,
        maxDepth: int | None = None,  # noqa: N803
        includeExtensions: list[str] | None = None,  # noqa: N803
        limit: int | None = None,
    ) -> str:
        return _dump(
            _call(service.list_directory, dir, recursive, maxDepth, includeExtensions, limit)
        )

    @mcp.tool(description=f"Re-scan {folder_info_name} and embed new or changed files.")
    def reindex() -> str:
        if worker.start():
            return "Reindex started."
        return "Reindex already in progress."

    @mcp.tool(description="Indexing progress and server metadata.")
    def server_status() -> str:
        payload = service.status()
        if worker.last_error:
            payload["lastError"] = worker.last_error
        return _dump(payload)

    @mcp.custom_route("/health", methods=["GET"])
    async def health(request: Request) -> JSONResponse:
        return JSONResponse(service.server_status.to_dict())

    return mcp


def run_server(
    service: SearchService,
    transport: str = "stdio",
    host: str = "127.0.0.1",
    port: int = 3000,
    folder_info_name: str = "REPO_ROOT",
    allowed_hosts: Sequence[str] = (),
    dns_rebinding_protection: bool = True,
) -> None:
    """Start background indexing and serve until the transport closes."""
    worker = IndexWorker(service)
    security = transport_security_settings(host, port, allowed_hosts, dns_rebinding_protection)
    mcp = create_mcp_server(service, worker, folder_info_name, host, port, security)
    service.server_status.transport = transport

    worker.start()
    if transport == "http":
        logger.info("Streamable HTTP listening at http://%s:%d/mcp", host, port)
        if not dns_rebinding_protection:
            logger.warning("DNS rebinding protection is disabled")
        mcp.run(transport="streamable-http")
    else:
        mcp.run(transport="stdio")
