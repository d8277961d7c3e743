"""HTTP server with streamable HTTP transport for MCP daemon mode."""

from __future__ import annotations

from collections.abc import AsyncIterator
import contextlib
import logging
from typing import TYPE_CHECKING

from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from mcp.server.transport_security import TransportSecuritySettings
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.types import Receive, Scope, Send

    from adt_mcp.config import AdtMcpConfig
    from adt_mcp.server import AdtMcpServer

logger = logging.getLogger(__name__)


class _StreamableHTTPApp:
    """ASGI endpoint handing each request to the session manager."""

    def __init__(self, session_manager: StreamableHTTPSessionManager):
        self.session_manager = session_manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.session_manager.handle_request(scope, receive, send)


class MCPHttpServer:
    """
    HTTP server that exposes MCP over the streamable HTTP transport.

    Each POST to /mcp is handled statelessly with a plain JSON response.
    Host and Origin headers are checked against the configured allow-lists.

    Example:
        server = MCPHttpServer(mcp_server, config, port=3000)
        server.run()  # Blocks, serving HTTP
    """

    def __init__(
        self,
        mcp_server: AdtMcpServer,
        config: AdtMcpConfig,
        host: str | None = None,
        port: int | None = None,
    ):
        """
        Initialize HTTP server.

        Args:
            mcp_server: The ADT MCP server instance to expose
            config: Server configuration
            host: Bind address (default from config)
            port: Port number (default from config)
        """
        self.mcp_server = mcp_server
        self.config = config
        self.host = host or config.server.host
        self.port = port or config.server.port

        self.session_manager = StreamableHTTPSessionManager(
            app=mcp_server.server,
            json_response=True,
            stateless=True,
            security_settings=TransportSecuritySettings(
                enable_dns_rebinding_protection=True,
                allowed_hosts=list(config.server.allowed_hosts),
                allowed_origins=list(config.server.allowed_origins),
            ),
        )

        self.app = self._create_app()

        logger.info(f"HTTP server initialized (will bind to {self.host}:{self.port})")

    def _create_app(self) -> Starlette:
        """Create the Starlette ASGI application."""
        routes = [
            Route("/health", endpoint=self._health, methods=["GET"]),
            Route("/metrics", endpoint=self._metrics, methods=["GET"]),
            Route("/mcp", endpoint=_StreamableHTTPApp(self.session_manager)),
        ]
        return Starlette(routes=routes, lifespan=self._lifespan)

    @contextlib.asynccontextmanager
    async def _lifespan(self, app: Starlette) -> AsyncIterator[None]:
        async with self.session_manager.run():
            logger.info("HTTP server starting up")
            try:
                yield
            finally:
                logger.info("HTTP server shutting down")
                await self.mcp_server.aclose()

    async def _health(self, request: Request) -> JSONResponse:
        """
        Liveness endpoint, independent of the backend.

        Returns:
            {"status": "ok", "tools": <count>, "transport": "http"}
        """
        return JSONResponse(
            {
                "status": "ok",
                "tools": len(self.mcp_server.tools),
                "transport": "http",
                "server": "adt-mcp",
            }
        )

    async def _metrics(self, request: Request) -> JSONResponse:
        """Metrics snapshot (counts, failures, latency)."""
        return JSONResponse(self.mcp_server.get_metrics())

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """
        Run the HTTP server (blocks).

        Args:
            host: Override bind address
            port: Override port number
        """
        import uvicorn

        bind_host = host or self.host
        bind_port = port or self.port

        logger.info(f"Starting HTTP server on http://{bind_host}:{bind_port}/mcp")

        uvicorn.run(
            self.app,
            host=bind_host,
            port=bind_port,
            log_level="info",
        )
