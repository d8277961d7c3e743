#!/usr/bin/env python3
"""
ADT MCP Server - Model Context Protocol interface for the ABAP Development Tools API.

Supports stdio transport (desktop clients) and streamable HTTP.
Run with: python -m adt_mcp.server

Tool groups:
- discovery: login, logout, dropSession, annotations, object types
- objects: search, structure, source, path, version history, package contents
- classes: class components, service bindings
- code analysis: definitions, usage references, documentation, tree nodes
- ddic: dictionary elements, packages, table contents, SQL
- healthcheck: built in, never touches the backend
"""  # noqa: I001

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
import sys
import time
from typing import Any

from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from mcp.types import INVALID_PARAMS, METHOD_NOT_FOUND, CallToolResult, Tool

from adt_mcp import __version__
from adt_mcp.client import AdtClient
from adt_mcp.config import AdtMcpConfig, ConfigError, load_config
from adt_mcp.envelope import encode_failure, encode_success, error_code, tool_error
from adt_mcp.handlers import HANDLER_CLASSES, ToolHandler
from adt_mcp.observability import ObservabilityContext, setup_logging
from adt_mcp.prompts import INSTRUCTIONS
from adt_mcp.session import SessionGate

logger = logging.getLogger(__name__)

HEALTHCHECK = "healthcheck"

HEALTHCHECK_TOOL = Tool(
    name=HEALTHCHECK,
    description="Check server health and connectivity",
    inputSchema={"type": "object", "properties": {}},
)


class AdtMcpServer:
    """ADT MCP Server implementation.

    Owns the routing table (tool name -> handler group) and is the single
    place where tool faults are turned into error envelopes.
    """

    def __init__(
        self,
        config: AdtMcpConfig | None = None,
        client: AdtClient | None = None,
        handlers: list[ToolHandler] | None = None,
        obs: ObservabilityContext | None = None,
    ):
        self.config = config or AdtMcpConfig()
        self.server = Server("adt-mcp", version=__version__, instructions=INSTRUCTIONS)
        self.obs = obs or ObservabilityContext(self.config.observability)
        self.client = client or AdtClient.from_config(self.config.adt)
        self.session = SessionGate(self.client)

        if handlers is None:
            handlers = [cls(self.client, self.session, self.obs) for cls in HANDLER_CLASSES]
        self.handlers = handlers

        self.tools: list[Tool] = []
        self.routes: dict[str, ToolHandler] = {}
        self.validators: dict[str, Draft7Validator] = {}
        self.duplicate_tools: list[str] = []
        self._build_routing()

        self._register_handlers()
        logger.info(f"ADT MCP Server initialized ({len(self.tools)} tools)")

    def _build_routing(self) -> None:
        """Build the name -> handler table. First registration of a name wins."""
        for handler in self.handlers:
            for tool in handler.get_tools():
                if tool.name in self.routes or tool.name == HEALTHCHECK:
                    logger.warning(
                        f"Duplicate tool name {tool.name!r} in {type(handler).__name__} ignored"
                    )
                    self.duplicate_tools.append(tool.name)
                    continue
                self.routes[tool.name] = handler
                self.validators[tool.name] = Draft7Validator(tool.inputSchema)
                self.tools.append(tool)
        self.tools.append(HEALTHCHECK_TOOL)

    def _register_handlers(self) -> None:
        """Register MCP protocol handlers."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            logger.debug("list_tools called")
            return self.list_tools()

        # Arguments are validated in invoke() so failures keep our envelope shape
        @self.server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: dict[str, Any] | None) -> CallToolResult:
            return await self.invoke(name, arguments)

    def list_tools(self) -> list[Tool]:
        """Return the tool catalog: every group's tools, then the healthcheck."""
        return list(self.tools)

    async def invoke(self, name: str, arguments: Any = None) -> CallToolResult:
        """Handle one tool invocation. Never raises for tool-level faults."""
        cid = self.obs.correlation_id()
        start = time.perf_counter()
        error_msg = None

        logger.info(f"call_tool: {name}", extra={"correlation_id": cid, "tool": name})

        try:
            result = await self._dispatch(name, arguments)
            envelope = encode_success(result)
        except McpError as e:
            error_msg = e.error.message
            envelope = encode_failure(e)
        except Exception as e:
            error_msg = str(e)
            logger.exception(
                f"Tool {name} failed: {e}", extra={"correlation_id": cid, "tool": name}
            )
            envelope = encode_failure(e)

        latency_ms = (time.perf_counter() - start) * 1000
        code = error_code(envelope)
        self.obs.audit_call(cid, name, latency_ms, code)

        logger.info(
            f"call_tool done: {name}",
            extra={
                "correlation_id": cid,
                "tool": name,
                "latency_ms": round(latency_ms, 2),
                "status": "ok" if code is None else "error",
                "error": error_msg,
                "error_code": code,
            },
        )
        return envelope

    async def _dispatch(self, name: str, arguments: Any) -> Any:
        if name == HEALTHCHECK:
            return self._healthcheck()

        handler = self.routes.get(name)
        if handler is None:
            raise tool_error(METHOD_NOT_FOUND, f"Unknown tool: {name}")

        args = self._validate(name, arguments)
        return await handler.handle(name, args)

    def _validate(self, name: str, arguments: Any) -> dict[str, Any]:
        """Check the argument bag against the tool's input schema."""
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise tool_error(INVALID_PARAMS, f"Invalid arguments for {name}: expected an object")

        error = best_match(self.validators[name].iter_errors(arguments))
        if error is not None:
            where = ".".join(str(p) for p in error.absolute_path)
            reason = f"{where}: {error.message}" if where else error.message
            raise tool_error(INVALID_PARAMS, f"Invalid arguments for {name}: {reason}")
        return arguments

    def _healthcheck(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    def get_metrics(self) -> dict[str, Any]:
        """Read-only metrics snapshot for diagnostics."""
        return self.obs.get_stats()

    async def aclose(self) -> None:
        await self.client.close()

    async def run(self) -> None:
        """Run the server with stdio transport."""
        logger.info("Starting ADT MCP server (stdio transport)")
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            await self.aclose()


def main() -> None:
    """Entry point for the ADT MCP server."""
    import argparse

    parser = argparse.ArgumentParser(description="ADT MCP Server")
    parser.add_argument(
        "--config",
        "-c",
        help="Path to adt-mcp.toml config file",
        default=None,
    )
    parser.add_argument("--env-file", help="Path to a .env file", default=None)
    parser.add_argument(
        "--transport",
        "-t",
        choices=["stdio", "http"],
        default=None,
        help="Override transport",
    )
    parser.add_argument("--host", default=None, help="HTTP bind address")
    parser.add_argument("--port", "-p", type=int, default=None, help="HTTP port")
    parser.add_argument(
        "--log-level",
        "-l",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Override log level",
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config, env_file=args.env_file)
    except ConfigError as e:
        logging.basicConfig(level=logging.ERROR, stream=sys.stderr)
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    if args.transport:
        config.server.transport = args.transport
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.log_level:
        config.server.log_level = args.log_level
        config.observability.log_level = args.log_level

    setup_logging(config.observability)

    logger.info(f"Config loaded: backend={config.adt.url}, user={config.adt.user}")
    logger.info(
        f"Server: transport={config.server.transport}, host={config.server.host}, "
        f"port={config.server.port}"
    )

    server = AdtMcpServer(config)

    if config.server.transport == "http":
        from adt_mcp.transport import MCPHttpServer

        MCPHttpServer(server, config).run()
    else:
        asyncio.run(server.run())


if __name__ == "__main__":
    main()
