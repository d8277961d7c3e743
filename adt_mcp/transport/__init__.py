"""MCP transport layer - streamable HTTP support for network daemon."""

from adt_mcp.transport.http_server import MCPHttpServer

__all__ = ["MCPHttpServer"]
