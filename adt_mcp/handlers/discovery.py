"""Session and system discovery tools."""

from __future__ import annotations

from typing import Any

from mcp.types import Tool

from adt_mcp.handlers.base import ToolFunc, ToolHandler

EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}, "required": []}

TOOLS: list[Tool] = [
    Tool(
        name="login",
        description="Open an authenticated session with the ABAP system and fetch a CSRF token.",
        inputSchema=EMPTY_SCHEMA,
    ),
    Tool(
        name="logout",
        description="Log out from the ABAP system and discard the local session state.",
        inputSchema=EMPTY_SCHEMA,
    ),
    Tool(
        name="dropSession",
        description="End the stateful backend session. The next call opens a new one.",
        inputSchema=EMPTY_SCHEMA,
    ),
    Tool(
        name="getAllAnnotations",
        description="Get definitions of all standard CDS annotations.",
        inputSchema=EMPTY_SCHEMA,
    ),
    Tool(
        name="getAllObjectTypes",
        description="Get all standard repository object types known to the system.",
        inputSchema=EMPTY_SCHEMA,
    ),
]


class DiscoveryHandler(ToolHandler):
    group = "discovery"
    TOOLS = TOOLS

    def _build_handlers(self) -> dict[str, ToolFunc]:
        return {
            "login": self._handle_login,
            "logout": self._handle_logout,
            "dropSession": self._handle_drop_session,
            "getAllAnnotations": self._handle_annotation_definitions,
            "getAllObjectTypes": self._handle_object_types,
        }

    async def _handle_login(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "login", "Login failed", "result", self.session.login, ensure_session=False
        )

    async def _handle_logout(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "logout", "Logout failed", "result", self.session.logout, ensure_session=False
        )

    async def _handle_drop_session(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "dropSession",
            "Failed to drop session",
            "result",
            self.session.drop,
            ensure_session=False,
        )

    async def _handle_annotation_definitions(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getAllAnnotations",
            "Failed to get annotation definitions",
            "result",
            self.client.annotation_definitions,
        )

    async def _handle_object_types(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getAllObjectTypes",
            "Failed to get object types",
            "types",
            self.client.object_types,
            message="Object types retrieved successfully",
        )
