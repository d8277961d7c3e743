"""Class and service binding introspection tools."""

from __future__ import annotations

from typing import Any

from mcp.types import Tool

from adt_mcp.handlers.base import ToolFunc, ToolHandler

TOOLS: list[Tool] = [
    Tool(
        name="getClassComponents",
        description="List the methods, attributes, events and types of an ABAP class.",
        inputSchema={
            "type": "object",
            "properties": {
                "objectUrl": {
                    "type": "string",
                    "description": "ADT URL of the class",
                },
            },
            "required": ["objectUrl"],
        },
    ),
    Tool(
        name="getServiceBindingDetails",
        description="Retrieve the details of a service binding (OData version, services, entity sets).",
        inputSchema={
            "type": "object",
            "properties": {
                "binding": {
                    "type": "object",
                    "description": "Service binding reference; must carry its ADT url",
                },
            },
            "required": ["binding"],
        },
    ),
]


class ClassHandler(ToolHandler):
    group = "class"
    TOOLS = TOOLS

    def _build_handlers(self) -> dict[str, ToolFunc]:
        return {
            "getClassComponents": self._handle_class_components,
            "getServiceBindingDetails": self._handle_binding_details,
        }

    async def _handle_class_components(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getClassComponents",
            "Failed to get class components",
            "result",
            self.client.class_components,
            args["objectUrl"],
        )

    async def _handle_binding_details(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getServiceBindingDetails",
            "Failed to get binding details",
            "details",
            self.client.binding_details,
            args["binding"],
        )
