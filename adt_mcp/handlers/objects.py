"""Repository object metadata tools: search, structure, source, path, history."""

from __future__ import annotations

from typing import Any

from mcp.types import Tool

from adt_mcp.handlers.base import ToolFunc, ToolHandler

TOOLS: list[Tool] = [
    Tool(
        name="getObjects",
        description="Search repository objects by name pattern. Returns object references with their objectURL.",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search pattern, * is a wildcard (e.g. ZCL_SALES*)",
                },
                "objectType": {
                    "type": "string",
                    "description": "Restrict to one object type (e.g. CLAS/OC, PROG/P)",
                },
                "maxResults": {
                    "type": "integer",
                    "description": "Maximum number of hits (default 100)",
                    "default": 100,
                },
            },
            "required": ["query"],
        },
    ),
    Tool(
        name="getObjectStructure",
        description=(
            "Retrieve technical metadata and structural components of an ABAP object. "
            "Returns core attributes, object links and URIs of the individual source "
            "segments (definitions, implementations, test classes)."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "objectUrl": {
                    "type": "string",
                    "description": "ADT URL of the object",
                },
            },
            "required": ["objectUrl"],
        },
    ),
    Tool(
        name="getObjectSourceCode",
        description="Retrieve the source code of an ABAP object. Use this to read or analyze existing code.",
        inputSchema={
            "type": "object",
            "properties": {
                "objectUrl": {
                    "type": "string",
                    "description": "ADT URL of the object",
                },
                "version": {
                    "type": "string",
                    "description": "Source version: active, inactive or workingArea",
                },
            },
            "required": ["objectUrl"],
        },
    ),
    Tool(
        name="getObjectFullPath",
        description=(
            "Retrieve the full hierarchical path of an ABAP object in the package "
            "structure, from the root package down to the object itself."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "objectUrl": {
                    "type": "string",
                    "description": "ADT URL of the object to find the path for",
                },
            },
            "required": ["objectUrl"],
        },
    ),
    Tool(
        name="getObjectVersionHistory",
        description=(
            "Retrieve the version history of an object or one of its class includes. "
            "Returns revision links with the date and author of each change."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "objectUrl": {
                    "type": "string",
                    "description": "ADT URL of the object",
                },
                "clsInclude": {
                    "type": "string",
                    "description": "Class include (e.g. definitions, implementations, testclasses)",
                },
            },
            "required": ["objectUrl"],
        },
    ),
    Tool(
        name="getPackageObjects",
        description="List the objects contained in a development package.",
        inputSchema={
            "type": "object",
            "properties": {
                "package_name": {
                    "type": "string",
                    "description": "Name of the package",
                },
            },
            "required": ["package_name"],
        },
    ),
]


class ObjectHandler(ToolHandler):
    group = "object"
    TOOLS = TOOLS

    def _build_handlers(self) -> dict[str, ToolFunc]:
        return {
            "getObjects": self._handle_get_objects,
            "getObjectStructure": self._handle_object_structure,
            "getObjectSourceCode": self._handle_object_source,
            "getObjectFullPath": self._handle_object_path,
            "getObjectVersionHistory": self._handle_version_history,
            "getPackageObjects": self._handle_package_objects,
        }

    async def _handle_get_objects(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getObjects",
            "Failed to search objects",
            "results",
            self.client.search_object,
            args["query"],
            args.get("objectType"),
            args.get("maxResults", 100),
            message="Object search completed successfully",
        )

    async def _handle_object_structure(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getObjectStructure",
            "Failed to get object structure",
            "structure",
            self.client.object_structure,
            args["objectUrl"],
            message="Object structure retrieved successfully",
        )

    async def _handle_object_source(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getObjectSourceCode",
            "Failed to get object source",
            "source",
            self.client.get_object_source,
            f"{args['objectUrl']}/source/main",
            args.get("version"),
        )

    async def _handle_object_path(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getObjectFullPath",
            "Failed to find object path",
            "path",
            self.client.find_object_path,
            args["objectUrl"],
            message="Object path found successfully",
        )

    async def _handle_version_history(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getObjectVersionHistory",
            "Failed to get revisions",
            "revisions",
            self.client.revisions,
            args["objectUrl"],
            args.get("clsInclude"),
        )

    async def _handle_package_objects(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getPackageObjects",
            "Failed to get node contents",
            "nodeContents",
            self.client.node_contents,
            "DEVC/K",
            args["package_name"],
        )
