"""ABAP Dictionary and data preview tools."""

from __future__ import annotations

from typing import Any

from mcp.types import Tool

from adt_mcp.handlers.base import ToolFunc, ToolHandler

TOOLS: list[Tool] = [
    Tool(
        name="getDdicElementDetails",
        description=(
            "Retrieve the technical structure and metadata of an ABAP Dictionary object "
            "(table, structure or view): core properties and its fields with details."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Name of the DDIC element"},
                "getTargetForAssociation": {
                    "type": "boolean",
                    "description": "Resolve association targets",
                    "default": False,
                },
                "getExtensionViews": {
                    "type": "boolean",
                    "description": "Include extension views",
                    "default": True,
                },
                "getSecondaryObjects": {
                    "type": "boolean",
                    "description": "Include secondary objects",
                    "default": True,
                },
            },
            "required": ["path"],
        },
    ),
    Tool(
        name="getDdicRepositoryAccess",
        description="Resolve a DDIC data source name to its repository object reference.",
        inputSchema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Name of the data source"},
            },
            "required": ["path"],
        },
    ),
    Tool(
        name="getPackagesByName",
        description=(
            "Search development packages with an optional name mask. "
            "Returns package names and descriptions."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Package name mask, * is a wildcard"},
            },
            "required": [],
        },
    ),
    Tool(
        name="getTableContent",
        description="Retrieve the contents of a table or view.",
        inputSchema={
            "type": "object",
            "properties": {
                "ddicEntityName": {
                    "type": "string",
                    "description": "Name of the DDIC entity (table or view)",
                },
                "rowNumber": {
                    "type": "integer",
                    "description": "Maximum number of rows to retrieve (default 100)",
                    "default": 100,
                },
                "decode": {
                    "type": "boolean",
                    "description": "Decode the result into columns and rows",
                    "default": True,
                },
                "sqlQuery": {
                    "type": "string",
                    "description": "Optional SQL query to filter the data",
                },
            },
            "required": ["ddicEntityName"],
        },
    ),
    Tool(
        name="runSqlQuery",
        description="Run an ABAP SQL query on the target system.",
        inputSchema={
            "type": "object",
            "properties": {
                "sqlQuery": {"type": "string", "description": "The SQL query to execute"},
                "rowNumber": {
                    "type": "integer",
                    "description": "Maximum number of rows to retrieve (default 100)",
                    "default": 100,
                },
                "decode": {
                    "type": "boolean",
                    "description": "Decode the result into columns and rows",
                    "default": True,
                },
            },
            "required": ["sqlQuery"],
        },
    ),
]


class DdicHandler(ToolHandler):
    group = "DDIC"
    TOOLS = TOOLS

    def _build_handlers(self) -> dict[str, ToolFunc]:
        return {
            "getDdicElementDetails": self._handle_ddic_element,
            "getDdicRepositoryAccess": self._handle_repository_access,
            "getPackagesByName": self._handle_get_packages,
            "getTableContent": self._handle_table_contents,
            "runSqlQuery": self._handle_run_query,
        }

    async def _handle_ddic_element(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getDdicElementDetails",
            "Failed to get DDIC element",
            "result",
            self.client.ddic_element,
            args["path"],
            args.get("getTargetForAssociation", False),
            args.get("getExtensionViews", True),
            args.get("getSecondaryObjects", True),
        )

    async def _handle_repository_access(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getDdicRepositoryAccess",
            "Failed to access DDIC repository",
            "result",
            self.client.ddic_repository_access,
            args["path"],
        )

    async def _handle_get_packages(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getPackagesByName",
            "Failed to get package search help",
            "result",
            self.client.package_search_help,
            "softwarecomponents",
            args.get("name", "*"),
        )

    async def _handle_table_contents(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getTableContent",
            "Failed to retrieve table contents",
            "result",
            self.client.table_contents,
            args["ddicEntityName"],
            args.get("rowNumber", 100),
            args.get("decode", True),
            args.get("sqlQuery", ""),
        )

    async def _handle_run_query(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "runSqlQuery",
            "Failed to run query",
            "result",
            self.client.run_query,
            args["sqlQuery"],
            args.get("rowNumber", 100),
            args.get("decode", True),
        )
