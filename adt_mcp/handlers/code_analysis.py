"""Code navigation and cross-reference tools."""

from __future__ import annotations

from typing import Any

from mcp.types import Tool

from adt_mcp.handlers.base import ToolFunc, ToolHandler

TOOLS: list[Tool] = [
    Tool(
        name="findDefinition",
        description="Find the definition (or implementation) of the symbol at a source position.",
        inputSchema={
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "ADT URL of the source containing the symbol"},
                "source": {"type": "string", "description": "Current source code of that object"},
                "line": {"type": "integer", "description": "Line of the symbol (1-based)"},
                "startCol": {"type": "integer", "description": "Start column of the symbol"},
                "endCol": {"type": "integer", "description": "End column of the symbol"},
                "implementation": {
                    "type": "boolean",
                    "description": "Navigate to the implementation instead of the definition",
                    "default": False,
                },
                "mainProgram": {
                    "type": "string",
                    "description": "Main program, required for includes",
                },
            },
            "required": ["url", "source", "line", "startCol", "endCol"],
        },
    ),
    Tool(
        name="getUsageReferences",
        description="Find the objects that reference the given object, or the symbol at a position in it.",
        inputSchema={
            "type": "object",
            "properties": {
                "objectUrl": {"type": "string", "description": "ADT URL of the object"},
                "line": {"type": "integer", "description": "Line of a symbol inside the object"},
                "column": {"type": "integer", "description": "Column of a symbol inside the object"},
            },
            "required": ["objectUrl"],
        },
    ),
    Tool(
        name="getUsageReferenceSnippets",
        description="Retrieve the lines of code that the given usage references point to.",
        inputSchema={
            "type": "object",
            "properties": {
                "usageReferences": {
                    "type": "array",
                    "items": {"type": "object"},
                    "description": "Usage references as returned by getUsageReferences",
                },
            },
            "required": ["usageReferences"],
        },
    ),
    Tool(
        name="getFragmentMappings",
        description="Resolve a named fragment of an object (e.g. a method) to its source position.",
        inputSchema={
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "ADT URL of the object"},
                "type": {"type": "string", "description": "Fragment type"},
                "name": {"type": "string", "description": "Fragment name"},
            },
            "required": ["url", "type", "name"],
        },
    ),
    Tool(
        name="getAbapDocumentation",
        description="Retrieve the ABAP keyword documentation for the token at a source position.",
        inputSchema={
            "type": "object",
            "properties": {
                "objectUri": {"type": "string", "description": "ADT URL of the source"},
                "body": {"type": "string", "description": "Current source code"},
                "line": {"type": "integer", "description": "Line of the token"},
                "column": {"type": "integer", "description": "Column of the token"},
                "language": {
                    "type": "string",
                    "description": "Documentation language (default EN)",
                    "default": "EN",
                },
            },
            "required": ["objectUri", "body", "line", "column"],
        },
    ),
    Tool(
        name="getNodeContents",
        description="Retrieve the children of a node in the repository object tree.",
        inputSchema={
            "type": "object",
            "properties": {
                "parent_type": {"type": "string", "description": "Type of the parent node (e.g. DEVC/K)"},
                "parent_name": {"type": "string", "description": "Name of the parent node"},
                "user_name": {"type": "string", "description": "Restrict to objects of this user"},
                "parent_tech_name": {
                    "type": "string",
                    "description": "Technical name of the parent node",
                },
                "rebuild_tree": {
                    "type": "boolean",
                    "description": "Rebuild the tree on the server",
                    "default": False,
                },
                "parentnodes": {
                    "type": "array",
                    "items": {"type": ["string", "integer"]},
                    "description": "Node keys of the parent nodes",
                },
            },
            "required": ["parent_type"],
        },
    ),
    Tool(
        name="getMainPrograms",
        description="Retrieve the main programs that include the given include.",
        inputSchema={
            "type": "object",
            "properties": {
                "includeUrl": {"type": "string", "description": "ADT URL of the include"},
            },
            "required": ["includeUrl"],
        },
    ),
]


class CodeAnalysisHandler(ToolHandler):
    group = "code analysis"
    TOOLS = TOOLS

    def _build_handlers(self) -> dict[str, ToolFunc]:
        return {
            "findDefinition": self._handle_find_definition,
            "getUsageReferences": self._handle_usage_references,
            "getUsageReferenceSnippets": self._handle_usage_reference_snippets,
            "getFragmentMappings": self._handle_fragment_mappings,
            "getAbapDocumentation": self._handle_abap_documentation,
            "getNodeContents": self._handle_node_contents,
            "getMainPrograms": self._handle_main_programs,
        }

    async def _handle_find_definition(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "findDefinition",
            "Find definition failed",
            "result",
            self.client.find_definition,
            args["url"],
            args["source"],
            args["line"],
            args["startCol"],
            args["endCol"],
            args.get("implementation", False),
            args.get("mainProgram"),
        )

    async def _handle_usage_references(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getUsageReferences",
            "Usage references failed",
            "result",
            self.client.usage_references,
            args["objectUrl"],
            args.get("line"),
            args.get("column"),
        )

    async def _handle_usage_reference_snippets(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getUsageReferenceSnippets",
            "Usage reference snippets failed",
            "result",
            self.client.usage_reference_snippets,
            args["usageReferences"],
        )

    async def _handle_fragment_mappings(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getFragmentMappings",
            "Fragment mappings failed",
            "result",
            self.client.fragment_mappings,
            args["url"],
            args["type"],
            args["name"],
        )

    async def _handle_abap_documentation(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getAbapDocumentation",
            "ABAP documentation failed",
            "result",
            self.client.abap_documentation,
            args["objectUri"],
            args["body"],
            args["line"],
            args["column"],
            args.get("language", "EN"),
        )

    async def _handle_node_contents(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getNodeContents",
            "Failed to get node contents",
            "nodeContents",
            self.client.node_contents,
            args["parent_type"],
            args.get("parent_name"),
            args.get("user_name"),
            args.get("parent_tech_name"),
            args.get("rebuild_tree", False),
            args.get("parentnodes"),
        )

    async def _handle_main_programs(self, args: dict[str, Any]) -> dict[str, Any]:
        return await self._call(
            "getMainPrograms",
            "Failed to get main programs",
            "mainPrograms",
            self.client.main_programs,
            args["includeUrl"],
        )
