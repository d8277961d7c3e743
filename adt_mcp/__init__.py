"""ADT MCP - Model Context Protocol tools for the ABAP Development Tools API."""

__version__ = "0.1.0"
