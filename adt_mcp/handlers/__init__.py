"""Tool handler groups, one per backend domain."""

from adt_mcp.handlers.base import ToolHandler, error_detail
from adt_mcp.handlers.classes import ClassHandler
from adt_mcp.handlers.code_analysis import CodeAnalysisHandler
from adt_mcp.handlers.ddic import DdicHandler
from adt_mcp.handlers.discovery import DiscoveryHandler
from adt_mcp.handlers.objects import ObjectHandler

# Registration order is catalog order
HANDLER_CLASSES: list[type[ToolHandler]] = [
    DiscoveryHandler,
    ObjectHandler,
    ClassHandler,
    CodeAnalysisHandler,
    DdicHandler,
]

__all__ = [
    "HANDLER_CLASSES",
    "ClassHandler",
    "CodeAnalysisHandler",
    "DdicHandler",
    "DiscoveryHandler",
    "ObjectHandler",
    "ToolHandler",
    "error_detail",
]
