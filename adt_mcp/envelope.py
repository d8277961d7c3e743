"""
Result envelope codec.

Every tool call answers with exactly one ``CallToolResult``: a single JSON
text block on success, or a ``{"error", "code"}`` block flagged ``isError``.
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import date, datetime
import json
import logging
from typing import Any

from mcp.shared.exceptions import McpError
from mcp.types import INTERNAL_ERROR, CallToolResult, ErrorData, TextContent

logger = logging.getLogger(__name__)

# Largest integer a JSON consumer using IEEE-754 doubles reads back exactly
MAX_SAFE_INTEGER = 2**53 - 1

INTERNAL_ERROR_MESSAGE = "Internal server error"
SERIALIZATION_ERROR_MESSAGE = "Failed to serialize result"


def tool_error(code: int, message: str) -> McpError:
    """Build a classified protocol error."""
    return McpError(ErrorData(code=code, message=message))


def _normalize(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return str(value) if abs(value) > MAX_SAFE_INTEGER else value
    if isinstance(value, (str, float)):
        return value
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_normalize(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return _normalize(asdict(value))
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(value: Any) -> str:
    """Serialize to JSON, writing oversized integers as decimal strings."""
    return json.dumps(_normalize(value), allow_nan=False)


def encode_success(value: Any) -> CallToolResult:
    try:
        text = to_json(value)
    except (TypeError, ValueError, RecursionError):
        logger.exception("Result serialization failed")
        return encode_failure(tool_error(INTERNAL_ERROR, SERIALIZATION_ERROR_MESSAGE))
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=False)


def encode_failure(error: BaseException) -> CallToolResult:
    """
    Convert a fault into an error envelope.

    Only ``McpError`` keeps its code and message. Anything else is reported
    as a generic internal error so backend internals never reach the caller.
    """
    if isinstance(error, McpError):
        code, message = error.error.code, error.error.message
    else:
        code, message = INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE
    text = json.dumps({"error": message, "code": code})
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=True)


def error_code(envelope: CallToolResult) -> int | None:
    """JSON-RPC code carried by an error envelope, None for a success."""
    if not envelope.isError:
        return None
    try:
        return int(json.loads(envelope.content[0].text)["code"])
    except (IndexError, KeyError, TypeError, ValueError, AttributeError):
        return INTERNAL_ERROR
