"""Base class for tool handler groups."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
import logging
import time
from typing import Any

from mcp.types import INTERNAL_ERROR, METHOD_NOT_FOUND, Tool

from adt_mcp.client import AdtClient, AdtError
from adt_mcp.envelope import tool_error
from adt_mcp.observability import ObservabilityContext
from adt_mcp.session import SessionGate

logger = logging.getLogger(__name__)

ToolFunc = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


def error_detail(error: BaseException) -> str:
    """Backend message for a failure, preferring the structured response message."""
    nested = getattr(error, "response_message", None)
    if nested:
        return str(nested)
    return getattr(error, "message", None) or str(error) or "Unknown error"


class ToolHandler:
    """
    A group of tools sharing one backend domain.

    Subclasses declare ``TOOLS`` and map each tool name to a coroutine in
    ``tool_handlers``. Each coroutine performs exactly one backend call
    through ``_call``.
    """

    group = "base"
    TOOLS: list[Tool] = []

    def __init__(self, client: AdtClient, session: SessionGate, obs: ObservabilityContext):
        self.client = client
        self.session = session
        self.obs = obs
        self.tool_handlers: dict[str, ToolFunc] = self._build_handlers()

    def _build_handlers(self) -> dict[str, ToolFunc]:
        raise NotImplementedError

    def get_tools(self) -> list[Tool]:
        return list(self.TOOLS)

    def recognizes(self, name: str) -> bool:
        return name in self.tool_handlers

    async def handle(self, name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
        handler = self.tool_handlers.get(name)
        if handler is None:
            raise tool_error(METHOD_NOT_FOUND, f"Unknown {self.group} tool: {name}")
        return await handler(arguments or {})

    async def _call(
        self,
        tool: str,
        failure: str,
        payload_key: str,
        operation: Callable[..., Awaitable[Any]],
        *args: Any,
        message: str | None = None,
        ensure_session: bool = True,
    ) -> dict[str, Any]:
        """
        Run one backend operation and shape its result.

        Args:
            tool: Tool name, used as the metrics key
            failure: Prefix for the error message, e.g. "Failed to get object structure"
            payload_key: Key holding the result in the success payload
            operation: Backend coroutine function
            message: Optional fixed message added to the success payload
            ensure_session: Log in first if the client has no session

        Raises:
            McpError: INTERNAL_ERROR with the backend's message on ``AdtError``.
            Other exceptions propagate unchanged.
        """
        start = time.perf_counter()
        try:
            if ensure_session:
                await self.session.ensure()
            result = await operation(*args)
        except AdtError as e:
            self.obs.observe(tool, start, succeeded=False)
            detail = error_detail(e)
            logger.warning(f"{tool}: {failure}: {detail}")
            raise tool_error(INTERNAL_ERROR, f"{failure}: {detail}") from e
        except Exception:
            self.obs.observe(tool, start, succeeded=False)
            raise
        self.obs.observe(tool, start, succeeded=True)

        payload: dict[str, Any] = {"status": "success", payload_key: result}
        if message:
            payload["message"] = message
        return payload
