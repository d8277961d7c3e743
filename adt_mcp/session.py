"""Single-flight session management for the shared ADT client."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class SessionClient(Protocol):
    @property
    def is_logged_in(self) -> bool: ...

    async def login(self) -> Any: ...

    async def logout(self) -> Any: ...

    async def drop_session(self) -> Any: ...


class SessionGate:
    """
    Serializes session establishment on one client.

    Concurrent callers that find the client logged out wait on a single
    login instead of each starting their own. Explicit login/logout/drop
    go through the same lock so they never interleave with it.
    """

    def __init__(self, client: SessionClient):
        self.client = client
        self._lock = asyncio.Lock()

    async def ensure(self) -> None:
        """Make sure the client holds an authenticated session."""
        if self.client.is_logged_in:
            return
        async with self._lock:
            if self.client.is_logged_in:
                return
            logger.debug("No active session, logging in")
            await self.client.login()

    async def login(self) -> Any:
        async with self._lock:
            return await self.client.login()

    async def logout(self) -> Any:
        async with self._lock:
            return await self.client.logout()

    async def drop(self) -> Any:
        async with self._lock:
            return await self.client.drop_session()
