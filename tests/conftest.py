"""Shared fixtures for the ADT MCP tests."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from adt_mcp.observability import ObservabilityContext
from adt_mcp.server import AdtMcpServer

SAP_ENV = (
    "SAP_URL",
    "SAP_USER",
    "SAP_PASSWORD",
    "SAP_CLIENT",
    "SAP_LANGUAGE",
    "SAP_VERIFY_TLS",
    "PORT",
    "ADT_MCP_CONFIG",
    "ADT_MCP_TRANSPORT",
    "ADT_MCP_HOST",
    "ADT_MCP_LOG_LEVEL",
    "ADT_MCP_LOG_FORMAT",
    "ADT_MCP_AUDIT_ENABLED",
    "ADT_MCP_AUDIT_PATH",
    "MCP_ALLOWED_HOSTS",
    "MCP_ALLOWED_ORIGINS",
)


@pytest.fixture(autouse=True)
def hermetic_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """
    Autouse: each test runs in its own tmp cwd with no SAP settings leaking in.
    """
    monkeypatch.chdir(tmp_path)
    for name in SAP_ENV:
        monkeypatch.delenv(name, raising=False)
    return tmp_path


class FakeAdtClient:
    """
    In-memory stand-in for ``AdtClient``.

    Any backend operation name works: calls are recorded, ``results`` supplies
    return values and ``errors`` supplies exceptions to raise.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.results: dict[str, Any] = {}
        self.errors: dict[str, BaseException] = {}
        self.login_count = 0
        self.login_delay = 0.0
        self.closed = False
        self._logged_in = False

    @property
    def is_logged_in(self) -> bool:
        return self._logged_in

    async def login(self) -> bool:
        self.login_count += 1
        await asyncio.sleep(self.login_delay)
        if "login" in self.errors:
            raise self.errors["login"]
        self._logged_in = True
        return True

    async def logout(self) -> bool:
        self.calls.append(("logout", ()))
        self._logged_in = False
        return True

    async def drop_session(self) -> bool:
        self.calls.append(("drop_session", ()))
        self._logged_in = False
        return True

    async def close(self) -> None:
        self.closed = True

    def backend_calls(self) -> list[str]:
        return [name for name, _ in self.calls]

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)

        async def operation(*args: Any) -> Any:
            self.calls.append((name, args))
            await asyncio.sleep(0)
            if name in self.errors:
                raise self.errors[name]
            return self.results.get(name, {"operation": name})

        return operation


@pytest.fixture
def fake_client() -> FakeAdtClient:
    return FakeAdtClient()


@pytest.fixture
def obs() -> ObservabilityContext:
    return ObservabilityContext()


@pytest.fixture
def server(fake_client: FakeAdtClient, obs: ObservabilityContext) -> AdtMcpServer:
    return AdtMcpServer(client=fake_client, obs=obs)  # type: ignore[arg-type]


def _sample_arguments(schema: dict[str, Any]) -> dict[str, Any]:
    """Smallest argument bag satisfying a tool's required properties."""
    samples = {
        "string": "/sap/bc/adt/oo/classes/zcl_demo",
        "integer": 1,
        "number": 1,
        "boolean": True,
        "object": {"url": "/sap/bc/adt/businessservices/bindings/zui_demo"},
        "array": [],
    }
    properties = schema.get("properties", {})
    return {
        name: samples[properties[name]["type"]]
        for name in schema.get("required", [])
    }


@pytest.fixture
def sample_arguments():
    return _sample_arguments
