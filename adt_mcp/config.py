"""MCP configuration loader - reads adt-mcp.toml with .env and ENV overrides."""  # noqa: I001

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
import tomllib
from typing import Any, cast

from dotenv import load_dotenv

REQUIRED_ENV = ("SAP_URL", "SAP_USER", "SAP_PASSWORD")


class ConfigError(ValueError):
    """Raised when the configuration cannot be used to start the server."""


@dataclass
class AdtConnectionConfig:
    """Backend connection settings."""

    url: str = ""
    user: str = ""
    password: str = field(default="", repr=False)
    client: str | None = None
    language: str | None = None
    stateful: bool = True
    verify_tls: bool = True
    timeout: float = 60.0

    def validate(self) -> None:
        missing = [
            env
            for env, value in zip(REQUIRED_ENV, (self.url, self.user, self.password))
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")
        if not self.url.startswith(("http://", "https://")):
            raise ConfigError(f"Invalid SAP_URL: {self.url}")
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")


@dataclass
class McpServerConfig:
    """Server transport settings."""

    transport: str = "stdio"
    host: str = "127.0.0.1"
    port: int = 3000
    log_level: str = "info"
    # "host:*" accepts any port
    allowed_hosts: list[str] = field(
        default_factory=lambda: ["127.0.0.1", "127.0.0.1:*", "localhost", "localhost:*"]
    )
    allowed_origins: list[str] = field(default_factory=list)

    def validate(self) -> None:
        if self.transport not in ("stdio", "http"):
            raise ConfigError(f"Invalid transport: {self.transport}")
        if not (1 <= self.port <= 65535):
            raise ConfigError(f"Invalid port: {self.port}")


@dataclass
class McpObservabilityConfig:
    """Logging, metrics and audit settings."""

    log_format: str = "text"  # "json" | "text"
    log_level: str = "info"
    include_correlation_id: bool = True
    # Rolling latency window per tool, used for percentiles
    latency_window: int = 1000
    csv_audit_enabled: bool = False
    csv_path: str = "./artifacts/call_audit.csv"

    def validate(self) -> None:
        if self.log_format not in ("json", "text"):
            raise ConfigError(f"Invalid log_format: {self.log_format}")
        if self.latency_window <= 0:
            raise ConfigError("latency_window must be positive")
        if self.csv_audit_enabled:
            path = Path(self.csv_path)
            if path.exists() and not path.is_file():
                raise ConfigError(f"Audit CSV path '{self.csv_path}' exists but is not a file")


@dataclass
class AdtMcpConfig:
    """Root configuration."""

    adt: AdtConnectionConfig = field(default_factory=AdtConnectionConfig)
    server: McpServerConfig = field(default_factory=McpServerConfig)
    observability: McpObservabilityConfig = field(default_factory=McpObservabilityConfig)

    def validate(self) -> None:
        self.adt.validate()
        self.server.validate()
        self.observability.validate()


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes")


def _env_list(name: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, "").split(",") if item.strip()]


def _apply_toml(cfg: AdtMcpConfig, data: dict[str, Any]) -> None:
    adt = data.get("adt", {})
    cfg.adt.url = adt.get("url", cfg.adt.url)
    cfg.adt.user = adt.get("user", cfg.adt.user)
    cfg.adt.client = adt.get("client", cfg.adt.client)
    cfg.adt.language = adt.get("language", cfg.adt.language)
    cfg.adt.stateful = adt.get("stateful", cfg.adt.stateful)
    cfg.adt.verify_tls = adt.get("verify_tls", cfg.adt.verify_tls)
    cfg.adt.timeout = adt.get("timeout", cfg.adt.timeout)
    # Passwords are only accepted from the environment

    srv = data.get("server", {})
    cfg.server.transport = srv.get("transport", cfg.server.transport)
    cfg.server.host = srv.get("host", cfg.server.host)
    cfg.server.port = srv.get("port", cfg.server.port)
    cfg.server.log_level = srv.get("log_level", cfg.server.log_level)
    cfg.server.allowed_hosts = srv.get("allowed_hosts", cfg.server.allowed_hosts)
    cfg.server.allowed_origins = srv.get("allowed_origins", cfg.server.allowed_origins)

    obs = data.get("observability", {})
    cfg.observability.log_format = obs.get("log_format", cfg.observability.log_format)
    cfg.observability.log_level = obs.get("log_level", cfg.observability.log_level)
    cfg.observability.include_correlation_id = obs.get(
        "include_correlation_id", cfg.observability.include_correlation_id
    )
    cfg.observability.latency_window = obs.get(
        "latency_window", cfg.observability.latency_window
    )
    cfg.observability.csv_audit_enabled = obs.get(
        "csv_audit_enabled", cfg.observability.csv_audit_enabled
    )
    cfg.observability.csv_path = obs.get("csv_path", cfg.observability.csv_path)


def _apply_env_overrides(cfg: AdtMcpConfig) -> AdtMcpConfig:
    """Apply environment variable overrides. ENV beats TOML."""
    cfg.adt.url = os.getenv("SAP_URL", cfg.adt.url)
    cfg.adt.user = os.getenv("SAP_USER", cfg.adt.user)
    cfg.adt.password = os.getenv("SAP_PASSWORD", cfg.adt.password)
    cfg.adt.client = os.getenv("SAP_CLIENT") or cfg.adt.client
    cfg.adt.language = os.getenv("SAP_LANGUAGE") or cfg.adt.language
    if os.getenv("SAP_VERIFY_TLS"):
        cfg.adt.verify_tls = _env_flag("SAP_VERIFY_TLS")

    if os.getenv("ADT_MCP_TRANSPORT"):
        cfg.server.transport = os.getenv("ADT_MCP_TRANSPORT", cfg.server.transport)
    if os.getenv("ADT_MCP_HOST"):
        cfg.server.host = os.getenv("ADT_MCP_HOST", cfg.server.host)
    if os.getenv("PORT"):
        try:
            cfg.server.port = int(os.getenv("PORT", ""))
        except ValueError as e:
            raise ConfigError(f"Invalid PORT: {os.getenv('PORT')}") from e
    if os.getenv("ADT_MCP_LOG_LEVEL"):
        cfg.server.log_level = os.getenv("ADT_MCP_LOG_LEVEL", cfg.server.log_level)
        cfg.observability.log_level = cfg.server.log_level
    if os.getenv("MCP_ALLOWED_HOSTS"):
        cfg.server.allowed_hosts = _env_list("MCP_ALLOWED_HOSTS")
    if os.getenv("MCP_ALLOWED_ORIGINS"):
        cfg.server.allowed_origins = _env_list("MCP_ALLOWED_ORIGINS")

    if os.getenv("ADT_MCP_LOG_FORMAT"):
        cfg.observability.log_format = os.getenv(
            "ADT_MCP_LOG_FORMAT", cfg.observability.log_format
        )
    if os.getenv("ADT_MCP_AUDIT_ENABLED"):
        cfg.observability.csv_audit_enabled = _env_flag("ADT_MCP_AUDIT_ENABLED")
    if os.getenv("ADT_MCP_AUDIT_PATH"):
        cfg.observability.csv_path = os.getenv("ADT_MCP_AUDIT_PATH", cfg.observability.csv_path)

    return cfg


def load_config(
    config_path: str | Path | None = None,
    env_file: str | Path | None = None,
) -> AdtMcpConfig:
    """
    Load configuration from adt-mcp.toml, .env and the environment.

    Precedence: ENV → .env → TOML → defaults

    Args:
        config_path: Path to adt-mcp.toml. If None, uses ADT_MCP_CONFIG
            or ./adt-mcp.toml.
        env_file: Path to a dotenv file. If None, ./.env is used when present.
            Values already set in the environment are never overridden.

    Raises:
        ConfigError: If a mandatory value is missing or a setting is invalid.
    """
    load_dotenv(dotenv_path=env_file or Path(".env"), override=False)

    if config_path is None:
        if os.getenv("ADT_MCP_CONFIG"):
            config_path = Path(cast(str, os.getenv("ADT_MCP_CONFIG")))
        else:
            config_path = Path("adt-mcp.toml")
    else:
        config_path = Path(config_path)

    cfg = AdtMcpConfig()

    if config_path.exists():
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
        _apply_toml(cfg, data)

    cfg = _apply_env_overrides(cfg)
    cfg.validate()

    return cfg
