"""Configuration utilities for the Bluesky widget."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import find_dotenv, load_dotenv

from bluesky_widget.errors import ConfigError


DEFAULT_BASE_URL = "https://bsky.social"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class WidgetConfig:
    """Process-wide settings, read once at startup."""

    username: str
    password: str = field(repr=False)
    base_url: str = DEFAULT_BASE_URL
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"


def _require(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigError(f"{name} environment variable is required")
    return value


def _number(name: str, default: float, cast: type) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def load_config() -> WidgetConfig:
    """Load configuration from the environment (and a local .env file).

    Raises:
        ConfigError: If credentials are missing or a numeric setting is malformed.
    """

    load_dotenv(find_dotenv(usecwd=True))

    base_url = os.getenv("BLUESKY_BASE_URL", "").strip() or DEFAULT_BASE_URL
    if not base_url.startswith(("http://", "https://")):
        raise ConfigError(f"BLUESKY_BASE_URL must be an http(s) URL, got {base_url!r}")

    port = _number("WIDGET_PORT", DEFAULT_PORT, int)
    if not 0 < port < 65536:
        raise ConfigError(f"WIDGET_PORT out of range: {port}")

    timeout = _number("BLUESKY_TIMEOUT", DEFAULT_TIMEOUT, float)
    if timeout <= 0:
        raise ConfigError("BLUESKY_TIMEOUT must be positive")

    return WidgetConfig(
        username=_require("BLUESKY_USERNAME"),
        password=_require("BLUESKY_PASSWORD"),
        base_url=base_url.rstrip("/"),
        host=os.getenv("WIDGET_HOST", DEFAULT_HOST),
        port=port,
        timeout=timeout,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
