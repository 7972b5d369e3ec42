"""Settings loader.

Reads settings from KINDEX_* environment variables and falls back to
defaults. DRAGONFLY_URL and REDIS_URL are honoured for the connection URL
when KINDEX_URL is not set.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import urlsplit, urlunsplit

from .constants import DEFAULT_SOCKET_TIMEOUT, DEFAULT_URL

BACKENDS = ("redis", "memory")

DEFAULT_SETTINGS: dict[str, Any] = {
    "backend": "redis",
    "url": DEFAULT_URL,
    "socket_timeout": DEFAULT_SOCKET_TIMEOUT,
    "log_level": None,
    "log_file": None,
}

# First variable found wins
_URL_VARS = ("KINDEX_URL", "DRAGONFLY_URL", "REDIS_URL")


@dataclass
class Settings:
    """Runtime configuration for the store and its entry points."""

    backend: str = DEFAULT_SETTINGS["backend"]
    url: str = DEFAULT_SETTINGS["url"]
    socket_timeout: float = DEFAULT_SETTINGS["socket_timeout"]
    log_level: str | None = DEFAULT_SETTINGS["log_level"]
    log_file: str | None = DEFAULT_SETTINGS["log_file"]

    def __post_init__(self):
        if self.backend not in BACKENDS:
            raise ValueError(
                f"Unknown backend '{self.backend}'. Use one of: {', '.join(BACKENDS)}"
            )
        if self.socket_timeout <= 0:
            raise ValueError(f"socket_timeout must be positive, got {self.socket_timeout}")

    def redacted_url(self) -> str:
        """URL with any password masked, safe for logs."""
        parts = urlsplit(self.url)
        if not parts.password:
            return self.url
        netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
        return urlunsplit(parts._replace(netloc=netloc))


def load_settings(env: Mapping[str, str] | None = None, **overrides: Any) -> Settings:
    """Load settings from the environment.

    Args:
        env: Mapping to read instead of os.environ
        **overrides: Explicit values (e.g. from CLI options); None is ignored

    Returns merged settings (overrides > environment > defaults).

    Raises:
        ValueError: If a value cannot be parsed or is out of range
    """
    if env is None:
        env = os.environ

    values: dict[str, Any] = DEFAULT_SETTINGS.copy()

    if backend := env.get("KINDEX_BACKEND"):
        values["backend"] = backend.strip().lower()

    for var in _URL_VARS:
        if url := env.get(var):
            values["url"] = url.strip()
            break

    if timeout := env.get("KINDEX_SOCKET_TIMEOUT"):
        try:
            values["socket_timeout"] = float(timeout)
        except ValueError as e:
            raise ValueError(f"KINDEX_SOCKET_TIMEOUT must be a number, got '{timeout}'") from e

    if level := env.get("KINDEX_LOG_LEVEL"):
        values["log_level"] = level.strip().upper()

    if log_file := env.get("KINDEX_LOG_FILE"):
        values["log_file"] = log_file

    values.update({key: value for key, value in overrides.items() if value is not None})
    return Settings(**values)
