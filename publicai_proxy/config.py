"""Configuration helpers for the PublicAI FastAPI proxy."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_API_KEY = "1"
DEFAULT_MODEL = "publicai-gpt-4"
DEFAULT_UPSTREAM_URL = "https://publicai.co/api/chat"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class ProxySettings:
    """Runtime configuration values for the proxy service."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    api_key: str = DEFAULT_API_KEY
    default_model: str = DEFAULT_MODEL
    upstream_url: str = DEFAULT_UPSTREAM_URL
    sanitize_system_role: bool = False
    debug_sse_enabled: bool = False
    debug_sse_path: str | None = None

    @classmethod
    def from_env(cls) -> "ProxySettings":
        """Read settings from the process environment, falling back to defaults."""

        port_raw = os.environ.get("PORT", "").strip()
        try:
            port = int(port_raw) if port_raw else DEFAULT_PORT
        except ValueError as exc:
            raise ValueError(f"PORT must be an integer, got {port_raw!r}") from exc

        debug_path = os.environ.get("DEBUG_SSE_PATH") or None
        return cls(
            host=os.environ.get("HOST") or DEFAULT_HOST,
            port=port,
            api_key=os.environ.get("API_KEY") or DEFAULT_API_KEY,
            default_model=os.environ.get("DEFAULT_MODEL") or DEFAULT_MODEL,
            upstream_url=os.environ.get("UPSTREAM_URL") or DEFAULT_UPSTREAM_URL,
            sanitize_system_role=os.environ.get("SANITIZE_SYSTEM_ROLE", "").strip().lower() in _TRUTHY,
            debug_sse_enabled=debug_path is not None,
            debug_sse_path=debug_path,
        )

    def resolved_debug_path(self) -> Path | None:
        """Expand user and environment variables in the SSE debug log path."""

        if not self.debug_sse_path:
            return None
        expanded = os.path.expanduser(os.path.expandvars(self.debug_sse_path))
        return Path(expanded)
