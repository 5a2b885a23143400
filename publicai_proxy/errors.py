"""Exception types raised between the upstream transport and the HTTP edge."""
from __future__ import annotations

import asyncio

from aiohttp import ClientError


class ProxyError(Exception):
    """Base class for errors raised by the proxy."""


class InvalidAPIKeyError(ProxyError):
    """Raised when the bearer token does not match the configured API key."""

    def __init__(self, message: str = "Invalid API Key") -> None:
        super().__init__(message)
        self.message = message


class UpstreamError(ProxyError):
    """A failure scoped to one upstream call."""


class UpstreamHTTPError(UpstreamError):
    """Raised when the upstream answers with a non-success status."""

    def __init__(self, status: int, body: str = "") -> None:
        self.status = status
        self.body = body
        super().__init__(f"Upstream Error: {status} - {body[:200]}")


class UpstreamStreamError(UpstreamError):
    """Raised when the upstream SSE stream emits an error event."""

    def __init__(self, description: str, *, event: dict | None = None) -> None:
        super().__init__(f"Upstream stream failed: {description}")
        self.description = description
        self.event = event or {}


# Everything a responder treats as "this request failed".
REQUEST_FAILURES = (UpstreamError, ClientError, asyncio.TimeoutError)


def describe_failure(exc: BaseException) -> str:
    """Render a request failure as a short client-facing message."""
    if isinstance(exc, UpstreamError):
        return str(exc)
    if isinstance(exc, asyncio.TimeoutError):
        return "Upstream request timed out"
    return f"Upstream connection failed: {exc}"
