"""FastAPI application factory for the PublicAI proxy."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from aiohttp import ClientSession
from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import http_exception_handler as default_http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import ProxySettings
from .errors import InvalidAPIKeyError
from .mapper import generate_id
from .routes import router
from .upstream import UPSTREAM_HEADERS, UPSTREAM_TIMEOUT

logger = logging.getLogger(__name__)


def create_app(
    settings: ProxySettings | None = None,
    *,
    clock: Callable[[], float] = time.time,
    id_factory: Callable[[str], str] = generate_id,
    upstream: Optional[Any] = None,
) -> FastAPI:
    """Build the FastAPI app with configured routers and lifespan hooks.

    ``clock`` and ``id_factory`` supply timestamps and opaque ids; ``upstream``
    replaces the PublicAI HTTP client (anything with an ``iter_chunks`` method).
    """

    settings = settings or ProxySettings()

    app = FastAPI(
        title="PublicAI OpenAI Proxy",
        description="OpenAI-compatible chat completions relayed to PublicAI.",
        version="0.1.0",
    )

    app.include_router(router)

    app.state.settings = settings
    app.state.clock = clock
    app.state.id_factory = id_factory
    app.state.upstream = upstream
    app.state.http_client = None

    @app.exception_handler(InvalidAPIKeyError)
    async def invalid_api_key_handler(request: Request, exc: InvalidAPIKeyError):
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": {"message": exc.message, "type": "invalid_request_error"}},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # Unmatched methods on known paths are answered like unknown paths.
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            exc = StarletteHTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return await default_http_exception_handler(request, exc)

    @app.on_event("startup")
    async def on_startup() -> None:
        app.state.http_client = ClientSession(headers=UPSTREAM_HEADERS, timeout=UPSTREAM_TIMEOUT)
        logger.info("✓ Upstream session ready for %s", settings.upstream_url)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        client: Optional[ClientSession] = app.state.http_client
        if client and not client.closed:
            await client.close()

    return app
