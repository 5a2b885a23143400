"""Entry points for launching the FastAPI proxy via uvicorn."""
from __future__ import annotations

import argparse
import logging
from typing import Optional, Sequence

import uvicorn

from .app import create_app
from .config import DEFAULT_HOST, DEFAULT_PORT, ProxySettings

DEFAULT_DEBUG_PATH = "/tmp/debug_publicai_proxy.log"


logging.basicConfig(level=logging.INFO, format="[%(asctime)s] [%(name)s] %(message)s")
logger = logging.getLogger(__name__)


def _resolve_debug_settings(debug_arg: str | None, current_path: str | None) -> tuple[bool, str | None]:
    """Return debug enabled flag and chosen path based on CLI input."""

    if debug_arg is None:
        return current_path is not None, current_path

    candidate = debug_arg.strip()
    return True, candidate or DEFAULT_DEBUG_PATH


def _build_settings(args: argparse.Namespace) -> ProxySettings:
    """Construct ProxySettings from the environment, then apply CLI overrides."""

    settings = ProxySettings.from_env()
    if args.host:
        settings.host = args.host
    if args.port:
        settings.port = args.port
    if args.api_key:
        settings.api_key = args.api_key
    if args.default_model:
        settings.default_model = args.default_model
    if args.upstream_url:
        settings.upstream_url = args.upstream_url
    if args.sanitize_system_role:
        settings.sanitize_system_role = True

    debug_enabled, debug_path = _resolve_debug_settings(args.debug, settings.debug_sse_path)
    settings.debug_sse_enabled = debug_enabled
    settings.debug_sse_path = debug_path
    return settings


def _log_configuration(settings: ProxySettings) -> None:
    """Emit a concise summary of the active configuration values."""

    debug_display = settings.debug_sse_path if settings.debug_sse_enabled else "disabled"
    logger.info("Initializing PublicAI OpenAI Proxy ...")
    logger.info(
        "✓ Loaded configuration host=%s port=%s model=%s upstream=%s sanitize_system_role=%s debug=%s",
        settings.host,
        settings.port,
        settings.default_model,
        settings.upstream_url,
        settings.sanitize_system_role,
        debug_display,
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the PublicAI OpenAI-compatible proxy server")
    parser.add_argument("--host", default=None, help=f"Host interface to bind (env HOST, default {DEFAULT_HOST})")
    parser.add_argument("--port", type=int, default=None, help=f"Port to bind (env PORT, default {DEFAULT_PORT})")
    parser.add_argument("--api-key", default=None, help="Bearer token clients must send (env API_KEY)")
    parser.add_argument("--default-model", default=None, help="Model name used when a request omits one (env DEFAULT_MODEL)")
    parser.add_argument("--upstream-url", default=None, help="PublicAI chat endpoint (env UPSTREAM_URL)")
    parser.add_argument(
        "--sanitize-system-role",
        action="store_true",
        help="Send system messages upstream with the user role (env SANITIZE_SYSTEM_ROLE)",
    )
    parser.add_argument(
        "--debug",
        metavar="PATH",
        nargs="?",
        const="",
        default=None,
        help="Enable SSE debug logging and write to PATH",
    )
    return parser.parse_args(argv)


def run(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    try:
        settings = _build_settings(args)
    except ValueError as err:
        logger.error("[!] Configuration error: %s", err)
        raise SystemExit(1)

    _log_configuration(settings)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level="info",
    )


if __name__ == "__main__":
    run()
