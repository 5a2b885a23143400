"""HTTP route handlers for the PublicAI FastAPI proxy.

Chat requests are mapped onto the PublicAI envelope, the upstream SSE body is
decoded into text fragments and those are served back either as OpenAI
``chat.completion.chunk`` events or as one buffered ``chat.completion``.
Optional per-request SSE debug tracing records what the upstream sent.
"""
from __future__ import annotations

import json
import logging
import secrets
import time
from typing import Any, Callable, Optional, Union

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from .errors import REQUEST_FAILURES, InvalidAPIKeyError, describe_failure
from .mapper import build_upstream_envelope
from .responders import CompletionContext, buffer_chat_completion, stream_chat_completion
from .schemas import ChatCompletionsRequest, ModelCard, ModelsList
from .transcoder import iter_deltas
from .upstream import PublicAIClient

logger = logging.getLogger(__name__)

_SWITCH_ON = {"1", "true", "yes", "on"}
_SWITCH_OFF = {"0", "false", "no", "off"}


async def require_api_key(request: Request) -> None:
    """Reject the request unless it carries ``Authorization: Bearer <api_key>``."""
    settings = request.app.state.settings
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not secrets.compare_digest(token.strip().encode(), settings.api_key.encode()):
        raise InvalidAPIKeyError()


router = APIRouter(dependencies=[Depends(require_api_key)])


def _invalid_request(message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": {"message": message, "type": "invalid_request_error", **extra}},
    )


def _coerce_json_object_from_bytes(raw: bytes) -> dict[str, Any]:
    """Parse request body bytes into a JSON object.

    Raises:
        ValueError: If body is empty
        TypeError: If parsed result is not a JSON object (dict)
        json.JSONDecodeError: If JSON parsing fails
    """
    if not raw or raw.strip() == b"":
        raise ValueError("Empty request body")
    data = json.loads(raw.decode("utf-8", errors="replace"))
    if not isinstance(data, dict):
        raise TypeError("Request body must be a JSON object")
    return data


def _make_debugger(request: Request) -> Optional[Callable[[str], None]]:
    """Compose a debug writer honoring application settings with per-request overrides."""

    settings = request.app.state.settings
    enabled = bool(settings.debug_sse_enabled)
    path = settings.resolved_debug_path()

    # enable order: app default → query param → header
    for raw in (request.query_params.get("debug_sse"), request.headers.get("x-debug-sse")):
        if not isinstance(raw, str):
            continue
        value = raw.strip().lower()
        if value in _SWITCH_ON:
            enabled = True
        elif value in _SWITCH_OFF:
            enabled = False
    if not enabled:
        return None

    if path is not None:
        def writer(line: str) -> None:
            try:
                with open(path, "a", encoding="utf-8") as f:
                    f.write(f"[{time.strftime('%Y-%m-%d %H:%M:%S', time.gmtime())} UTC] {line}\n")
            except OSError as e:
                logger.debug("debug write failed: %s", e)
        return writer

    def writer_log(line: str) -> None:
        logger.debug("%s", line)

    return writer_log


def _get_upstream(request: Request) -> Any:
    upstream = getattr(request.app.state, "upstream", None)
    if upstream is not None:
        return upstream
    settings = request.app.state.settings
    return PublicAIClient(getattr(request.app.state, "http_client", None), settings.upstream_url)


# ---------- Routes ----------

@router.get("/models", response_model=None)
@router.get("/v1/models", response_model=None)
async def models(request: Request) -> JSONResponse:
    settings = request.app.state.settings
    payload = ModelsList(
        data=[ModelCard(id=settings.default_model, created=int(request.app.state.clock()))]
    )
    return JSONResponse(content=payload.model_dump())


@router.post("/chat/completions", response_model=None)
@router.post("/v1/chat/completions", response_model=None)
async def chat_completions(request: Request) -> Union[JSONResponse, StreamingResponse]:
    try:
        payload = ChatCompletionsRequest.model_validate(_coerce_json_object_from_bytes(await request.body()))
    except json.JSONDecodeError as e:
        logger.error("Failed to parse JSON: %s", e)
        return _invalid_request(f"Invalid JSON: {e.msg} at pos {e.pos}")
    except ValidationError as e:
        detail = jsonable_encoder(e.errors(include_url=False, include_context=False))
        logger.error("Validation error on %s: %s", request.url.path, detail)
        return _invalid_request("Invalid chat completion request", details=detail)
    except (TypeError, ValueError) as e:
        logger.error("Invalid request body: %s", e)
        return _invalid_request(str(e))

    state = request.app.state
    settings = state.settings
    model = payload.model or settings.default_model
    stream = payload.stream is True
    logger.info("Client request stream=%s messages=%d model=%s", stream, len(payload.messages), model)

    envelope = build_upstream_envelope(
        payload.messages,
        sanitize_system_role=settings.sanitize_system_role,
        id_factory=state.id_factory,
    )
    context = CompletionContext(
        response_id=state.id_factory("chatcmpl-"),
        created=int(state.clock()),
        model=model,
    )
    upstream = _get_upstream(request)
    deltas = iter_deltas(upstream.iter_chunks(envelope, model=model), debug=_make_debugger(request))

    if stream:
        return StreamingResponse(
            stream_chat_completion(deltas, context),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    try:
        resp = await buffer_chat_completion(deltas, context)
    except REQUEST_FAILURES as exc:
        logger.error("Non-streaming request %s failed: %s", context.response_id, exc)
        return JSONResponse(status_code=500, content={"error": {"message": describe_failure(exc)}})
    return JSONResponse(content=resp.model_dump())
