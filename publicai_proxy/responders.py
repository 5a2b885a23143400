"""Turn the upstream fragment sequence into OpenAI responses."""
from __future__ import annotations

import json
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator

from .errors import REQUEST_FAILURES, describe_failure
from .schemas import (
    ChatCompletionChunk,
    ChatCompletionsResponse,
    ChatResponseMessage,
    Choice,
    ChunkChoice,
    ChunkDelta,
    Usage,
)

logger = logging.getLogger(__name__)

DONE_EVENT = "data: [DONE]\n\n"


@dataclass(frozen=True)
class CompletionContext:
    """Identity shared by every chunk of one completion."""

    response_id: str
    created: int
    model: str


def format_sse(data: dict[str, Any]) -> str:
    return f"data: {json.dumps(data, ensure_ascii=False)}\n\n"


def error_event(message: str) -> str:
    return format_sse({"error": {"message": message}})


def make_chunk(context: CompletionContext, fragment: str) -> ChatCompletionChunk:
    return ChatCompletionChunk(
        id=context.response_id,
        created=context.created,
        model=context.model,
        choices=[ChunkChoice(index=0, delta=ChunkDelta(content=fragment), finish_reason=None)],
    )


async def stream_chat_completion(
    deltas: AsyncIterator[str], context: CompletionContext
) -> AsyncIterator[str]:
    """Re-emit each fragment as a ``chat.completion.chunk`` SSE block.

    Headers are already sent when this runs, so failures are reported in
    band as a single ``{"error": {...}}`` block instead of a ``[DONE]``.
    """
    async with aclosing(deltas) as fragments:
        try:
            async for fragment in fragments:
                yield format_sse(make_chunk(context, fragment).model_dump())
        except REQUEST_FAILURES as exc:
            logger.warning("Stream for %s failed: %s", context.response_id, exc)
            yield error_event(describe_failure(exc))
            return
    yield DONE_EVENT


async def buffer_chat_completion(
    deltas: AsyncIterator[str], context: CompletionContext
) -> ChatCompletionsResponse:
    """Drain the fragments into a single ``chat.completion`` response.

    Failures propagate to the caller; no partial content is returned.
    """
    async with aclosing(deltas) as fragments:
        content = "".join([fragment async for fragment in fragments])

    logger.info("Completed %s. Length: %d", context.response_id, len(content))
    if not content:
        logger.warning("Full content is empty for %s", context.response_id)

    return ChatCompletionsResponse(
        id=context.response_id,
        created=context.created,
        model=context.model,
        choices=[
            Choice(
                index=0,
                message=ChatResponseMessage(role="assistant", content=content),
                finish_reason="stop",
            )
        ],
        usage=Usage(prompt_tokens=0, completion_tokens=0, total_tokens=0),
    )
