"""Incremental decoding of the PublicAI SSE stream into text fragments.

The upstream body arrives as arbitrary byte chunks. ``iter_lines`` rebuilds
complete lines, ``decode_line`` classifies each line into an event and
``iter_deltas`` composes both into the lazy fragment sequence consumed by the
streaming and buffering responders.
"""
from __future__ import annotations

import codecs
import json
import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Optional, Union

from .errors import UpstreamStreamError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
MAX_LINE_CHARS = 16 * 1024 * 1024

DebugWriter = Callable[[str], None]


@dataclass(frozen=True)
class TextDelta:
    fragment: str


@dataclass(frozen=True)
class UpstreamErrorEvent:
    description: str
    payload: Optional[dict] = None


@dataclass(frozen=True)
class Done:
    pass


@dataclass(frozen=True)
class Unrecognized:
    type: Any = None


UpstreamEvent = Union[TextDelta, UpstreamErrorEvent, Done, Unrecognized]


@dataclass
class StreamStats:
    """Per-call counters for lines that were skipped instead of decoded."""

    lines: int = 0
    noise_lines: int = 0
    malformed_payloads: int = 0
    ignored_events: int = 0
    fragments: int = 0
    dropped_tail_chars: int = 0
    oversized_lines: int = 0


async def iter_lines(
    chunks: AsyncIterator[bytes],
    *,
    max_line_chars: int = MAX_LINE_CHARS,
    stats: Optional[StreamStats] = None,
) -> AsyncIterator[str]:
    """Yield complete ``\\n``-terminated lines (without the terminator).

    Multi-byte characters split across chunks are held back by the
    incremental decoder. Whatever is left in the buffer when the stream ends
    is an incomplete line and is dropped. Lines longer than
    ``max_line_chars`` are dropped whole, however the chunks were cut, and
    reading resumes at the next line break.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    skipping = False

    async for chunk in chunks:
        if not chunk:
            continue
        buffer += decoder.decode(chunk)
        if "\n" in buffer:
            *lines, buffer = buffer.split("\n")
            for line in lines:
                if skipping:
                    # remainder of a line already dropped for length
                    skipping = False
                    continue
                if len(line) > max_line_chars:
                    _drop_oversized(len(line), stats)
                    continue
                yield line
        if len(buffer) > max_line_chars:
            if not skipping:
                _drop_oversized(len(buffer), stats)
            buffer = ""
            skipping = True

    tail = buffer + decoder.decode(b"", final=True)
    if tail and not skipping:
        logger.debug("Discarding incomplete trailing line (%d chars)", len(tail))
        if stats is not None:
            stats.dropped_tail_chars += len(tail)


def _drop_oversized(length: int, stats: Optional[StreamStats]) -> None:
    logger.warning("Dropping upstream line longer than the limit (%d+ chars)", length)
    if stats is not None:
        stats.oversized_lines += 1


def _error_description(ev: dict[str, Any]) -> str:
    text = ev.get("errorText")
    if isinstance(text, str) and text:
        return text
    err = ev.get("error")
    if isinstance(err, dict) and isinstance(err.get("message"), str) and err["message"]:
        return err["message"]
    if isinstance(err, str) and err:
        return err
    return "Upstream failure"


def decode_line(line: str, stats: Optional[StreamStats] = None) -> Optional[UpstreamEvent]:
    """Classify one SSE line; ``None`` means the line is noise and was skipped."""
    stripped = line.strip()
    if not stripped.startswith(DATA_PREFIX):
        if stripped:
            # Usually an HTML error page or a comment line.
            logger.warning("Unexpected line from upstream: %s", stripped[:50])
            if stats is not None:
                stats.noise_lines += 1
        return None

    payload = stripped[len(DATA_PREFIX):].strip()
    if payload == DONE_SENTINEL:
        return Done()

    try:
        ev = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("Failed to parse upstream JSON: %s", payload[:200])
        if stats is not None:
            stats.malformed_payloads += 1
        return None

    if not isinstance(ev, dict):
        return Unrecognized()
    et = ev.get("type")
    if et == "text-delta":
        delta = ev.get("delta")
        if isinstance(delta, str) and delta:
            return TextDelta(delta)
        return Unrecognized(et)
    if et == "error":
        return UpstreamErrorEvent(_error_description(ev), payload=ev)
    return Unrecognized(et)


async def iter_deltas(
    chunks: AsyncIterator[bytes],
    *,
    stats: Optional[StreamStats] = None,
    debug: Optional[DebugWriter] = None,
    max_line_chars: int = MAX_LINE_CHARS,
) -> AsyncIterator[str]:
    """Yield text fragments until ``[DONE]``, an error event or end of stream.

    Raises:
        UpstreamStreamError: when the upstream emits an ``error`` event.
    """
    stats = stats if stats is not None else StreamStats()
    try:
        async with aclosing(iter_lines(chunks, max_line_chars=max_line_chars, stats=stats)) as lines:
            async for line in lines:
                stats.lines += 1
                if debug:
                    debug(f"raw: {line[:500]}")
                event = decode_line(line, stats)
                if event is None:
                    continue
                if isinstance(event, Done):
                    if debug:
                        debug("event: [DONE]")
                    logger.info("Received [DONE] signal")
                    return
                if isinstance(event, UpstreamErrorEvent):
                    if debug:
                        debug(f"event: error {event.description[:300]}")
                    logger.warning("Upstream reported an error: %s", event.description)
                    raise UpstreamStreamError(event.description, event=event.payload)
                if isinstance(event, TextDelta):
                    stats.fragments += 1
                    yield event.fragment
                    continue
                stats.ignored_events += 1
                if debug:
                    debug(f"event: {event.type or '<unknown>'}")
            logger.info("Stream ended by upstream")
    finally:
        closer = getattr(chunks, "aclose", None)
        if closer is not None:
            await closer()
        logger.debug(
            "Stream stats lines=%d fragments=%d noise=%d malformed=%d ignored=%d oversized=%d dropped_tail=%d",
            stats.lines,
            stats.fragments,
            stats.noise_lines,
            stats.malformed_payloads,
            stats.ignored_events,
            stats.oversized_lines,
            stats.dropped_tail_chars,
        )
