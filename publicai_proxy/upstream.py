"""HTTP transport to the PublicAI chat endpoint."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import aiohttp

from .errors import UpstreamHTTPError
from .schemas import UpstreamEnvelope

logger = logging.getLogger(__name__)

UPSTREAM_TIMEOUT = aiohttp.ClientTimeout(total=None, sock_read=None)

# The upstream only accepts requests that look like its own mobile web client.
UPSTREAM_HEADERS = {
    "authority": "publicai.co",
    "accept": "*/*",
    "accept-language": "vi-VN,vi;q=0.9",
    "content-type": "application/json",
    "origin": "https://publicai.co",
    "referer": "https://publicai.co/chat",
    "sec-ch-ua": '"Chromium";v="137", "Not/A)Brand";v="24"',
    "sec-ch-ua-mobile": "?1",
    "sec-ch-ua-platform": '"Android"',
    "user-agent": "Mozilla/5.0 (Linux; Android 10; K) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/137.0.0.0 Mobile Safari/537.36",
}


@asynccontextmanager
async def _upstream_request(
    client: Optional[aiohttp.ClientSession],
    url: str,
    payload: dict,
    headers: dict,
) -> AsyncIterator[aiohttp.ClientResponse]:
    """Post to the upstream on the shared session, or a throwaway one when none is running."""
    if client is None or client.closed:
        async with aiohttp.ClientSession(timeout=UPSTREAM_TIMEOUT) as session:
            async with session.post(url, json=payload, headers=headers) as response:
                yield response
    else:
        async with client.post(url, json=payload, headers=headers) as response:
            yield response


class PublicAIClient:
    """Issues one streaming POST per envelope and yields raw body chunks."""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession],
        url: str,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        self.session = session
        self.url = url
        self.headers = dict(headers or UPSTREAM_HEADERS)

    async def iter_chunks(self, envelope: UpstreamEnvelope, *, model: str = "") -> AsyncIterator[bytes]:
        """Yield the response body as it arrives.

        The connection is released when this generator finishes or is closed.

        Raises:
            UpstreamHTTPError: when the upstream answers with status >= 400.
        """
        payload: dict[str, Any] = envelope.model_dump()
        logger.info("Sending to PublicAI... Model: %s", model)
        async with _upstream_request(self.session, self.url, payload, self.headers) as r:
            logger.info("Upstream status: %s %s", r.status, r.reason or "")
            if r.status >= 400:
                body = await r.text()
                logger.error("Upstream error body: %s", body[:500])
                raise UpstreamHTTPError(r.status, body)
            async for chunk in r.content.iter_any():
                yield chunk
