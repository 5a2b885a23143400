"""Shared fixtures: a scripted upstream and an app wired to it."""
from __future__ import annotations

import itertools
from typing import Any, AsyncIterator, Callable, Iterable, Optional

import pytest
from fastapi.testclient import TestClient

from publicai_proxy.app import create_app
from publicai_proxy.config import ProxySettings

API_KEY = "test-key"
FIXED_NOW = 1_700_000_000.0
AUTH = {"Authorization": f"Bearer {API_KEY}"}


def sse(*payloads: str) -> bytes:
    """Encode ``data:`` lines the way the upstream frames them."""
    return "".join(f"data: {p}\n\n" for p in payloads).encode("utf-8")


async def aiter_bytes(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


class FakeUpstream:
    """Replays byte chunks and records what the proxy asked for."""

    def __init__(self, chunks: Iterable[bytes] = (), error: Optional[BaseException] = None) -> None:
        self.chunks = list(chunks)
        self.error = error
        self.calls: list[tuple[Any, str]] = []
        self.reads = 0
        self.closed = False

    async def iter_chunks(self, envelope: Any, *, model: str = "") -> AsyncIterator[bytes]:
        self.calls.append((envelope, model))
        try:
            if self.error is not None:
                raise self.error
            for chunk in self.chunks:
                self.reads += 1
                yield chunk
        finally:
            self.closed = True


def counting_ids() -> Callable[[str], str]:
    counter = itertools.count(1)
    return lambda prefix="": f"{prefix}id{next(counter)}"


@pytest.fixture
def settings() -> ProxySettings:
    return ProxySettings(api_key=API_KEY, default_model="publicai-test")


@pytest.fixture
def make_client(settings: ProxySettings) -> Callable[..., tuple[TestClient, FakeUpstream]]:
    def _make(chunks: Iterable[bytes] = (), error: Optional[BaseException] = None, **overrides: Any):
        for key, value in overrides.items():
            setattr(settings, key, value)
        upstream = FakeUpstream(chunks, error)
        app = create_app(settings, clock=lambda: FIXED_NOW, id_factory=counting_ids(), upstream=upstream)
        return TestClient(app), upstream

    return _make
