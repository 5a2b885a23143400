"""Translate OpenAI chat messages into the PublicAI request envelope."""
from __future__ import annotations

import json
import secrets
import string
from typing import Any, Callable, Iterable

from .schemas import ChatMessage, UpstreamEnvelope, UpstreamMessage, UpstreamPart

SUBMIT_TRIGGER = "submit-message"

_ID_ALPHABET = string.ascii_letters + string.digits
_ID_LENGTH = 20

IdFactory = Callable[[str], str]


def generate_id(prefix: str = "") -> str:
    """Return ``prefix`` followed by 20 random alphanumeric characters."""
    return prefix + "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


def _flatten_content(c: Any) -> str:
    if c is None:
        return ""
    if isinstance(c, str):
        return c
    if isinstance(c, list):
        parts: list[str] = []
        for item in c:
            if isinstance(item, dict) and isinstance(item.get("text"), str):
                parts.append(item["text"])
            elif isinstance(item, str):
                parts.append(item)
            else:
                parts.append(json.dumps(item, separators=(",", ":")))
        return " ".join(parts)
    return json.dumps(c, separators=(",", ":"))


def _upstream_role(role: str, sanitize_system_role: bool) -> str:
    if sanitize_system_role and role == "system":
        return "user"
    return role


def build_upstream_envelope(
    messages: Iterable[ChatMessage],
    *,
    sanitize_system_role: bool = False,
    id_factory: IdFactory = generate_id,
) -> UpstreamEnvelope:
    """Build the envelope posted upstream, one message per input message, in order.

    With ``sanitize_system_role`` set, ``system`` messages are sent with the
    ``user`` role since some upstream deployments reject the former.
    """
    mapped = [
        UpstreamMessage(
            id=id_factory(""),
            role=_upstream_role(m.role, sanitize_system_role),
            parts=[UpstreamPart(text=_flatten_content(m.content))],
        )
        for m in messages
    ]
    return UpstreamEnvelope(
        id=id_factory(""),
        messages=mapped,
        trigger=SUBMIT_TRIGGER,
        tools={},
    )
