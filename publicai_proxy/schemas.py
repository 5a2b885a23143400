"""Pydantic models for the OpenAI-facing API and the PublicAI envelope."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant"]


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)
    role: Role
    content: Any = ""


class ChatCompletionsRequest(BaseModel):
    model_config = ConfigDict(extra="allow")
    model: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    stream: Optional[bool] = None


# ---------- Upstream envelope ----------

class UpstreamPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class UpstreamMessage(BaseModel):
    id: str
    role: str
    parts: List[UpstreamPart]


class UpstreamEnvelope(BaseModel):
    id: str
    messages: List[UpstreamMessage]
    trigger: str = "submit-message"
    tools: Dict[str, Any] = Field(default_factory=dict)


# ---------- Downstream responses ----------

class ChatResponseMessage(BaseModel):
    role: str = "assistant"
    content: str = ""


class Choice(BaseModel):
    index: int = 0
    message: ChatResponseMessage
    finish_reason: Optional[str] = "stop"


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionsResponse(BaseModel):
    id: str
    object: str = "chat.completion"
    created: int
    model: str
    choices: List[Choice]
    usage: Usage = Field(default_factory=Usage)


class ChunkDelta(BaseModel):
    content: Optional[str] = None


class ChunkChoice(BaseModel):
    index: int = 0
    delta: ChunkDelta
    finish_reason: Optional[str] = None


class ChatCompletionChunk(BaseModel):
    id: str
    object: str = "chat.completion.chunk"
    created: int
    model: str
    choices: List[ChunkChoice]


class ModelCard(BaseModel):
    id: str
    object: str = "model"
    created: int
    owned_by: str = "publicai"


class ModelsList(BaseModel):
    object: str = "list"
    data: List[ModelCard]
