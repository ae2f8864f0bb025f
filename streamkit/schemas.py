"""
Pydantic models for OpenAI-style stream chunks, plus payload decoders.

Providers add fields freely, so every model ignores unknown keys.
"""

import json
from typing import Any, Callable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

M = TypeVar("M", bound=BaseModel)


class _StreamModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Usage(_StreamModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


# ─────────────────────────────────────────────────────────────────────
# CHAT
# ─────────────────────────────────────────────────────────────────────

class FunctionCallDelta(_StreamModel):
    name: Optional[str] = None
    arguments: Optional[str] = None


class ToolCallDelta(_StreamModel):
    """Tool calls arrive in pieces; index ties the pieces together."""
    index: int = 0
    id: Optional[str] = None
    type: Optional[str] = None
    function: Optional[FunctionCallDelta] = None


class ChatMessageDelta(_StreamModel):
    role: Optional[str] = None
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCallDelta]] = None


class ChatStreamChoice(_StreamModel):
    index: int = 0
    delta: ChatMessageDelta = Field(default_factory=ChatMessageDelta)
    finish_reason: Optional[str] = None


class ChatStreamChunk(_StreamModel):
    id: str = ""
    model: Optional[str] = None
    system_fingerprint: Optional[str] = None
    choices: List[ChatStreamChoice] = Field(default_factory=list)
    usage: Optional[Usage] = None


# ─────────────────────────────────────────────────────────────────────
# COMPLETION
# ─────────────────────────────────────────────────────────────────────

class CompletionStreamChoice(_StreamModel):
    index: int = 0
    text: str = ""
    finish_reason: Optional[str] = None


class CompletionStreamChunk(_StreamModel):
    id: str = ""
    model: Optional[str] = None
    system_fingerprint: Optional[str] = None
    choices: List[CompletionStreamChoice] = Field(default_factory=list)
    usage: Optional[Usage] = None


# ─────────────────────────────────────────────────────────────────────
# DECODERS
# ─────────────────────────────────────────────────────────────────────

def pydantic_decoder(model: Type[M]) -> Callable[[bytes], M]:
    """Decoder that validates a JSON payload into `model`. Raises on bad payloads."""
    def decode(raw: bytes) -> M:
        return model.model_validate_json(raw)
    decode.__name__ = f"decode_{model.__name__}"
    return decode


def json_decoder() -> Callable[[bytes], Any]:
    """Decoder for untyped JSON payloads."""
    return json.loads


# ─────────────────────────────────────────────────────────────────────
# TEXT EXTRACTORS
# ─────────────────────────────────────────────────────────────────────

def chat_delta_text(chunk: ChatStreamChunk) -> Optional[str]:
    """Content delta of the first choice, if any."""
    if not chunk.choices:
        return None
    return chunk.choices[0].delta.content


def completion_text(chunk: CompletionStreamChunk) -> Optional[str]:
    if not chunk.choices:
        return None
    return chunk.choices[0].text


def extract_text(payload: Any) -> Optional[str]:
    """
    Default text projection for Chunk payloads.

    str passes through; chat and completion chunks yield their first
    choice's text; anything else projects to nothing.
    """
    if isinstance(payload, str):
        return payload
    if isinstance(payload, ChatStreamChunk):
        return chat_delta_text(payload)
    if isinstance(payload, CompletionStreamChunk):
        return completion_text(payload)
    return None
