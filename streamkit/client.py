"""
StreamingClient - OpenAI-compatible HTTP front end for the stream driver.

Builds the request, hands an HttpxByteSource to open_stream, and returns
the resulting EventStream. Works with any server speaking the OpenAI
streaming dialect (OpenAI, LM Studio, vLLM, Together, ...).
"""

import logging
from typing import Any, Dict, List, Optional, Union

import httpx
from pydantic import BaseModel

from streamkit.config import ProviderConfig, load_provider_config
from streamkit.driver import EventStream, open_stream
from streamkit.observability import DecodeErrorSink
from streamkit.schemas import ChatStreamChunk, CompletionStreamChunk, pydantic_decoder
from streamkit.sources import HttpxByteSource

logger = logging.getLogger(__name__)


def _normalize_tools_for_openai(tools: list[dict]) -> list[dict]:
    """
    Normalize tool definitions to OpenAI format.

    Flat format:
        {"name": "...", "description": "...", "parameters": {...}}

    OpenAI nested format:
        {"type": "function", "function": {"name": "...", ...}}

    Already-wrapped tools are returned as-is.
    """
    normalized = []
    for tool in tools:
        if tool.get("type") == "function" and "function" in tool:
            normalized.append(tool)
        else:
            normalized.append({"type": "function", "function": tool})
    return normalized


# ─────────────────────────────────────────────────────────────────────
# REQUEST MODELS
# ─────────────────────────────────────────────────────────────────────

class ChatRequest(BaseModel):
    """Streaming chat request. Messages are OpenAI-format dicts."""
    messages: List[Dict[str, Any]]
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    stop: Optional[List[str]] = None
    tools: Optional[List[Dict[str, Any]]] = None
    seed: Optional[int] = None
    user: Optional[str] = None

    def to_payload(self, default_model: Optional[str] = None) -> dict:
        payload: dict = {
            "model": self.model or default_model,
            "messages": self.messages,
            "stream": True,
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_tokens is not None and self.max_tokens > 0:
            payload["max_tokens"] = self.max_tokens
        if self.top_p is not None:
            payload["top_p"] = self.top_p
        if self.stop:
            payload["stop"] = self.stop
        if self.tools:
            payload["tools"] = _normalize_tools_for_openai(self.tools)
        if self.seed is not None:
            payload["seed"] = int(self.seed)
        if self.user:
            payload["user"] = self.user
        return payload


class CompletionRequest(BaseModel):
    """Streaming text-completion request."""
    prompt: Union[str, List[str]]
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    stop: Optional[List[str]] = None
    seed: Optional[int] = None

    def to_payload(self, default_model: Optional[str] = None) -> dict:
        payload: dict = {
            "model": self.model or default_model,
            "prompt": self.prompt,
            "stream": True,
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_tokens is not None and self.max_tokens > 0:
            payload["max_tokens"] = self.max_tokens
        if self.top_p is not None:
            payload["top_p"] = self.top_p
        if self.stop:
            payload["stop"] = self.stop
        if self.seed is not None:
            payload["seed"] = int(self.seed)
        return payload


# ─────────────────────────────────────────────────────────────────────
# CLIENT
# ─────────────────────────────────────────────────────────────────────

class StreamingClient:
    """
    Opens typed event streams against one provider.

    Pass an httpx.AsyncClient to share a connection pool across streams;
    otherwise each stream gets (and closes) its own client.
    """

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        default_model: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sink: Optional[DecodeErrorSink] = None,
    ):
        self.config = config or load_provider_config()
        self.default_model = default_model
        self._http_client = http_client
        self._sink = sink

    def _build_request(self, client: httpx.AsyncClient, path: str, payload: dict) -> httpx.Request:
        return client.build_request(
            "POST",
            self.config.build_url(path),
            params=self.config.query_params or None,
            json=payload,
            headers=self.config.build_headers({"Accept": "text/event-stream"}),
        )

    def _open(self, path: str, payload: dict, decoder, yield_errors: bool) -> EventStream:
        if self._http_client is not None:
            client, owns_client = self._http_client, False
        else:
            client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
            owns_client = True

        request = self._build_request(client, path, payload)
        logger.debug("Opening stream: POST %s model=%s", request.url, payload.get("model"))
        source = HttpxByteSource(client, request, owns_client=owns_client)
        return open_stream(source, decoder, sink=self._sink, yield_errors=yield_errors)

    def stream_chat(self, request: ChatRequest, yield_errors: bool = False) -> EventStream[ChatStreamChunk]:
        """Stream a chat completion. Nothing is sent until the stream is iterated."""
        return self._open(
            "chat/completions",
            request.to_payload(self.default_model),
            pydantic_decoder(ChatStreamChunk),
            yield_errors,
        )

    def stream_completion(
        self, request: CompletionRequest, yield_errors: bool = False
    ) -> EventStream[CompletionStreamChunk]:
        """Stream a text completion. Nothing is sent until the stream is iterated."""
        return self._open(
            "completions",
            request.to_payload(self.default_model),
            pydantic_decoder(CompletionStreamChunk),
            yield_errors,
        )
