"""Shared test fixtures for streamkit tests."""

import json

import pytest

from streamkit.observability import RecordingSink


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA
# ─────────────────────────────────────────────────────────────────────

MOCK_BASE_URL = "http://192.168.1.10:1234/v1"
MOCK_MODEL = "llama-3.2-3b-instruct"

MOCK_STREAMING_CHUNKS = [
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"llama-3.2-3b-instruct","choices":[{"index":0,"delta":{"role":"assistant","content":""},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"llama-3.2-3b-instruct","choices":[{"index":0,"delta":{"content":"The"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"llama-3.2-3b-instruct","choices":[{"index":0,"delta":{"content":" capital"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"llama-3.2-3b-instruct","choices":[{"index":0,"delta":{"content":" of"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"llama-3.2-3b-instruct","choices":[{"index":0,"delta":{"content":" France"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"llama-3.2-3b-instruct","choices":[{"index":0,"delta":{"content":" is"},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"llama-3.2-3b-instruct","choices":[{"index":0,"delta":{"content":" Paris."},"finish_reason":null}]}',
    'data: {"id":"chatcmpl-123","object":"chat.completion.chunk","created":1699000000,"model":"llama-3.2-3b-instruct","choices":[{"index":0,"delta":{},"finish_reason":"stop"}]}',
    'data: [DONE]',
]

MOCK_STREAMING_TEXT = "The capital of France is Paris."

MOCK_COMPLETION_CHUNKS = [
    'data: {"id":"cmpl-1","object":"text_completion","choices":[{"index":0,"text":"Once","finish_reason":null}]}',
    'data: {"id":"cmpl-1","object":"text_completion","choices":[{"index":0,"text":" upon","finish_reason":null}]}',
    'data: {"id":"cmpl-1","object":"text_completion","choices":[{"index":0,"text":" a time","finish_reason":"stop"}]}',
    'data: [DONE]',
]

# Exercises every framer feature in one capture: comments, named events,
# multi-line data, id/retry on inner lines, CRLF, and multi-byte characters.
MIXED_SSE_CAPTURE = (
    ": keep-alive\n"
    "\n"
    "event: message\n"
    "data: {\"text\": \"café\"}\n"
    "\n"
    "data: line one\n"
    "id: 42\n"
    "data: line two\n"
    "retry: 1500\n"
    "data: 日本語\n"
    "\n"
    "retry: later\r\n"
    "data: crlf\r\n"
    "\r\n"
    "event: ping\n"
    "\n"
    "data: [DONE]\n"
    "\n"
).encode("utf-8")


def sse_body(lines: list[str]) -> bytes:
    """Join data lines into an SSE body, one frame per line."""
    return "".join(f"{line}\n\n" for line in lines).encode("utf-8")


def data_frame(payload) -> bytes:
    return f"data: {json.dumps(payload)}\n\n".encode("utf-8")


# ─────────────────────────────────────────────────────────────────────
# FIXTURES
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def mock_streaming_body():
    """Full chat SSE body ending with [DONE]."""
    return sse_body(MOCK_STREAMING_CHUNKS)


@pytest.fixture
def mock_completion_body():
    return sse_body(MOCK_COMPLETION_CHUNKS)


@pytest.fixture
def mixed_capture():
    return MIXED_SSE_CAPTURE


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove streamkit-related variables so defaults apply."""
    for key in (
        "STREAMKIT_BASE_URL",
        "STREAMKIT_API_KEY",
        "OPENAI_API_KEY",
        "STREAMKIT_TIMEOUT_SECONDS",
        "STREAMKIT_MODEL",
    ):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch
