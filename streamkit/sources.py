"""
Byte sources - the network side of a stream session.

HttpxByteSource and IterableByteSource implement the ByteSource protocol
from protocols.py. The driver only ever sees the protocol, so it never
imports an HTTP library.
"""

import json
import logging
from typing import AsyncIterable, AsyncIterator, Iterable, Optional, Union

import httpx

from streamkit.errors import TransportError, status_error_for
from streamkit.protocols import ByteSource  # noqa: F401  (re-exported)

logger = logging.getLogger(__name__)

ERROR_BODY_PREVIEW_CHARS = 200


# ─────────────────────────────────────────────────────────────────────
# HTTP ERROR PARSING
# ─────────────────────────────────────────────────────────────────────

def parse_error_message(status_code: int, body: bytes) -> str:
    """Extract a user-friendly error message from a provider error body."""
    text = body.decode("utf-8", errors="replace")
    try:
        data = json.loads(text)
    except ValueError:
        return text[:ERROR_BODY_PREVIEW_CHARS] or f"HTTP {status_code}"

    if isinstance(data, dict):
        # OpenAI-style: {"error": {"message": "..."}} or {"error": "..."}
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if data.get("message"):
            return str(data["message"])
    return text[:ERROR_BODY_PREVIEW_CHARS]


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Retry-After in seconds, or None when absent or not numeric."""
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


# ─────────────────────────────────────────────────────────────────────
# HTTPX SOURCE
# ─────────────────────────────────────────────────────────────────────

class HttpxByteSource:
    """
    Streams the body of one httpx request.

    The request is not sent until iteration starts, so opening a stream
    costs nothing until the consumer asks for the first event.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        request: httpx.Request,
        owns_client: bool = False,
    ):
        self._client = client
        self._request = request
        self._owns_client = owns_client
        self._response: Optional[httpx.Response] = None
        self._closed = False

    @property
    def response(self) -> Optional[httpx.Response]:
        return self._response

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iter_bytes()

    async def _iter_bytes(self) -> AsyncIterator[bytes]:
        url = self._request.url
        try:
            self._response = await self._client.send(self._request, stream=True)
            response = self._response

            if not response.is_success:
                body = await response.aread()
                msg = parse_error_message(response.status_code, body)
                raise status_error_for(
                    response.status_code,
                    msg,
                    retry_after=parse_retry_after(response.headers.get("Retry-After")),
                )

            logger.debug("Streaming %s (HTTP %d)", url, response.status_code)
            async for chunk in response.aiter_bytes():
                yield chunk

        except httpx.TimeoutException as e:
            raise TransportError(f"Timeout streaming {url}: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error streaming {url}: {e}") from e

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._response is not None:
            await self._response.aclose()
        if self._owns_client:
            await self._client.aclose()


# ─────────────────────────────────────────────────────────────────────
# IN-MEMORY SOURCE
# ─────────────────────────────────────────────────────────────────────

class IterableByteSource:
    """
    Adapts a sync or async iterable of bytes (replays, stdin, tests).

    Once iteration has started, the wrapped iterable belongs to the reader:
    it is closed when the reader finishes or is closed, never from aclose(),
    because a read may still be pending in another task. A pending read on an
    async iterable returns when its next chunk arrives and then ends the stream.
    """

    def __init__(self, chunks: Union[Iterable[bytes], AsyncIterable[bytes]]):
        self._chunks = chunks
        self._started = False
        self._chunks_closed = False
        self.closed = False

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iter_bytes()

    async def _iter_bytes(self) -> AsyncIterator[bytes]:
        self._started = True
        try:
            if hasattr(self._chunks, "__aiter__"):
                async for chunk in self._chunks:
                    if self.closed:
                        return
                    yield chunk
            else:
                for chunk in self._chunks:
                    if self.closed:
                        return
                    yield chunk
        finally:
            await self._close_chunks()

    async def _close_chunks(self) -> None:
        if self._chunks_closed:
            return
        self._chunks_closed = True
        aclose = getattr(self._chunks, "aclose", None)
        if aclose is not None:
            await aclose()

    async def aclose(self) -> None:
        self.closed = True
        if not self._started:
            await self._close_chunks()
