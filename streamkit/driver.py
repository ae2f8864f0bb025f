"""
Stream driver: byte source -> framer -> typed events.

One StreamSession per open stream. It owns the byte source, the framer
state and the decode-error counter; nothing in it is shared with any other
session. The only field another thread may touch is the cancellation flag.

EventStream is the consumer-facing async iterator. It is lazy (nothing is
read until the first __anext__), pull-based (one chunk read per demand) and
single-use.
"""

import asyncio
import logging
import threading
from typing import AsyncIterator, Callable, Generic, Iterable, Iterator, Optional, TypeVar

from streamkit.config import DEFAULT_ENCODING, DONE_SENTINEL
from streamkit.errors import StreamConsumedError, TransportError
from streamkit.events import Chunk, Done, DomainEvent, Error, Metadata
from streamkit.framer import EventFramer, Frame
from streamkit.observability import DecodeErrorSink, DecodeFailure, LoggingSink, notify
from streamkit.protocols import ByteSource
from streamkit import transforms

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

PayloadDecoder = Callable[[bytes], T]

# Raised by a byte source while reading. Anything else is a bug and propagates as-is.
TRANSPORT_ERRORS = (TransportError, OSError, asyncio.TimeoutError)


# ─────────────────────────────────────────────────────────────────────
# SESSION
# ─────────────────────────────────────────────────────────────────────

class StreamSession(Generic[T]):
    """Lifetime-scoped state for one streaming request."""

    def __init__(
        self,
        source: ByteSource,
        decoder: PayloadDecoder,
        sink: Optional[DecodeErrorSink] = None,
        sentinel: str = DONE_SENTINEL,
        encoding: str = DEFAULT_ENCODING,
    ):
        self.source = source
        self._decoder = decoder
        self._sink = sink if sink is not None else LoggingSink()
        self._sentinel = sentinel
        self._encoding = encoding
        self._ready: list[Frame] = []
        self.framer = EventFramer(self._ready.append, encoding=encoding)
        self.decode_error_count = 0
        self.last_event_id: Optional[str] = None
        self._cancel_requested = threading.Event()
        self._source_closed = False

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested.is_set()

    @property
    def closed(self) -> bool:
        return self._source_closed

    def cancel(self) -> None:
        """Request cancellation. Safe to call from any thread."""
        self._cancel_requested.set()

    def feed(self, chunk: bytes) -> list[Frame]:
        """Feed one chunk; return the frames it completed, in wire order."""
        self.framer.feed(chunk)
        return self._take_ready()

    def flush(self) -> list[Frame]:
        self.framer.flush()
        return self._take_ready()

    def _take_ready(self) -> list[Frame]:
        frames = list(self._ready)
        self._ready.clear()
        return frames

    def decode(self, frame: Frame) -> Optional[DomainEvent]:
        """
        Turn one frame into an event.

        Returns None for a frame whose payload failed to decode; the failure
        is counted and reported to the sink instead of failing the stream.
        """
        if frame.id is not None:
            self.last_event_id = frame.id

        if frame.data is None:
            values = {
                name: value
                for name, value in (("event", frame.event), ("id", frame.id), ("retry", frame.retry))
                if value is not None
            }
            return Metadata(values=values)

        if frame.data == self._sentinel:
            return Done()

        try:
            payload = self._decoder(frame.data.encode(self._encoding))
        except Exception as e:
            self.decode_error_count += 1
            notify(self._sink, DecodeFailure(frame=frame, error=e, count=self.decode_error_count))
            return None
        return Chunk(payload=payload)

    def events(self, frames: Iterable[Frame]) -> Iterator[DomainEvent]:
        """Decode frames lazily, so nothing after a Done is ever decoded."""
        for frame in frames:
            event = self.decode(frame)
            if event is not None:
                yield event

    async def close(self) -> None:
        """Discard buffered state and release the source. Runs at most once."""
        if self._source_closed:
            return
        self._source_closed = True
        self.framer.discard()
        logger.debug(
            "Closing stream session (cancelled=%s, decode_errors=%d)",
            self.cancelled, self.decode_error_count,
        )
        await self.source.aclose()


# ─────────────────────────────────────────────────────────────────────
# EVENT STREAM
# ─────────────────────────────────────────────────────────────────────

class EventStream(Generic[T]):
    """
    Cancellable, lazily-produced sequence of DomainEvents.

    Usage:
        async with open_stream(source, decoder) as events:
            async for event in events:
                ...

    Leaving the block, calling aclose(), or cancelling the consuming task
    closes the byte source. cancel() only raises the flag and may be called
    from another thread; the driver honours it before its next yield.
    """

    def __init__(self, session: StreamSession, yield_errors: bool = False):
        self._session = session
        self._yield_errors = yield_errors
        self._iterated = False
        self._pulling = False
        self._gen: Optional[AsyncIterator[DomainEvent]] = None

    @property
    def session(self) -> StreamSession:
        return self._session

    @property
    def decode_error_count(self) -> int:
        return self._session.decode_error_count

    @property
    def last_event_id(self) -> Optional[str]:
        return self._session.last_event_id

    @property
    def cancelled(self) -> bool:
        return self._session.cancelled

    def __aiter__(self) -> "EventStream[T]":
        if self._iterated:
            raise StreamConsumedError("EventStream can only be iterated once")
        self._iterated = True
        return self

    async def __anext__(self) -> DomainEvent:
        if self._gen is None:
            self._gen = self._drive()
        self._pulling = True
        try:
            return await self._gen.__anext__()
        finally:
            self._pulling = False

    async def __aenter__(self) -> "EventStream[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def cancel(self) -> None:
        self._session.cancel()

    async def aclose(self) -> None:
        """Stop now: no further events, buffered state discarded, source released."""
        if not self._session.closed:
            self._session.cancel()
        if self._gen is not None and not self._pulling:
            await self._gen.aclose()
        # If another task is mid-read, closing the source unblocks it and
        # the driver sees the flag instead of reporting a transport error.
        await self._session.close()

    async def _drive(self) -> AsyncIterator[DomainEvent]:
        session = self._session
        failure: Optional[TransportError] = None
        reader = None
        logger.debug("Opening stream session")
        try:
            reader = session.source.__aiter__()
            while not session.cancelled:
                try:
                    chunk = await reader.__anext__()
                except StopAsyncIteration:
                    break
                except TRANSPORT_ERRORS as e:
                    if session.cancelled:
                        return
                    failure = e if isinstance(e, TransportError) else TransportError(str(e) or type(e).__name__)
                    if failure is not e:
                        failure.__cause__ = e
                    break

                for event in session.events(session.feed(chunk)):
                    if session.cancelled:
                        return
                    yield event
                    if isinstance(event, Done):
                        return

            if session.cancelled:
                return

            # Natural end or transport failure: salvage a trailing partial frame
            for event in session.events(session.flush()):
                if session.cancelled:
                    return
                yield event
                if isinstance(event, Done):
                    return

            if session.cancelled:
                return
            if failure is not None:
                logger.debug("Stream terminated by transport error: %s", failure)
                if not self._yield_errors:
                    raise failure
                yield Error(cause=failure)
                return
            yield Done()

        except asyncio.CancelledError:
            session.cancel()
            raise
        finally:
            try:
                if reader is not None and hasattr(reader, "aclose"):
                    await reader.aclose()
            finally:
                await session.close()

    # ─────────────────────────────────────────────────────────────────
    # TRANSFORMS
    # ─────────────────────────────────────────────────────────────────

    def map(self, fn: Callable[[DomainEvent], U]) -> AsyncIterator[U]:
        return transforms.map_events(self, fn)

    def filter(self, predicate: Callable[[DomainEvent], bool]) -> AsyncIterator[DomainEvent]:
        return transforms.filter_events(self, predicate)

    def compact_map(self, fn: Callable[[DomainEvent], Optional[U]]) -> AsyncIterator[U]:
        return transforms.compact_map(self, fn)

    def text_stream(self, extract: Optional[transforms.TextExtractor] = None) -> AsyncIterator[str]:
        return transforms.text_stream(self, extract)

    async def accumulated_text(self, extract: Optional[transforms.TextExtractor] = None) -> str:
        return await transforms.accumulated_text(self, extract)


def open_stream(
    source: ByteSource,
    decoder: PayloadDecoder,
    sink: Optional[DecodeErrorSink] = None,
    sentinel: str = DONE_SENTINEL,
    encoding: str = DEFAULT_ENCODING,
    yield_errors: bool = False,
) -> EventStream:
    """
    Open a typed event stream over a byte source.

    Args:
        source: ByteSource providing raw chunks (not read until iteration)
        decoder: bytes -> payload; any exception skips that frame
        sink: receives decode-error notifications (default: LoggingSink)
        sentinel: data value that marks a clean end of stream
        encoding: text encoding of the wire
        yield_errors: deliver a transport failure as a terminal Error event
            instead of raising it

    Returns:
        EventStream of Chunk/Metadata events ending in Done, or ending in a
        transport error.
    """
    session = StreamSession(
        source,
        decoder,
        sink=sink,
        sentinel=sentinel,
        encoding=encoding,
    )
    return EventStream(session, yield_errors=yield_errors)
