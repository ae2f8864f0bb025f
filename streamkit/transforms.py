"""
Order-preserving combinators over an event sequence.

Each combinator is a read-only view: it pulls from its upstream one
element at a time and never buffers. When a derived sequence stops for any
reason (exhausted, closed, cancelled, or its function raised) it closes its
upstream, so closing the outermost view releases the StreamSession. That
holds even for a view closed before its first pull.
"""

import functools
from typing import Any, AsyncIterable, AsyncIterator, Callable, Generic, Optional, TypeVar

from streamkit.events import Chunk, Done, Error
from streamkit.schemas import extract_text

T = TypeVar("T")
U = TypeVar("U")

TextExtractor = Callable[[Any], Optional[str]]


async def _close(upstream: AsyncIterable) -> None:
    aclose = getattr(upstream, "aclose", None)
    if aclose is not None:
        await aclose()


class DerivedStream(Generic[U]):
    """
    Async iterator over one combinator, bound to the upstream it reads.

    A bare async generator only runs its cleanup once started, so aclose()
    here also closes the upstream directly. Upstream aclose() must be
    idempotent; EventStream and DerivedStream both are.
    """

    def __init__(self, upstream: AsyncIterable, gen: AsyncIterator[U]):
        self._upstream = upstream
        self._gen = gen
        self._pulling = False

    def __aiter__(self) -> "DerivedStream[U]":
        return self

    async def __anext__(self) -> U:
        self._pulling = True
        try:
            return await self._gen.__anext__()
        finally:
            self._pulling = False

    async def __aenter__(self) -> "DerivedStream[U]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        try:
            # A pull pending in another task ends once the upstream is closed
            if not self._pulling:
                await self._gen.aclose()
        finally:
            await _close(self._upstream)


def _derived(genfunc):
    @functools.wraps(genfunc)
    def wrapper(upstream, *args, **kwargs) -> DerivedStream:
        return DerivedStream(upstream, genfunc(upstream, *args, **kwargs))
    return wrapper


@_derived
async def map_events(upstream: AsyncIterable[T], fn: Callable[[T], U]) -> AsyncIterator[U]:
    """Yield fn(element) for every upstream element."""
    try:
        async for element in upstream:
            yield fn(element)
    finally:
        await _close(upstream)


@_derived
async def filter_events(
    upstream: AsyncIterable[T], predicate: Callable[[T], bool]
) -> AsyncIterator[T]:
    """Yield only the elements satisfying predicate."""
    try:
        async for element in upstream:
            if predicate(element):
                yield element
    finally:
        await _close(upstream)


@_derived
async def compact_map(
    upstream: AsyncIterable[T], fn: Callable[[T], Optional[U]]
) -> AsyncIterator[U]:
    """Yield fn(element), skipping elements that project to None."""
    try:
        async for element in upstream:
            projected = fn(element)
            if projected is not None:
                yield projected
    finally:
        await _close(upstream)


@_derived
async def text_stream(
    upstream: AsyncIterable, extract: Optional[TextExtractor] = None
) -> AsyncIterator[str]:
    """
    Project Chunk payloads to text deltas.

    Stops at Done. An in-band Error event is re-raised as its cause.
    """
    extract = extract or extract_text
    try:
        async for event in upstream:
            if isinstance(event, Done):
                return
            if isinstance(event, Error):
                raise event.cause
            if isinstance(event, Chunk):
                text = extract(event.payload)
                if text is not None:
                    yield text
    finally:
        await _close(upstream)


async def accumulated_text(
    upstream: AsyncIterable, extract: Optional[TextExtractor] = None
) -> str:
    """Drain the sequence and concatenate its text deltas."""
    parts = []
    async with text_stream(upstream, extract) as texts:
        async for text in texts:
            parts.append(text)
    return "".join(parts)
