"""Tests for streamkit.transforms - combinators over event sequences."""

import json

import pytest

from streamkit.driver import open_stream
from streamkit.errors import TransportError
from streamkit.events import Chunk, Done, Error, Metadata
from streamkit.schemas import ChatStreamChunk, pydantic_decoder
from streamkit.transforms import (
    accumulated_text,
    compact_map,
    filter_events,
    map_events,
    text_stream,
)
from tests.conftest import data_frame, sse_body, MOCK_STREAMING_CHUNKS, MOCK_STREAMING_TEXT
from tests.fake_source import FakeByteSource


async def events_of(*items):
    for item in items:
        yield item


async def collect(aiter) -> list:
    return [x async for x in aiter]


# ─────────────────────────────────────────────────────────────────────
# Combinators
# ─────────────────────────────────────────────────────────────────────


class TestCombinators:
    @pytest.mark.asyncio
    async def test_map_preserves_order(self):
        result = await collect(map_events(events_of(1, 2, 3), lambda x: x * 10))
        assert result == [10, 20, 30]

    @pytest.mark.asyncio
    async def test_filter_preserves_order(self):
        result = await collect(filter_events(events_of(1, 2, 3, 4, 5), lambda x: x % 2))
        assert result == [1, 3, 5]

    @pytest.mark.asyncio
    async def test_compact_map_skips_none(self):
        items = events_of(Chunk("a"), Metadata({"id": "1"}), Chunk("b"), Done())
        result = await collect(
            compact_map(items, lambda e: e.payload if isinstance(e, Chunk) else None)
        )
        assert result == ["a", "b"]

    @pytest.mark.asyncio
    async def test_map_failure_terminates_derived_sequence(self):
        def explode(x):
            if x == 2:
                raise ValueError("bad element")
            return x

        seen = []
        with pytest.raises(ValueError, match="bad element"):
            async for x in map_events(events_of(1, 2, 3), explode):
                seen.append(x)
        assert seen == [1]

    @pytest.mark.asyncio
    async def test_predicate_failure_terminates_derived_sequence(self):
        with pytest.raises(ZeroDivisionError):
            await collect(filter_events(events_of(1, 0), lambda x: 1 / x))

    @pytest.mark.asyncio
    async def test_upstream_error_propagates_unchanged(self):
        async def failing():
            yield 1
            raise TransportError("reset")

        with pytest.raises(TransportError, match="reset"):
            await collect(map_events(failing(), str))

    @pytest.mark.asyncio
    async def test_chained_views(self):
        source = FakeByteSource([data_frame(i) for i in range(6)])
        stream = open_stream(source, json.loads)

        evens = stream.filter(lambda e: isinstance(e, Chunk) and e.payload % 2 == 0)
        doubled = map_events(evens, lambda e: e.payload * 2)

        assert await collect(doubled) == [0, 4, 8]
        assert source.aclose_calls == 1


# ─────────────────────────────────────────────────────────────────────
# Cancellation transparency
# ─────────────────────────────────────────────────────────────────────


class TestCancellationTransparency:
    @pytest.mark.asyncio
    async def test_closing_derived_closes_session(self):
        source = FakeByteSource([data_frame(i) for i in range(10)])
        stream = open_stream(source, json.loads)
        derived = stream.map(lambda e: e)

        await derived.__anext__()
        await derived.aclose()

        assert stream.cancelled
        assert source.aclose_calls == 1
        assert source.reads == 1

    @pytest.mark.asyncio
    async def test_closing_nested_views_reaches_session(self):
        source = FakeByteSource([data_frame(i) for i in range(10)])
        stream = open_stream(source, json.loads)
        view = compact_map(filter_events(stream, lambda e: True), lambda e: e)

        await view.__anext__()
        await view.aclose()

        assert source.aclose_calls == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("make_view", [
        lambda s: s.map(lambda e: e),
        lambda s: s.filter(lambda e: True),
        lambda s: s.compact_map(lambda e: e),
        lambda s: s.text_stream(),
    ])
    async def test_closing_unstarted_view_cancels_session(self, make_view):
        source = FakeByteSource([data_frame(i) for i in range(10)])
        stream = open_stream(source, json.loads)
        derived = make_view(stream)

        await derived.aclose()

        assert stream.cancelled
        assert source.aclose_calls == 1
        assert source.reads == 0

    @pytest.mark.asyncio
    async def test_closing_unstarted_nested_views_reaches_session(self):
        source = FakeByteSource([data_frame(i) for i in range(10)])
        stream = open_stream(source, json.loads)
        view = map_events(filter_events(stream, lambda e: True), lambda e: e)

        async with view:
            pass

        assert stream.cancelled
        assert source.aclose_calls == 1
        assert source.reads == 0

    @pytest.mark.asyncio
    async def test_closing_view_twice_releases_once(self):
        source = FakeByteSource([data_frame(i) for i in range(10)])
        stream = open_stream(source, json.loads)
        derived = stream.map(lambda e: e)

        await derived.__anext__()
        await derived.aclose()
        await derived.aclose()

        assert source.aclose_calls == 1

    @pytest.mark.asyncio
    async def test_function_failure_releases_upstream(self):
        source = FakeByteSource([data_frame(i) for i in range(10)])
        stream = open_stream(source, json.loads)

        def fail(_):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await collect(stream.map(fail))

        assert source.aclose_calls == 1
        assert source.reads == 1


# ─────────────────────────────────────────────────────────────────────
# Text helpers
# ─────────────────────────────────────────────────────────────────────


class TestTextHelpers:
    @pytest.mark.asyncio
    async def test_accumulated_text_over_string_chunks(self):
        items = events_of(Chunk("a"), Chunk("b"), Chunk("c"), Done())
        assert await accumulated_text(items) == "abc"

    @pytest.mark.asyncio
    async def test_text_stream_stops_at_done(self):
        items = events_of(Chunk("a"), Done(), Chunk("never"))
        assert await collect(text_stream(items)) == ["a"]

    @pytest.mark.asyncio
    async def test_text_stream_skips_non_text(self):
        items = events_of(Metadata({"retry": 10}), Chunk({"not": "text"}), Chunk("x"), Done())
        assert await collect(text_stream(items)) == ["x"]

    @pytest.mark.asyncio
    async def test_text_stream_custom_extractor(self):
        items = events_of(Chunk({"t": "he"}), Chunk({"t": "y"}), Done())
        assert await accumulated_text(items, extract=lambda p: p.get("t")) == "hey"

    @pytest.mark.asyncio
    async def test_in_band_error_is_raised(self):
        error = TransportError("gone")
        items = events_of(Chunk("a"), Error(cause=error))
        with pytest.raises(TransportError, match="gone"):
            await accumulated_text(items)

    @pytest.mark.asyncio
    async def test_accumulated_text_over_chat_stream(self):
        source = FakeByteSource([sse_body(MOCK_STREAMING_CHUNKS)])
        stream = open_stream(source, pydantic_decoder(ChatStreamChunk))

        assert await stream.accumulated_text() == MOCK_STREAMING_TEXT
        assert stream.decode_error_count == 0

    @pytest.mark.asyncio
    async def test_accumulated_text_reraises_transport_error(self):
        source = FakeByteSource([data_frame("partial")], error=TransportError("reset"))
        stream = open_stream(source, json.loads)

        with pytest.raises(TransportError):
            await stream.accumulated_text()
