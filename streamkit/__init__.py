"""
streamkit - incremental Server-Sent Events decoding for LLM streaming APIs.

ByteSource -> EventFramer -> EventStream -> transforms -> consumer
"""

from .driver import EventStream, StreamSession, open_stream
from .events import Chunk, Done, DomainEvent, Error, Metadata
from .framer import EventFramer, Frame, ParserState
from .observability import DecodeFailure, LoggingSink, RecordingSink
from .protocols import ByteSource
from .sources import HttpxByteSource, IterableByteSource
from .transforms import accumulated_text, compact_map, filter_events, map_events, text_stream

__all__ = [
    "ByteSource",
    "Chunk",
    "DecodeFailure",
    "Done",
    "DomainEvent",
    "Error",
    "EventFramer",
    "EventStream",
    "Frame",
    "HttpxByteSource",
    "IterableByteSource",
    "LoggingSink",
    "Metadata",
    "ParserState",
    "RecordingSink",
    "StreamSession",
    "accumulated_text",
    "compact_map",
    "filter_events",
    "map_events",
    "open_stream",
    "text_stream",
]
