"""
Incremental Server-Sent Events framer.

Turns an append-only byte feed into ordered Frames, tolerant of lines and
multi-byte characters split across chunks.

Wire format:
    event: <name>
    data: <payload line>        (repeatable, joined with "\\n")
    id: <last event id>
    retry: <reconnect hint in ms>
    : comment
    <blank line>                (terminates the frame)

The parsing functions are stateless and operate on an explicit ParserState,
so a session owns its state outright and nothing is shared between streams.
EventFramer is a thin owner of one state plus the frame callback.
"""

import codecs
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from streamkit.config import DEFAULT_ENCODING

logger = logging.getLogger(__name__)

LINE_TERMINATOR = "\n"
FIELD_SEPARATOR = ":"
COMMENT_MARKER = ":"


@dataclass
class Frame:
    """One parsed protocol unit."""
    event: Optional[str] = None
    data: Optional[str] = None
    id: Optional[str] = None
    retry: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return (
            self.event is None
            and self.data is None
            and self.id is None
            and self.retry is None
        )


FrameCallback = Callable[[Frame], None]


@dataclass
class ParserState:
    """Per-session parser state. Mutated only by the functions in this module."""
    encoding: str = DEFAULT_ENCODING
    residual: str = ""
    pending: Frame = field(default_factory=Frame)
    decoder: codecs.IncrementalDecoder = field(init=False)

    def __post_init__(self):
        self.decoder = codecs.getincrementaldecoder(self.encoding)(errors="strict")

    def discard(self) -> None:
        """Drop everything buffered without emitting it."""
        self.residual = ""
        self.pending = Frame()
        self.decoder.reset()


# ─────────────────────────────────────────────────────────────────────
# PARSING
# ─────────────────────────────────────────────────────────────────────

def parse_line(state: ParserState, line: str, emit: FrameCallback) -> None:
    """Apply one complete line (terminator already removed) to the state."""
    if line.endswith("\r"):
        line = line[:-1]

    if not line:
        if not state.pending.is_empty:
            frame = state.pending
            state.pending = Frame()
            emit(frame)
        return

    if line.startswith(COMMENT_MARKER):
        return

    name, sep, value = line.partition(FIELD_SEPARATOR)
    if not sep:
        # No separator: not a field we understand
        return
    if value.startswith(" "):
        value = value[1:]

    pending = state.pending
    if name == "event":
        pending.event = value
    elif name == "data":
        pending.data = value if pending.data is None else f"{pending.data}\n{value}"
    elif name == "id":
        pending.id = value
    elif name == "retry":
        # ASCII digits only; int() alone would also take "1_000" or "+5"
        if value.isascii() and value.isdigit():
            pending.retry = int(value)
        else:
            logger.debug("Ignoring non-numeric retry value: %r", value)


def _split_lines(state: ParserState, text: str, emit: FrameCallback) -> None:
    buffer = state.residual + text
    lines = buffer.split(LINE_TERMINATOR)
    # Last element is "" when the buffer ended exactly on a terminator
    state.residual = lines.pop()
    for line in lines:
        parse_line(state, line, emit)


def feed_state(state: ParserState, chunk: bytes, emit: FrameCallback) -> None:
    """
    Feed one raw chunk into the state, emitting every frame it completes.

    A chunk that is not valid text in the state's encoding is dropped and
    the decoder reset; parsing continues with the next chunk.
    """
    try:
        text = state.decoder.decode(chunk)
    except UnicodeDecodeError as e:
        logger.warning(
            "Dropping %d-byte chunk that is not valid %s: %s",
            len(chunk), state.encoding, e,
        )
        state.decoder.reset()
        return
    if text:
        _split_lines(state, text, emit)


def flush_state(state: ParserState, emit: FrameCallback) -> None:
    """
    Force out whatever is buffered at end of stream.

    An unterminated last line is treated as complete, then a non-empty
    pending frame is emitted. Calling again when nothing is buffered is a no-op.
    """
    try:
        tail = state.decoder.decode(b"", final=True)
    except UnicodeDecodeError as e:
        logger.warning("Dropping truncated %s sequence at end of stream: %s", state.encoding, e)
        state.decoder.reset()
        tail = ""
    if tail:
        _split_lines(state, tail, emit)

    if state.residual:
        line, state.residual = state.residual, ""
        parse_line(state, line, emit)

    if not state.pending.is_empty:
        frame = state.pending
        state.pending = Frame()
        emit(frame)


# ─────────────────────────────────────────────────────────────────────
# FRAMER
# ─────────────────────────────────────────────────────────────────────

class EventFramer:
    """
    Stateful framer with a registered callback.

    Frames are delivered synchronously from inside feed()/flush(), in the
    order they complete on the wire.
    """

    def __init__(self, on_frame: FrameCallback, encoding: str = DEFAULT_ENCODING):
        self._on_frame = on_frame
        self.state = ParserState(encoding=encoding)

    def feed(self, chunk: bytes) -> None:
        feed_state(self.state, chunk, self._on_frame)

    def flush(self) -> None:
        flush_state(self.state, self._on_frame)

    def discard(self) -> None:
        self.state.discard()


def parse_frames(chunks, encoding: str = DEFAULT_ENCODING) -> list[Frame]:
    """Parse a finite iterable of byte chunks into frames, flushing at the end."""
    frames: list[Frame] = []
    framer = EventFramer(frames.append, encoding=encoding)
    for chunk in chunks:
        framer.feed(chunk)
    framer.flush()
    return frames
