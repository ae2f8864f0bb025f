"""
Observability side channel for frames that could not be decoded.

Sinks are called synchronously from the driver's task and must return
quickly. Anything slow belongs behind a queue owned by the sink.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from streamkit.framer import Frame

logger = logging.getLogger(__name__)

# How much of an offending payload to include in log lines
PAYLOAD_PREVIEW_CHARS = 200


@dataclass(frozen=True)
class DecodeFailure:
    """One skipped frame."""
    frame: Frame
    error: Exception
    count: int  # session's decode_error_count after this failure

    @property
    def preview(self) -> str:
        data = self.frame.data or ""
        if len(data) > PAYLOAD_PREVIEW_CHARS:
            return data[:PAYLOAD_PREVIEW_CHARS] + "..."
        return data


class DecodeErrorSink(Protocol):
    """Receives decode-error notifications from a stream session."""

    def on_decode_error(self, failure: DecodeFailure) -> None:
        ...


class LoggingSink:
    """Default sink: one WARNING line per skipped frame."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger

    def on_decode_error(self, failure: DecodeFailure) -> None:
        self._log.warning(
            "Skipping undecodable frame #%d (%s: %s): %r",
            failure.count,
            type(failure.error).__name__,
            failure.error,
            failure.preview,
        )


class RecordingSink:
    """Keeps every failure in memory. Useful for tests and post-run summaries."""

    def __init__(self):
        self.failures: list[DecodeFailure] = []

    def on_decode_error(self, failure: DecodeFailure) -> None:
        self.failures.append(failure)

    @property
    def count(self) -> int:
        return len(self.failures)


def notify(sink: DecodeErrorSink, failure: DecodeFailure) -> None:
    """Deliver a failure to a sink. A broken sink is logged, never fatal to the stream."""
    try:
        sink.on_decode_error(failure)
    except Exception:
        logger.exception("Decode-error sink %r raised", sink)
