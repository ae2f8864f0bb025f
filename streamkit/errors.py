"""
Exception hierarchy for streamkit.

Decode failures on individual frames are NOT exceptions at this level:
the driver counts and reports them through the observability sink.
Everything here terminates a stream (or refuses to start one).
"""

from typing import Optional


class StreamKitError(Exception):
    """Base class for all streamkit errors."""
    pass


class ConfigurationError(StreamKitError):
    """Provider configuration is missing or invalid."""
    pass


class StreamConsumedError(StreamKitError):
    """An EventStream was iterated a second time."""
    pass


class TransportError(StreamKitError):
    """Connection, timeout or read failure on the byte source. Fatal to a session."""
    pass


class StreamStatusError(TransportError):
    """Non-2xx HTTP status reported before any bytes were streamed."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class AuthenticationError(StreamStatusError):
    """401 from the provider."""
    pass


class NotFoundError(StreamStatusError):
    """404 from the provider (usually an unknown model or path)."""
    pass


class RateLimitError(StreamStatusError):
    """429 from the provider. retry_after is in seconds when the server sent one."""

    def __init__(self, status_code: int, message: str, retry_after: Optional[float] = None):
        super().__init__(status_code, message)
        self.retry_after = retry_after


def status_error_for(
    status_code: int,
    message: str,
    retry_after: Optional[float] = None,
) -> StreamStatusError:
    """Pick the StreamStatusError subclass matching an HTTP status code."""
    if status_code == 401:
        return AuthenticationError(status_code, message)
    if status_code == 404:
        return NotFoundError(status_code, message)
    if status_code == 429:
        return RateLimitError(status_code, message, retry_after=retry_after)
    return StreamStatusError(status_code, message)
