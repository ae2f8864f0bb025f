"""
Transport-agnostic interfaces.

ByteSource is the WHAT; sources.py holds the HOW. Keeping the protocol here
lets the driver depend on it without loading an HTTP library.
"""

from typing import AsyncIterator, Protocol


class ByteSource(Protocol):
    """
    Contract for a cancellable stream of raw byte chunks.

    - Iteration yields chunks; exhaustion signals end-of-stream.
    - A non-2xx status must be raised before the first chunk.
    - aclose() cancels the underlying operation and releases it.
    """

    def __aiter__(self) -> AsyncIterator[bytes]:
        ...

    async def aclose(self) -> None:
        ...
