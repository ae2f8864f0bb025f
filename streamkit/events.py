"""
Domain events produced by the stream driver.

A consumer sees zero or more Chunk/Metadata events followed by exactly one
terminal event: Done on success, or a transport error (raised, or delivered
as Error when the stream was opened with yield_errors=True).
"""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Chunk(Generic[T]):
    """A successfully decoded frame payload."""
    payload: T


@dataclass(frozen=True)
class Metadata:
    """A frame with no data: only event name, id and/or retry hint."""
    values: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Error:
    """Terminal transport failure, delivered in-band."""
    cause: BaseException


@dataclass(frozen=True)
class Done:
    """Terminal event of a clean stream."""
    pass


DomainEvent = Union[Chunk, Metadata, Error, Done]


def is_terminal(event: DomainEvent) -> bool:
    return isinstance(event, (Done, Error))
