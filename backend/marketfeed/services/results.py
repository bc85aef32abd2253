"""Tri-state result values emitted by the gateway's streaming accessors.

Each stream yields ``Loading()`` first and then exactly one ``Success`` or
``Error``.
"""

from dataclasses import dataclass
from typing import AsyncIterator, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class Error:
    message: str


Result = Union[Loading, Success[T], Error]


async def terminal(stream: AsyncIterator["Result[T]"]) -> "Success[T] | Error":
    """Drain a tri-state stream and return its terminal value."""
    last: Result[T] = Loading()
    async for item in stream:
        last = item
    if isinstance(last, Loading):
        raise RuntimeError("Stream ended without a terminal result")
    return last
