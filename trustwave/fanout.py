"""Batching and concurrent fan-out helpers."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Generic, Iterable, List, Optional, Sequence, TypeVar

T = TypeVar("T")


@dataclass
class Settled(Generic[T]):
    """Outcome of one task in a settled join."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def chunked(values: Sequence[T], size: int) -> List[List[T]]:
    """Split ``values`` into consecutive batches of at most ``size`` elements."""

    if size < 1:
        raise ValueError("batch size must be positive")
    return [list(values[start : start + size]) for start in range(0, len(values), size)]


async def gather_settled(awaitables: Iterable[Awaitable[T]]) -> List[Settled[T]]:
    """Run every awaitable concurrently and collect each outcome in order.

    A failing task never cancels its siblings. Cancellation of the caller
    still propagates.
    """

    results = await asyncio.gather(*awaitables, return_exceptions=True)
    settled: List[Settled[T]] = []
    for result in results:
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            settled.append(Settled(error=result))
        else:
            settled.append(Settled(value=result))
    return settled


__all__ = ["Settled", "chunked", "gather_settled"]
