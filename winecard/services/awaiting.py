"""Bounded fan-out/join over independent awaitables."""

import asyncio
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Settled(Generic[T]):
    """Outcome of one awaitable: a value, an error, or a timeout."""

    value: T | None = None
    error: Exception | None = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out


async def _settle(awaitable: Awaitable[T], timeout: float) -> Settled[T]:
    try:
        return Settled(value=await asyncio.wait_for(awaitable, timeout))
    except asyncio.TimeoutError:
        return Settled(timed_out=True)
    except Exception as e:
        return Settled(error=e)


async def await_all_with_timeout(
    awaitables: Iterable[Awaitable[T]],
    timeout: float,
) -> list[Settled[T]]:
    """Await every item concurrently, each bounded by its own ``timeout``.

    A failing or slow item never aborts the others. Results keep input order.
    Total wall time is bounded by ``timeout``, not by the number of items.

    Args:
        awaitables: Coroutines or futures to run.
        timeout: Per-item limit in seconds.

    Returns:
        One Settled per input, in input order.
    """
    return list(await asyncio.gather(*(_settle(aw, timeout) for aw in awaitables)))
