"""Structured-concurrency helpers on top of trio."""

from typing import Any, Awaitable, Callable

import trio


async def gather(*fns: Callable[[], Awaitable[Any]]) -> list:
    """Run coroutine functions concurrently and return results in order.

    If any of them fails, the rest are cancelled and the failure propagates
    (wrapped in an ExceptionGroup by the nursery).
    """
    results: list = [None] * len(fns)

    async def run(index: int, fn: Callable[[], Awaitable[Any]]) -> None:
        results[index] = await fn()

    async with trio.open_nursery() as nursery:
        for index, fn in enumerate(fns):
            nursery.start_soon(run, index, fn)
    return results
