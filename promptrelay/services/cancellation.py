"""
Cooperative cancellation for provider streams.

The signal is owned by the caller; pipelines only look at it. Every suspension point
(sending the request, each body read) goes through ``race`` so an abort wakes the
pipeline immediately instead of waiting for the network.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

T = TypeVar("T")


class OperationAborted(Exception):
    """Raised by race() when the signal fires first. Never leaves the pipeline."""


class CancellationSignal:
    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


def is_cancelled(signal: Optional[CancellationSignal]) -> bool:
    return signal is not None and signal.cancelled


async def race(awaitable: Awaitable[T], signal: Optional[CancellationSignal]) -> T:
    """
    Await ``awaitable`` unless ``signal`` fires first.
    On abort the pending operation is cancelled and awaited, then OperationAborted is raised.
    """
    if signal is None:
        return await awaitable
    if signal.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise OperationAborted()

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(signal.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task.done():
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    raise OperationAborted()
