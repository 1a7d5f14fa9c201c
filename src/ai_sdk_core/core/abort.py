"""Cooperative cancellation through one shared ``asyncio.Event``.

Setting the event makes the next check, pending provider call or stream
read raise ``AbortError``. Work that already finished is kept; tools see
the same event and are expected to stop on their own.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, AsyncIterable, Awaitable

from . import errors as errors_


def check_aborted(abort_signal: asyncio.Event | None) -> None:
    if abort_signal is not None and abort_signal.is_set():
        raise errors_.AbortError()


async def race_abort[T](
    awaitable: Awaitable[T], abort_signal: asyncio.Event | None
) -> T:
    """Await ``awaitable`` unless the abort signal fires first.

    The awaitable is cancelled when the signal wins. A result that is ready
    at the same time as the signal is still returned.
    """
    if abort_signal is None:
        return await awaitable
    task = asyncio.ensure_future(awaitable)
    if abort_signal.is_set():
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise errors_.AbortError()

    waiter = asyncio.create_task(abort_signal.wait())
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
    raise errors_.AbortError()


async def abortable[T](
    stream: AsyncIterable[T], abort_signal: asyncio.Event | None
) -> AsyncGenerator[T]:
    """Forward ``stream``, racing every read against the abort signal."""
    iterator = aiter(stream)
    try:
        while True:
            try:
                item = await race_abort(anext(iterator), abort_signal)
            except StopAsyncIteration:
                return
            yield item
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()
