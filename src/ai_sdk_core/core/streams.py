from __future__ import annotations

import asyncio
import collections
import contextlib
import dataclasses
from collections.abc import AsyncGenerator, AsyncIterable, AsyncIterator, Generator
from typing import Any, Literal, cast


# ── DelayedFuture ─────────────────────────────────────────────────


@dataclasses.dataclass
class _Settled:
    status: Literal["pending", "resolved", "rejected"] = "pending"
    value: Any = None
    error: BaseException | None = None


class DelayedFuture[T]:
    """A future that can be settled before anyone awaits it.

    The first ``resolve``/``reject`` wins; later calls are ignored. The
    backing ``asyncio.Future`` is only created on first await, so a rejected
    value nobody looks at never triggers "exception was never retrieved".
    """

    def __init__(self) -> None:
        self._state = _Settled()
        self._future: asyncio.Future[T] | None = None

    @property
    def status(self) -> Literal["pending", "resolved", "rejected"]:
        return self._state.status

    @property
    def future(self) -> asyncio.Future[T]:
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
            if self._state.status == "resolved":
                self._future.set_result(self._state.value)
            elif self._state.status == "rejected":
                self._future.set_exception(cast(BaseException, self._state.error))
        return self._future

    def resolve(self, value: T) -> None:
        if self._state.status != "pending":
            return
        self._state = _Settled(status="resolved", value=value)
        if self._future is not None and not self._future.done():
            self._future.set_result(value)

    def reject(self, error: BaseException) -> None:
        if self._state.status != "pending":
            return
        self._state = _Settled(status="rejected", error=error)
        if self._future is not None and not self._future.done():
            self._future.set_exception(error)

    def __await__(self) -> Generator[Any, None, T]:
        return self.future.__await__()


# ── StitchableStream ──────────────────────────────────────────────


class StitchableStream[T]:
    """One outer stream that drains a queue of inner streams in order.

    Inner streams can be added while the outer stream is being consumed; a
    consumer that reaches the end of the queue waits for the next
    ``add_stream`` (or ``close``) instead of finishing. Pulls are forwarded
    to the head inner stream only, so consumption drives production.
    """

    def __init__(self) -> None:
        self._inner: collections.deque[AsyncIterator[T]] = collections.deque()
        self._closed = False
        self._terminated = False
        self._signal: asyncio.Future[None] | None = None

    @property
    def is_closed(self) -> bool:
        return self._closed

    def add_stream(self, stream: AsyncIterable[T]) -> None:
        if self._closed:
            raise RuntimeError("Cannot add inner stream: outer stream is closed")
        self._inner.append(aiter(stream))
        self._wake()

    def close(self) -> None:
        """Finish once every queued inner stream has been drained."""
        self._closed = True
        self._wake()

    async def terminate(self) -> None:
        """End immediately, discarding and closing all queued inner streams."""
        self._closed = True
        self._terminated = True
        inner = list(self._inner)
        self._inner.clear()
        self._wake()
        for stream in inner:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                # a reader with a pull in flight cannot be closed from here
                with contextlib.suppress(RuntimeError):
                    await aclose()

    def _wake(self) -> None:
        if self._signal is not None and not self._signal.done():
            self._signal.set_result(None)
        self._signal = None

    async def _wait_for_stream(self) -> None:
        if self._signal is None:
            self._signal = asyncio.get_running_loop().create_future()
        await self._signal

    def __aiter__(self) -> StitchableStream[T]:
        return self

    async def __anext__(self) -> T:
        while True:
            if self._terminated:
                raise StopAsyncIteration
            if not self._inner:
                if self._closed:
                    raise StopAsyncIteration
                await self._wait_for_stream()
                continue

            head = self._inner[0]
            try:
                item = await anext(head)
            except StopAsyncIteration:
                self._drop(head)
                continue
            except Exception:
                self._drop(head)
                raise

            if self._terminated:
                raise StopAsyncIteration
            return item

    def _drop(self, stream: AsyncIterator[T]) -> None:
        if self._inner and self._inner[0] is stream:
            self._inner.popleft()


# ── Merging and teeing ────────────────────────────────────────────

async def merge_streams[T](
    first: AsyncIterable[T], second: AsyncIterable[T]
) -> AsyncGenerator[T]:
    """Interleave two streams in arrival order until both are exhausted.

    Each source has at most one read in flight, and a new read only starts
    when the consumer asks for the next item, so a slow consumer throttles
    both sources.
    """
    active: list[AsyncIterator[T]] = [aiter(first), aiter(second)]
    reads: dict[asyncio.Future[T], AsyncIterator[T]] = {}
    try:
        while active:
            for iterator in active:
                if iterator not in reads.values():
                    reads[asyncio.ensure_future(anext(iterator))] = iterator
            done, _ = await asyncio.wait(reads, return_when=asyncio.FIRST_COMPLETED)
            for read in [r for r in reads if r in done]:
                iterator = reads.pop(read)
                try:
                    item = read.result()
                except StopAsyncIteration:
                    active.remove(iterator)
                    continue
                yield item
    finally:
        for read in reads:
            read.cancel()
        await asyncio.gather(*reads, return_exceptions=True)
        for iterator in active:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()


class TeeStream[T]:
    """Share one upstream between independent consumers.

    Every consumer created with ``branch()`` sees the full sequence from the
    start. The upstream is only pulled when the furthest-ahead consumer
    needs a new item; items are buffered for the slower consumers. When
    the last open consumer is closed before the upstream ends, the
    upstream is closed too and later consumers only see the buffer.
    """

    def __init__(self, source: AsyncIterable[T]) -> None:
        self._source = aiter(source)
        self._buffer: list[T] = []
        self._done = False
        self._error: Exception | None = None
        self._lock = asyncio.Lock()
        self._readers = 0

    async def _fill(self, index: int) -> None:
        async with self._lock:
            while len(self._buffer) <= index and not self._done:
                try:
                    self._buffer.append(await anext(self._source))
                except StopAsyncIteration:
                    self._done = True
                except Exception as exc:
                    self._done = True
                    self._error = exc

    async def _close_source(self) -> None:
        self._done = True
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()

    async def branch(self) -> AsyncGenerator[T]:
        index = 0
        self._readers += 1
        try:
            while True:
                if index >= len(self._buffer):
                    await self._fill(index)
                if index < len(self._buffer):
                    yield self._buffer[index]
                    index += 1
                elif self._error is not None:
                    raise self._error
                else:
                    return
        finally:
            self._readers -= 1
            if not self._readers and not self._done:
                await self._close_source()
