"""Tracing collaborator.

The runtime wraps model calls and tool executions in spans. The default
tracer does nothing; applications can plug in their own (for example an
OpenTelemetry adapter) by implementing ``Tracer``.
"""

from __future__ import annotations

import contextlib
from collections.abc import Awaitable, Callable, Iterator, Mapping
from typing import Any, Protocol


class Span(Protocol):
    def set_attributes(self, attributes: Mapping[str, Any]) -> None: ...

    def record_exception(self, error: BaseException) -> None: ...


class Tracer(Protocol):
    def start_span(
        self, name: str, attributes: Mapping[str, Any] | None = None
    ) -> contextlib.AbstractContextManager[Span]: ...


class _NoopSpan:
    def set_attributes(self, attributes: Mapping[str, Any]) -> None:
        pass

    def record_exception(self, error: BaseException) -> None:
        pass


class NoopTracer:
    @contextlib.contextmanager
    def start_span(
        self, name: str, attributes: Mapping[str, Any] | None = None
    ) -> Iterator[Span]:
        yield _NoopSpan()


async def record_span[T](
    tracer: Tracer,
    name: str,
    fn: Callable[[Span], Awaitable[T]],
    *,
    attributes: Mapping[str, Any] | None = None,
) -> T:
    """Run ``fn`` inside a span, recording any exception before re-raising."""
    with tracer.start_span(name, attributes) as span:
        try:
            return await fn(span)
        except Exception as exc:
            span.record_exception(exc)
            raise
