"""Streaming structured output.

The model's text is parsed after every delta; each new (deduplicated,
strategy-validated) partial value is published as an ``object`` chunk
followed by the text delta it corresponds to.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable, Sequence
from typing import Any

from . import abort as abort_
from . import chunks as chunks_
from . import errors as errors_
from . import generate_object as generate_object_
from . import generate_text as generate_text_
from . import ids as ids_
from . import json_repair as json_repair_
from . import llm as llm_
from . import messages as messages_
from . import output as output_
from . import output_strategy as output_strategy_
from . import retry as retry_
from . import settings as settings_
from . import streams as streams_
from . import telemetry as telemetry_

logger = logging.getLogger(__name__)

_generate_response_id = ids_.create_id_generator(prefix="aiobj", size=24)

_UNSET = object()


@dataclasses.dataclass(frozen=True)
class StreamObjectFinishEvent:
    object: Any
    error: BaseException | None
    usage: chunks_.Usage
    warnings: tuple[chunks_.CallWarning, ...]
    response: chunks_.ResponseMetadata


@dataclasses.dataclass(frozen=True)
class _Summary:
    usage: chunks_.Usage
    warnings: tuple[chunks_.CallWarning, ...]
    request: chunks_.RequestMetadata
    response: chunks_.ResponseMetadata


class StreamObjectResult:
    def __init__(
        self,
        *,
        model: llm_.LanguageModel,
        strategy: output_strategy_.OutputStrategy,
        options: llm_.CallOptions,
        retry: retry_.RetryFunction,
        tracer: telemetry_.Tracer,
        on_finish: Callable[[StreamObjectFinishEvent], Any] | None,
    ) -> None:
        self._model = model
        self._strategy = strategy
        self._options = options
        self._retry = retry
        self._tracer = tracer
        self._on_finish = on_finish

        self._object: streams_.DelayedFuture[Any] = streams_.DelayedFuture()
        self._summary: streams_.DelayedFuture[_Summary] = streams_.DelayedFuture()
        self._stitchable: streams_.StitchableStream[chunks_.ObjectStreamChunk] = (
            streams_.StitchableStream()
        )
        self._producer: asyncio.Task[None] | None = None
        self._drain: asyncio.Task[None] | None = None
        self._tee = streams_.TeeStream(self._started(self._stitchable))

    def _start(self) -> None:
        if self._producer is None:
            self._producer = asyncio.create_task(self._run())

    async def _started(
        self, stream: streams_.StitchableStream[chunks_.ObjectStreamChunk]
    ) -> AsyncGenerator[chunks_.ObjectStreamChunk]:
        self._start()
        try:
            async for chunk in stream:
                yield chunk
        except (GeneratorExit, asyncio.CancelledError):
            # nobody reads the stream any more
            error = errors_.AbortError("The stream was closed before it finished.")
            self._object.reject(error)
            self._summary.reject(error)
            if self._producer is not None:
                self._producer.cancel()
            await stream.terminate()
            raise

    async def _run(self) -> None:
        async def do_stream(span: telemetry_.Span) -> llm_.ModelStream:
            return await abort_.race_abort(
                self._model.stream(self._options), self._options.abort_signal
            )

        try:
            model_stream = await self._retry(
                lambda: telemetry_.record_span(
                    self._tracer,
                    "ai.streamObject.doStream",
                    do_stream,
                    attributes={"ai.model.id": self._model.model_id},
                )
            )
        except Exception as exc:
            self._object.reject(exc)
            self._summary.reject(exc)
            self._stitchable.add_stream(_error_stream(exc))
        else:
            self._stitchable.add_stream(self._transform(model_stream))
        self._stitchable.close()

    async def _transform(
        self, model_stream: llm_.ModelStream
    ) -> AsyncGenerator[chunks_.ObjectStreamChunk]:
        accumulated = ""
        text_delta = ""
        latest_json: Any = _UNSET
        latest_object: Any = _UNSET
        is_first_delta = True
        usage = chunks_.Usage()
        finish_reason: chunks_.FinishReason = "unknown"
        response = chunks_.ResponseMetadata(
            id=_generate_response_id(),
            model_id=self._model.model_id,
            headers=model_stream.response_headers,
        )
        finished = False
        final_seen = False
        is_array = self._strategy.type == "array"

        try:
            async for chunk in abort_.abortable(
                model_stream.stream, self._options.abort_signal
            ):
                match chunk:
                    case chunks_.TextDeltaChunk(text_delta=delta):
                        accumulated += delta
                        text_delta += delta
                        parsed = json_repair_.parse_partial_json(accumulated)
                        if parsed.state not in ("successful-parse", "repaired-parse"):
                            continue
                        # a complete parse can still close an array even when
                        # the repaired prefix already had the same value
                        if (
                            latest_json is not _UNSET
                            and parsed.value == latest_json
                            and (parsed.state != "successful-parse" or final_seen)
                        ):
                            continue
                        result = self._strategy.validate_partial_result(
                            value=parsed.value,
                            text_delta=text_delta,
                            latest_object=(
                                None if latest_object is _UNSET else latest_object
                            ),
                            is_first_delta=is_first_delta,
                            is_final_delta=parsed.state == "successful-parse",
                        )
                        if not result.success or result.value is None:
                            continue
                        if parsed.state == "successful-parse":
                            final_seen = True
                        if latest_object is not _UNSET and result.value.partial == latest_object:
                            if is_array and result.value.text_delta:
                                yield chunks_.TextDeltaChunk(
                                    text_delta=result.value.text_delta
                                )
                                text_delta = ""
                            continue
                        latest_json = parsed.value
                        latest_object = result.value.partial
                        yield chunks_.ObjectChunk(object=latest_object)
                        yield chunks_.TextDeltaChunk(text_delta=result.value.text_delta)
                        text_delta = ""
                        is_first_delta = False

                    case chunks_.ResponseMetadataChunk():
                        response = dataclasses.replace(
                            response,
                            id=chunk.id or response.id,
                            model_id=chunk.model_id or response.model_id,
                            timestamp=chunk.timestamp or response.timestamp,
                        )

                    case chunks_.FinishChunk():
                        finished = True
                        if text_delta and not is_array:
                            yield chunks_.TextDeltaChunk(text_delta=text_delta)
                        usage = chunk.usage
                        finish_reason = chunk.finish_reason
                        yield chunks_.FinishChunk(
                            finish_reason=finish_reason, usage=usage, response=response
                        )

                    case chunks_.ErrorChunk():
                        yield chunk

                    case _:
                        # reasoning and other content is not part of the object
                        pass
        except Exception as exc:
            self._object.reject(exc)
            self._summary.reject(exc)
            yield chunks_.ErrorChunk(error=exc)
            await self._finish(None, exc, usage, model_stream, response)
            return

        self._summary.resolve(
            _Summary(
                usage=usage,
                warnings=tuple(model_stream.warnings),
                request=model_stream.request,
                response=response,
            )
        )

        context = output_strategy_.FinalResultContext(
            text=accumulated, response=response, usage=usage, finish_reason=finish_reason
        )
        error: BaseException | None
        if not finished:
            error = output_.no_object_generated(
                "the model stream ended without finishing", None, context
            )
            self._object.reject(error)
            await self._finish(None, error, usage, model_stream, response)
            return

        validated = self._strategy.validate_final_result(
            None if latest_json is _UNSET else latest_json, context
        )
        if validated.success:
            self._object.resolve(validated.value)
            await self._finish(validated.value, None, usage, model_stream, response)
        else:
            error = output_.no_object_generated(
                "response did not match schema", validated.error, context
            )
            self._object.reject(error)
            await self._finish(None, error, usage, model_stream, response)

    async def _finish(
        self,
        value: Any,
        error: BaseException | None,
        usage: chunks_.Usage,
        model_stream: llm_.ModelStream,
        response: chunks_.ResponseMetadata,
    ) -> None:
        if error is not None:
            logger.warning("stream_object failed: %s", errors_.get_error_message(error))
        await generate_text_.call_callback(
            self._on_finish,
            StreamObjectFinishEvent(
                object=value,
                error=error,
                usage=usage,
                warnings=tuple(model_stream.warnings),
                response=response,
            ),
        )

    # ── Consumers ─────────────────────────────────────────────────

    def _ensure_consumed(self) -> None:
        if self._drain is None:
            self._drain = asyncio.create_task(self.consume_stream())

    async def consume_stream(self) -> None:
        async for _ in self._tee.branch():
            pass

    @property
    def full_stream(self) -> AsyncIterator[chunks_.ObjectStreamChunk]:
        return self._tee.branch()

    @property
    def partial_object_stream(self) -> AsyncIterator[Any]:
        return self._partial_object_stream()

    async def _partial_object_stream(self) -> AsyncGenerator[Any]:
        async for chunk in self._tee.branch():
            if isinstance(chunk, chunks_.ObjectChunk):
                yield chunk.object
            elif isinstance(chunk, chunks_.ErrorChunk):
                raise chunk.error

    @property
    def element_stream(self) -> AsyncIterator[Any]:
        return self._strategy.create_element_stream(self._tee.branch())

    @property
    def text_stream(self) -> AsyncIterator[str]:
        return self._text_stream()

    async def _text_stream(self) -> AsyncGenerator[str]:
        async for chunk in self._tee.branch():
            if isinstance(chunk, chunks_.TextDeltaChunk):
                yield chunk.text_delta

    async def _await[T](self, future: streams_.DelayedFuture[T]) -> T:
        self._ensure_consumed()
        return await future

    async def _get_summary[T](self, fn: Callable[[_Summary], T]) -> T:
        return fn(await self._await(self._summary))

    @property
    def object(self) -> Awaitable[Any]:
        return self._await(self._object)

    @property
    def usage(self) -> Awaitable[chunks_.Usage]:
        return self._get_summary(lambda s: s.usage)

    @property
    def warnings(self) -> Awaitable[tuple[chunks_.CallWarning, ...]]:
        return self._get_summary(lambda s: s.warnings)

    @property
    def request(self) -> Awaitable[chunks_.RequestMetadata]:
        return self._get_summary(lambda s: s.request)

    @property
    def response(self) -> Awaitable[chunks_.ResponseMetadata]:
        return self._get_summary(lambda s: s.response)


async def _error_stream(error: BaseException) -> AsyncGenerator[chunks_.ObjectStreamChunk]:
    yield chunks_.ErrorChunk(error=error)


def stream_object(
    model: llm_.LanguageModel,
    *,
    output: output_strategy_.OutputType = "object",
    schema: Any = None,
    schema_name: str | None = None,
    schema_description: str | None = None,
    enum_values: Sequence[str] | None = None,
    prompt: str | None = None,
    messages: Sequence[messages_.Message] | None = None,
    system: str | None = None,
    on_finish: Callable[[StreamObjectFinishEvent], Any] | None = None,
    abort_signal: asyncio.Event | None = None,
    tracer: telemetry_.Tracer | None = None,
    **settings: Any,
) -> StreamObjectResult:
    """Stream a structured value as it is generated."""
    output_strategy_.validate_object_generation_input(
        output=output,
        schema=schema,
        schema_name=schema_name,
        schema_description=schema_description,
        enum_values=enum_values,
    )
    if output == "enum":
        raise errors_.UnsupportedFunctionalityError(
            functionality="enum output in stream_object"
        )
    strategy = output_strategy_.get_output_strategy(output, schema, enum_values)
    call_settings = settings_.prepare_call_settings(**settings)

    standardized = messages_.standardize_prompt(
        prompt=prompt,
        messages=messages,
        system=generate_object_.object_system_prompt(system, strategy, model),
    )
    options = llm_.CallOptions(
        prompt=standardized.with_response_messages([]),
        response_format=llm_.ResponseFormat(
            type="json",
            schema=strategy.json_schema,
            name=schema_name,
            description=schema_description,
        ),
        abort_signal=abort_signal,
        **call_settings.call_options(),
    )
    return StreamObjectResult(
        model=model,
        strategy=strategy,
        options=options,
        retry=retry_.prepare_retries(call_settings.max_retries),
        tracer=tracer or telemetry_.NoopTracer(),
        on_finish=on_finish,
    )
