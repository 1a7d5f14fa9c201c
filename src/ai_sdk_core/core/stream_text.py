"""Streaming text generation with multi-step tool calls.

A producer task folds over ``LoopState`` one step at a time: it opens the
model stream (with retries), queues a step stream on a
``StitchableStream`` and waits for that step to report its result. Each
step stream forwards the tool-orchestrated model chunks, frames them with
``step-start``/``step-finish`` and holds back text after the last
whitespace while a continuation may follow.

Consumers read through a ``TeeStream``, so ``full_stream``, ``text_stream``
and the awaitable aggregates can be used together. Nothing runs until the
first of them is used, and closing every reader before the run ends stops
the producer.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
from collections.abc import (
    AsyncGenerator,
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Sequence,
)
from typing import Any

from . import abort as abort_
from . import chunks as chunks_
from . import errors as errors_
from . import generate_text as generate_text_
from . import ids as ids_
from . import llm as llm_
from . import messages as messages_
from . import output as output_
from . import retry as retry_
from . import schema as schema_
from . import settings as settings_
from . import step as step_
from . import streams as streams_
from . import telemetry as telemetry_
from . import tool_calls as tool_calls_
from . import tools as tools_

logger = logging.getLogger(__name__)

StreamTransform = Callable[[AsyncIterable[chunks_.Chunk]], AsyncIterator[chunks_.Chunk]]

_generate_response_id = ids_.create_id_generator(prefix="aitxt", size=24)

_CLOSED_EARLY = "The stream was closed before it finished."

# chunk types reported to ``on_chunk``
_CALLBACK_CHUNKS = (
    chunks_.TextDeltaChunk,
    chunks_.ReasoningChunk,
    chunks_.SourceChunk,
    chunks_.ToolCallChunk,
    chunks_.ToolCallStreamingStartChunk,
    chunks_.ToolCallDeltaChunk,
    chunks_.ToolResultChunk,
)


async def _single(chunk: chunks_.Chunk) -> AsyncGenerator[chunks_.Chunk]:
    yield chunk


@dataclasses.dataclass(frozen=True)
class _StepOutcome:
    step: step_.StepResult
    next_step: step_.NextStepType


class StreamTextResult:
    def __init__(
        self,
        *,
        model: llm_.LanguageModel,
        prompt: messages_.StandardizedPrompt,
        tools: tools_.ToolSet | None,
        tool_choice: llm_.ToolChoice | None,
        max_steps: int,
        continue_steps: bool,
        output: output_.Output | None,
        tool_call_streaming: bool,
        repair_tool_call: tool_calls_.RepairToolCall | None,
        call_settings: settings_.CallSettings,
        retry: retry_.RetryFunction,
        abort_signal: asyncio.Event | None,
        tracer: telemetry_.Tracer,
        generate_message_id: ids_.IdGenerator,
        transforms: Sequence[StreamTransform],
        on_chunk: Callable[[chunks_.Chunk], Any] | None,
        on_error: Callable[[BaseException], Any] | None,
        on_step_finish: generate_text_.OnStepFinish | None,
        on_finish: Callable[[generate_text_.GenerateTextResult], Any] | None,
    ) -> None:
        self._model = model
        self._prompt = prompt
        self._tools = tools
        self._tool_choice = tool_choice
        self._max_steps = max_steps
        self._continue_steps = continue_steps
        self._output = output
        self._tool_call_streaming = tool_call_streaming
        self._repair_tool_call = repair_tool_call
        self._call_settings = call_settings
        self._retry = retry
        self._abort_signal = abort_signal
        self._tracer = tracer
        self._generate_message_id = generate_message_id
        self._on_chunk = on_chunk
        self._on_error = on_error
        self._on_step_finish = on_step_finish
        self._on_finish = on_finish

        self._stitchable: streams_.StitchableStream[chunks_.Chunk] = (
            streams_.StitchableStream()
        )
        self._final: streams_.DelayedFuture[generate_text_.GenerateTextResult] = (
            streams_.DelayedFuture()
        )
        self._producer: asyncio.Task[None] | None = None
        self._drain: asyncio.Task[None] | None = None

        stream: AsyncIterable[chunks_.Chunk] = self._stitchable
        for transform in transforms:
            stream = transform(stream)
        self._tee = streams_.TeeStream(self._record(stream))

    # ── Producer ──────────────────────────────────────────────────

    def _start(self) -> None:
        if self._producer is None:
            self._producer = asyncio.create_task(self._run())

    async def _run(self) -> None:
        state = step_.LoopState(message_id=self._generate_message_id())
        try:
            while not state.done:
                abort_.check_aborted(self._abort_signal)
                step_input = self._prompt.with_response_messages(state.response_messages)
                logger.debug(
                    "stream_text step %d (%s)", state.current_step, state.step_type
                )
                model_stream = await self._open(step_input)

                outcome: asyncio.Future[_StepOutcome] = (
                    asyncio.get_running_loop().create_future()
                )
                self._stitchable.add_stream(
                    self._step_stream(state, step_input, model_stream, outcome)
                )
                result = await outcome

                state = step_.advance(
                    state,
                    result.step,
                    next_step=result.next_step,
                    generate_message_id=self._generate_message_id,
                )
                await generate_text_.call_callback(self._on_step_finish, state.steps[-1])

            final = generate_text_.build_result(state, self._output)
            self._stitchable.close()
            self._final.resolve(final)
            await generate_text_.call_callback(self._on_finish, final)
        except Exception as exc:
            logger.debug("stream_text failed: %s", exc)
            if not self._stitchable.is_closed:
                self._stitchable.add_stream(_single(chunks_.ErrorChunk(error=exc)))
                self._stitchable.close()
            self._final.reject(exc)

    async def _open(self, step_input: list[messages_.Message]) -> llm_.ModelStream:
        options = llm_.CallOptions(
            prompt=step_input,
            tools=tools_.to_definitions(self._tools),
            tool_choice=self._tool_choice,
            response_format=(
                self._output.response_format(self._model) if self._output else None
            ),
            abort_signal=self._abort_signal,
            **self._call_settings.call_options(),
        )

        async def do_stream(span: telemetry_.Span) -> llm_.ModelStream:
            return await abort_.race_abort(
                self._model.stream(options), self._abort_signal
            )

        return await self._retry(
            lambda: telemetry_.record_span(
                self._tracer,
                "ai.streamText.doStream",
                do_stream,
                attributes={"ai.model.id": self._model.model_id},
            )
        )

    async def _step_stream(
        self,
        state: step_.LoopState,
        step_input: list[messages_.Message],
        model_stream: llm_.ModelStream,
        outcome: asyncio.Future[_StepOutcome],
    ) -> AsyncGenerator[chunks_.Chunk]:
        has_leading_whitespace = (
            state.step_type == "continue" and state.text.rstrip() != state.text
        )
        in_whitespace_prefix = True
        chunk_buffer = ""
        published = False
        step_text = ""
        reasoning = ""
        reasoning_signature: str | None = None
        files: list[chunks_.GeneratedFile] = []
        sources: list[chunks_.Source] = []
        tool_calls: list[chunks_.ToolCallChunk] = []
        tool_results: list[chunks_.ToolResultChunk] = []
        finish_reason: chunks_.FinishReason = "unknown"
        usage = chunks_.Usage()
        response = step_.StepResponse(
            id=_generate_response_id(),
            model_id=self._model.model_id,
            headers=model_stream.response_headers,
        )
        started = False

        def publish(text: str) -> chunks_.TextDeltaChunk:
            nonlocal step_text, published
            step_text += text
            published = True
            return chunks_.TextDeltaChunk(text_delta=text)

        try:
            transformed = tool_calls_.run_tools_transformation(
                abort_.abortable(model_stream.stream, self._abort_signal),
                self._tools,
                messages=step_input,
                system=self._prompt.system,
                tool_call_streaming=self._tool_call_streaming,
                repair_tool_call=self._repair_tool_call,
                abort_signal=self._abort_signal,
                tracer=self._tracer,
            )
            async for chunk in transformed:
                if not started:
                    started = True
                    yield chunks_.StepStartChunk(
                        message_id=state.message_id,
                        request=model_stream.request,
                        warnings=tuple(model_stream.warnings),
                    )

                match chunk:
                    case chunks_.TextDeltaChunk(text_delta=""):
                        pass
                    case chunks_.TextDeltaChunk(text_delta=delta):
                        if not self._continue_steps:
                            yield publish(delta)
                            continue
                        if in_whitespace_prefix and has_leading_whitespace:
                            delta = delta.lstrip()
                        if not delta:
                            continue
                        in_whitespace_prefix = False
                        chunk_buffer += delta
                        if split := step_.split_on_last_whitespace(chunk_buffer):
                            prefix, whitespace, chunk_buffer = split
                            yield publish(prefix + whitespace)
                    case chunks_.ReasoningChunk():
                        reasoning += chunk.text_delta
                        yield chunk
                    case chunks_.ReasoningSignatureChunk():
                        reasoning_signature = chunk.signature
                        yield chunk
                    case chunks_.ToolCallChunk():
                        tool_calls.append(chunk)
                        yield chunk
                    case chunks_.ToolResultChunk():
                        tool_results.append(chunk)
                        yield chunk
                    case chunks_.FileChunk():
                        files.append(chunk.file)
                        yield chunk
                    case chunks_.SourceChunk():
                        sources.append(chunk.source)
                        yield chunk
                    case chunks_.ResponseMetadataChunk():
                        response = dataclasses.replace(
                            response,
                            id=chunk.id or response.id,
                            model_id=chunk.model_id or response.model_id,
                            timestamp=chunk.timestamp or response.timestamp,
                        )
                    case chunks_.FinishChunk():
                        finish_reason = chunk.finish_reason
                        usage = chunk.usage
                    case chunks_.ErrorChunk():
                        finish_reason = "error"
                        yield chunk
                    case (
                        chunks_.RedactedReasoningChunk()
                        | chunks_.ToolCallStreamingStartChunk()
                        | chunks_.ToolCallDeltaChunk()
                    ):
                        yield chunk
                    case _:
                        raise ValueError(f"Unknown chunk type: {chunk.type}")

            next_step = step_.next_step_type(
                current_step=state.current_step,
                max_steps=self._max_steps,
                continue_steps=self._continue_steps,
                finish_reason=finish_reason,
                tool_calls=tool_calls,
                tool_results=tool_results,
            )

            # the withheld tail is only carried over into a continuation
            # that can still publish it
            if chunk_buffer and (
                next_step != "continue"
                or (state.step_type == "continue" and not published)
            ):
                yield publish(chunk_buffer)
                chunk_buffer = ""
        except GeneratorExit:
            if not outcome.done():
                outcome.cancel()
            await transformed.aclose()
            raise
        except Exception as exc:
            outcome.set_exception(exc)
            return

        outcome.set_result(
            _StepOutcome(
                step=step_.StepResult(
                    step_type=state.step_type,
                    text=step_text,
                    reasoning=reasoning,
                    reasoning_signature=reasoning_signature,
                    files=tuple(files),
                    sources=tuple(sources),
                    tool_calls=tuple(tool_calls),
                    tool_results=tuple(tool_results),
                    finish_reason=finish_reason,
                    usage=usage,
                    warnings=tuple(model_stream.warnings),
                    request=model_stream.request,
                    response=response,
                ),
                next_step=next_step,
            )
        )

        yield chunks_.StepFinishChunk(
            message_id=state.message_id,
            finish_reason=finish_reason,
            usage=usage,
            is_continued=next_step == "continue",
            request=model_stream.request,
            response=response,
            warnings=tuple(model_stream.warnings),
        )
        if next_step == "done":
            yield chunks_.FinishChunk(
                finish_reason=finish_reason,
                usage=state.usage + usage,
                response=response,
            )

    # ── Consumer side ─────────────────────────────────────────────

    async def _record(
        self, stream: AsyncIterable[chunks_.Chunk]
    ) -> AsyncGenerator[chunks_.Chunk]:
        self._start()
        try:
            async for chunk in stream:
                if isinstance(chunk, _CALLBACK_CHUNKS):
                    await generate_text_.call_callback(self._on_chunk, chunk)
                elif isinstance(chunk, chunks_.ErrorChunk):
                    logger.warning(
                        "stream_text error: %s", errors_.get_error_message(chunk.error)
                    )
                    await generate_text_.call_callback(self._on_error, chunk.error)
                yield chunk
        except Exception as exc:
            await self._abandon(exc)
            raise
        except (GeneratorExit, asyncio.CancelledError):
            await self._abandon(errors_.AbortError(_CLOSED_EARLY))
            raise

    async def _abandon(self, error: BaseException) -> None:
        """Stop the producer once nobody reads the stream any more."""
        if self._final.status == "resolved":
            return
        logger.debug("stream_text abandoned: %s", error)
        self._final.reject(error)
        if self._producer is not None:
            self._producer.cancel()
        await self._stitchable.terminate()

    def _ensure_consumed(self) -> None:
        if self._drain is None:
            self._drain = asyncio.create_task(self.consume_stream())

    async def consume_stream(self) -> None:
        """Drain the stream so the aggregates resolve."""
        async for _ in self._tee.branch():
            pass

    @property
    def full_stream(self) -> AsyncIterator[chunks_.Chunk]:
        return self._tee.branch()

    @property
    def text_stream(self) -> AsyncIterator[str]:
        return self._text_stream()

    async def _text_stream(self) -> AsyncGenerator[str]:
        async for chunk in self._tee.branch():
            if isinstance(chunk, chunks_.TextDeltaChunk):
                yield chunk.text_delta

    @property
    def partial_output_stream(self) -> AsyncIterator[Any]:
        if self._output is None:
            raise errors_.NoOutputSpecifiedError()
        return self._partial_output_stream(self._output)

    async def _partial_output_stream(self, output: output_.Output) -> AsyncGenerator[Any]:
        text = ""
        last_published: str | None = None
        async for chunk in self._tee.branch():
            if not isinstance(chunk, chunks_.TextDeltaChunk):
                continue
            text += chunk.text_delta
            parsed = output.parse_partial(text)
            if parsed is None:
                continue
            (partial,) = parsed
            encoded = json.dumps(schema_.to_jsonable(partial))
            if encoded != last_published:
                last_published = encoded
                yield partial

    # ── Aggregates ────────────────────────────────────────────────

    async def _result(self) -> generate_text_.GenerateTextResult:
        self._ensure_consumed()
        return await self._final

    async def _get[T](self, fn: Callable[[generate_text_.GenerateTextResult], T]) -> T:
        return fn(await self._result())

    @property
    def text(self) -> Awaitable[str]:
        return self._get(lambda r: r.text)

    @property
    def reasoning(self) -> Awaitable[str]:
        return self._get(lambda r: r.reasoning)

    @property
    def files(self) -> Awaitable[tuple[chunks_.GeneratedFile, ...]]:
        return self._get(lambda r: r.files)

    @property
    def sources(self) -> Awaitable[tuple[chunks_.Source, ...]]:
        return self._get(lambda r: r.sources)

    @property
    def tool_calls(self) -> Awaitable[tuple[chunks_.ToolCallChunk, ...]]:
        return self._get(lambda r: r.tool_calls)

    @property
    def tool_results(self) -> Awaitable[tuple[chunks_.ToolResultChunk, ...]]:
        return self._get(lambda r: r.tool_results)

    @property
    def finish_reason(self) -> Awaitable[chunks_.FinishReason]:
        return self._get(lambda r: r.finish_reason)

    @property
    def usage(self) -> Awaitable[chunks_.Usage]:
        return self._get(lambda r: r.usage)

    @property
    def warnings(self) -> Awaitable[tuple[chunks_.CallWarning, ...]]:
        return self._get(lambda r: r.warnings)

    @property
    def steps(self) -> Awaitable[tuple[step_.StepResult, ...]]:
        return self._get(lambda r: r.steps)

    @property
    def request(self) -> Awaitable[chunks_.RequestMetadata]:
        return self._get(lambda r: r.request)

    @property
    def response(self) -> Awaitable[step_.StepResponse]:
        return self._get(lambda r: r.response)

    @property
    def output(self) -> Awaitable[Any]:
        return self._get(lambda r: r.output)

    # ── Wire formats ──────────────────────────────────────────────

    def to_data_stream(self, **options: Any) -> AsyncGenerator[str]:
        """Encode the full stream in the data stream protocol.

        ``options`` are passed to ``ai_sdk_ui.to_data_stream``.
        """
        from ..ai_sdk_ui import adapter

        return adapter.to_data_stream(self.full_stream, **options)

    def to_sse_stream(self, **options: Any) -> AsyncGenerator[str]:
        """Encode the full stream as UI message stream server-sent events."""
        from ..ai_sdk_ui import adapter

        return adapter.to_sse_stream(self.full_stream, **options)


def stream_text(
    model: llm_.LanguageModel,
    *,
    prompt: str | None = None,
    messages: Sequence[messages_.Message] | None = None,
    system: str | None = None,
    tools: Sequence[tools_.Tool] | tools_.ToolSet | None = None,
    tool_choice: llm_.ToolChoice | None = None,
    max_steps: int = 1,
    continue_steps: bool = False,
    output: output_.Output | None = None,
    tool_call_streaming: bool = False,
    repair_tool_call: tool_calls_.RepairToolCall | None = None,
    transforms: Sequence[StreamTransform] = (),
    on_chunk: Callable[[chunks_.Chunk], Any] | None = None,
    on_error: Callable[[BaseException], Any] | None = None,
    on_step_finish: generate_text_.OnStepFinish | None = None,
    on_finish: Callable[[generate_text_.GenerateTextResult], Any] | None = None,
    abort_signal: asyncio.Event | None = None,
    tracer: telemetry_.Tracer | None = None,
    id_generator: ids_.IdGenerator | None = None,
    **settings: Any,
) -> StreamTextResult:
    """Stream text (and tool calls/results) from a model.

    Argument errors raise immediately; everything after the first model call
    is reported in the stream as an ``error`` chunk and rejects the
    aggregates.
    """
    if max_steps < 1:
        raise errors_.InvalidArgumentError(
            argument="max_steps", message="max_steps must be at least 1", value=max_steps
        )

    call_settings = settings_.prepare_call_settings(**settings)
    initial_prompt = messages_.standardize_prompt(
        prompt=prompt, messages=messages, system=system
    )
    if output is not None:
        initial_prompt = dataclasses.replace(
            initial_prompt,
            system=output.inject_into_system_prompt(initial_prompt.system, model),
        )

    return StreamTextResult(
        model=model,
        prompt=initial_prompt,
        tools=tools_.normalize_tools(tools),
        tool_choice=tool_choice,
        max_steps=max_steps,
        continue_steps=continue_steps,
        output=output,
        tool_call_streaming=tool_call_streaming,
        repair_tool_call=repair_tool_call,
        call_settings=call_settings,
        retry=retry_.prepare_retries(call_settings.max_retries),
        abort_signal=abort_signal,
        tracer=tracer or telemetry_.NoopTracer(),
        generate_message_id=id_generator or generate_text_.generate_message_id,
        transforms=transforms,
        on_chunk=on_chunk,
        on_error=on_error,
        on_step_finish=on_step_finish,
        on_finish=on_finish,
    )
