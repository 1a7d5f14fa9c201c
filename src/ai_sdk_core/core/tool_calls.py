"""Parse model tool calls, run their tools and weave results into the stream."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import AsyncGenerator, AsyncIterable, Awaitable, Callable, Sequence
from typing import Any, cast

from . import abort as abort_
from . import chunks as chunks_
from . import errors as errors_
from . import json_repair as json_repair_
from . import messages as messages_
from . import schema as schema_
from . import streams as streams_
from . import telemetry as telemetry_
from . import tools as tools_

logger = logging.getLogger(__name__)


# ── Parsing ───────────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class ToolCallRepairContext:
    tool_call: chunks_.ToolCallChunk
    tools: tools_.ToolSet
    system: str | None
    messages: Sequence[messages_.Message]
    error: errors_.NoSuchToolError | errors_.InvalidToolArgumentsError

    def parameter_schema(self, tool_name: str) -> dict[str, Any]:
        return self.tools[tool_name].param_schema


RepairToolCall = Callable[
    [ToolCallRepairContext], Awaitable[chunks_.ToolCallChunk | None]
]


def _do_parse_tool_call(
    tool_call: chunks_.ToolCallChunk, tools: tools_.ToolSet
) -> chunks_.ToolCallChunk:
    tool = tools.get(tool_call.tool_name)
    if tool is None:
        raise errors_.NoSuchToolError(
            tool_name=tool_call.tool_name, available_tools=list(tools)
        )

    args_text: str = tool_call.args or ""
    if not args_text.strip():
        result = schema_.safe_validate_types({}, tool.parameters)
    else:
        result = json_repair_.safe_parse_json(args_text, tool.parameters)

    if not result.success:
        raise errors_.InvalidToolArgumentsError(
            tool_name=tool_call.tool_name, tool_args=args_text, cause=result.error
        )

    return chunks_.ToolCallChunk(
        tool_call_id=tool_call.tool_call_id,
        tool_name=tool_call.tool_name,
        args=result.value,
    )


async def parse_tool_call(
    tool_call: chunks_.ToolCallChunk,
    tools: tools_.ToolSet | None,
    *,
    repair_tool_call: RepairToolCall | None = None,
    system: str | None = None,
    messages: Sequence[messages_.Message] = (),
) -> chunks_.ToolCallChunk:
    """Turn a model tool call (JSON-text args) into one with validated args.

    When ``repair_tool_call`` is given it gets one chance to fix an unknown
    tool name or invalid arguments; returning ``None`` keeps the original
    error.
    """
    if tools is None:
        raise errors_.NoSuchToolError(tool_name=tool_call.tool_name)

    try:
        return _do_parse_tool_call(tool_call, tools)
    except (errors_.NoSuchToolError, errors_.InvalidToolArgumentsError) as error:
        if repair_tool_call is None:
            raise

        context = ToolCallRepairContext(
            tool_call=tool_call,
            tools=tools,
            system=system,
            messages=messages,
            error=error,
        )
        try:
            repaired = await repair_tool_call(context)
        except Exception as repair_error:
            raise errors_.ToolCallRepairError(
                original_error=error, cause=repair_error
            ) from repair_error

        if repaired is None:
            raise

        logger.debug("Repaired tool call %s", tool_call.tool_call_id)
        return _do_parse_tool_call(repaired, tools)


# ── Execution ─────────────────────────────────────────────────────


async def _execute(
    tool: tools_.Tool,
    call: chunks_.ToolCallChunk,
    *,
    messages: list[messages_.Message],
    abort_signal: asyncio.Event | None,
    tracer: telemetry_.Tracer,
) -> chunks_.ToolResultChunk:
    execute = cast(tools_.ExecuteFn, tool.execute)
    options = tools_.ToolExecutionOptions(
        tool_call_id=call.tool_call_id, messages=messages, abort_signal=abort_signal
    )

    async def run(span: telemetry_.Span) -> Any:
        return await execute(call.args, options)

    try:
        result = await telemetry_.record_span(
            tracer,
            "ai.toolCall",
            run,
            attributes={
                "ai.toolCall.name": call.tool_name,
                "ai.toolCall.id": call.tool_call_id,
            },
        )
    except Exception as exc:
        logger.warning("Tool %s failed: %s", call.tool_name, exc)
        raise errors_.ToolExecutionError(
            tool_call_id=call.tool_call_id,
            tool_name=call.tool_name,
            tool_args=call.args,
            cause=exc,
        ) from exc

    return chunks_.ToolResultChunk(
        tool_call_id=call.tool_call_id,
        tool_name=call.tool_name,
        args=call.args,
        result=result,
    )


async def execute_tools(
    tool_calls: Sequence[chunks_.ToolCallChunk],
    tools: tools_.ToolSet,
    *,
    messages: list[messages_.Message],
    abort_signal: asyncio.Event | None = None,
    tracer: telemetry_.Tracer | None = None,
) -> list[chunks_.ToolResultChunk]:
    """Run every call whose tool has ``execute``; the first failure raises."""
    abort_.check_aborted(abort_signal)
    tracer = tracer or telemetry_.NoopTracer()
    coros = [
        _execute(
            tools[call.tool_name],
            call,
            messages=messages,
            abort_signal=abort_signal,
            tracer=tracer,
        )
        for call in tool_calls
        if tools[call.tool_name].execute is not None
    ]
    return list(await asyncio.gather(*coros))


# ── Streaming ─────────────────────────────────────────────────────

_CLOSED = object()


async def run_tools_transformation(
    stream: AsyncIterable[chunks_.Chunk],
    tools: tools_.ToolSet | None,
    *,
    messages: list[messages_.Message],
    system: str | None = None,
    tool_call_streaming: bool = False,
    repair_tool_call: RepairToolCall | None = None,
    abort_signal: asyncio.Event | None = None,
    tracer: telemetry_.Tracer | None = None,
) -> AsyncGenerator[chunks_.Chunk]:
    """Parse and execute tool calls as they stream in.

    Content chunks pass through. Tool results (and tool errors) arrive on a
    second channel merged into the output as they complete; the model's
    ``finish`` chunk is held back until every execution has settled.
    """
    tracer = tracer or telemetry_.NoopTracer()
    results: asyncio.Queue[Any] = asyncio.Queue()
    outstanding: set[str] = set()
    tasks: set[asyncio.Task[None]] = set()
    active_streaming: set[str] = set()
    finish: chunks_.FinishChunk | None = None
    can_close = False

    def attempt_close() -> None:
        if can_close and not outstanding:
            if finish is not None:
                results.put_nowait(finish)
            results.put_nowait(_CLOSED)

    async def run_tool(tool: tools_.Tool, call: chunks_.ToolCallChunk) -> None:
        try:
            chunk: chunks_.Chunk = await _execute(
                tool, call, messages=messages, abort_signal=abort_signal, tracer=tracer
            )
        except errors_.ToolExecutionError as exc:
            chunk = chunks_.ErrorChunk(error=exc)
        results.put_nowait(chunk)
        outstanding.discard(call.tool_call_id)
        attempt_close()

    async def forward() -> AsyncGenerator[chunks_.Chunk]:
        nonlocal finish, can_close
        async for chunk in stream:
            match chunk:
                case (
                    chunks_.TextDeltaChunk()
                    | chunks_.ReasoningChunk()
                    | chunks_.ReasoningSignatureChunk()
                    | chunks_.RedactedReasoningChunk()
                    | chunks_.SourceChunk()
                    | chunks_.FileChunk()
                    | chunks_.ResponseMetadataChunk()
                    | chunks_.ErrorChunk()
                ):
                    yield chunk

                case chunks_.ToolCallDeltaChunk():
                    if tool_call_streaming:
                        if chunk.tool_call_id not in active_streaming:
                            active_streaming.add(chunk.tool_call_id)
                            yield chunks_.ToolCallStreamingStartChunk(
                                tool_call_id=chunk.tool_call_id,
                                tool_name=chunk.tool_name,
                            )
                        yield chunk

                case chunks_.ToolCallChunk():
                    try:
                        call = await parse_tool_call(
                            chunk,
                            tools,
                            repair_tool_call=repair_tool_call,
                            system=system,
                            messages=messages,
                        )
                    except errors_.AISDKError as exc:
                        results.put_nowait(chunks_.ErrorChunk(error=exc))
                        continue

                    yield call
                    tool = cast(tools_.ToolSet, tools)[call.tool_name]
                    if tool.execute is not None:
                        outstanding.add(call.tool_call_id)
                        task = asyncio.create_task(run_tool(tool, call))
                        tasks.add(task)
                        task.add_done_callback(tasks.discard)

                case chunks_.FinishChunk():
                    finish = chunk

                case _:
                    raise ValueError(f"Unhandled chunk type: {chunk.type}")

        can_close = True
        attempt_close()

    async def tool_results() -> AsyncGenerator[chunks_.Chunk]:
        try:
            while (item := await results.get()) is not _CLOSED:
                yield item
        finally:
            for task in tasks:
                task.cancel()

    async for chunk in streams_.merge_streams(forward(), tool_results()):
        yield chunk
