"""
Encode runtime chunk streams for AI SDK UI clients.

Reference: https://ai-sdk.dev/docs/ai-sdk-ui/stream-protocol
"""

from __future__ import annotations

import dataclasses
import json
import uuid
from collections.abc import AsyncGenerator, AsyncIterable, Callable
from typing import Any

from ..core import chunks as chunks_
from ..core import schema as schema_
from . import protocol

ErrorMessageFn = Callable[[BaseException | Any], str]


def _mask_error(error: Any) -> str:
    return "An error occurred."


# ============================================================================
# Serialization utilities
# ============================================================================


def _to_camel_case(snake_str: str) -> str:
    """Convert snake_case to camelCase."""
    components = snake_str.split("_")
    return components[0] + "".join(x.title() for x in components[1:])


def _generate_id(prefix: str = "id") -> str:
    """Generate a unique ID with prefix."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _camel_fields(obj: Any) -> dict[str, Any]:
    """Top-level dataclass fields as camelCase keys, dropping ``None``."""
    return {
        _to_camel_case(f.name): schema_.to_jsonable(getattr(obj, f.name))
        for f in dataclasses.fields(obj)
        if getattr(obj, f.name) is not None
    }


def serialize_part(part: protocol.UIMessageStreamPart) -> str:
    """Serialize a stream part to JSON with camelCase keys."""
    return json.dumps(_camel_fields(part))


def format_sse(part: protocol.UIMessageStreamPart) -> str:
    """Format a stream part as an SSE data line."""
    return f"data: {serialize_part(part)}\n\n"


SSE_DONE = "data: [DONE]\n\n"


# ============================================================================
# Chunks → data stream protocol
# ============================================================================


def _usage(usage: chunks_.Usage) -> dict[str, int]:
    return {
        "promptTokens": usage.prompt_tokens,
        "completionTokens": usage.completion_tokens,
    }


async def to_data_stream(
    stream: AsyncIterable[chunks_.Chunk],
    *,
    get_error_message: ErrorMessageFn = _mask_error,
    send_usage: bool = True,
    send_reasoning: bool = False,
    send_sources: bool = False,
    send_finish: bool = True,
) -> AsyncGenerator[str, None]:
    """Encode a ``stream_text`` full stream as data stream protocol lines.

    Error details are masked unless ``get_error_message`` is given, so
    server internals do not leak to clients.
    """
    fmt = protocol.format_data_stream_part

    async for chunk in stream:
        match chunk:
            case chunks_.TextDeltaChunk():
                yield fmt("text", chunk.text_delta)
            case chunks_.ReasoningChunk():
                if send_reasoning:
                    yield fmt("reasoning", chunk.text_delta)
            case chunks_.RedactedReasoningChunk():
                if send_reasoning:
                    yield fmt("redacted_reasoning", {"data": chunk.data})
            case chunks_.ReasoningSignatureChunk():
                if send_reasoning:
                    yield fmt("reasoning_signature", {"signature": chunk.signature})
            case chunks_.FileChunk():
                yield fmt(
                    "file",
                    {"mimeType": chunk.file.mime_type, "data": chunk.file.base64},
                )
            case chunks_.SourceChunk():
                if send_sources:
                    yield fmt("source", _camel_fields(chunk.source))
            case chunks_.ToolCallStreamingStartChunk():
                yield fmt(
                    "tool_call_streaming_start",
                    {"toolCallId": chunk.tool_call_id, "toolName": chunk.tool_name},
                )
            case chunks_.ToolCallDeltaChunk():
                yield fmt(
                    "tool_call_delta",
                    {
                        "toolCallId": chunk.tool_call_id,
                        "argsTextDelta": chunk.args_text_delta,
                    },
                )
            case chunks_.ToolCallChunk():
                yield fmt(
                    "tool_call",
                    {
                        "toolCallId": chunk.tool_call_id,
                        "toolName": chunk.tool_name,
                        "args": schema_.to_jsonable(chunk.args),
                    },
                )
            case chunks_.ToolResultChunk():
                yield fmt(
                    "tool_result",
                    {
                        "toolCallId": chunk.tool_call_id,
                        "result": schema_.to_jsonable(chunk.result),
                    },
                )
            case chunks_.ErrorChunk():
                yield fmt("error", get_error_message(chunk.error))
            case chunks_.StepStartChunk():
                yield fmt("start_step", {"messageId": chunk.message_id})
            case chunks_.StepFinishChunk():
                value: dict[str, Any] = {
                    "finishReason": chunk.finish_reason,
                    "isContinued": chunk.is_continued,
                }
                if send_usage:
                    value["usage"] = _usage(chunk.usage)
                yield fmt("finish_step", value)
            case chunks_.FinishChunk():
                if send_finish:
                    value = {"finishReason": chunk.finish_reason}
                    if send_usage:
                        value["usage"] = _usage(chunk.usage)
                    yield fmt("finish_message", value)
            case chunks_.ResponseMetadataChunk():
                pass
            case _:
                raise ValueError(f"Unknown chunk type: {chunk.type}")


# ============================================================================
# Chunks → UI message stream (SSE)
# ============================================================================


class _StreamState:
    """Tracks open text/reasoning blocks and step framing."""

    def __init__(self) -> None:
        self.text_id: str | None = None
        self.reasoning_id: str | None = None
        self.emitted_start: bool = False
        self.in_step: bool = False

    def close_open_blocks(self) -> list[protocol.UIMessageStreamPart]:
        """Close any open reasoning/text blocks, returning parts to emit."""
        parts: list[protocol.UIMessageStreamPart] = []
        if self.reasoning_id:
            parts.append(protocol.ReasoningEndPart(id=self.reasoning_id))
            self.reasoning_id = None
        if self.text_id:
            parts.append(protocol.TextEndPart(id=self.text_id))
            self.text_id = None
        return parts

    def finish_step(self) -> list[protocol.UIMessageStreamPart]:
        """Close open blocks and finish the current step if active."""
        parts = self.close_open_blocks()
        if self.in_step:
            parts.append(protocol.FinishStepPart())
            self.in_step = False
        return parts

    def begin_step(self, message_id: str) -> list[protocol.UIMessageStreamPart]:
        parts: list[protocol.UIMessageStreamPart] = self.finish_step()
        if not self.emitted_start:
            parts.append(protocol.StartPart(message_id=message_id))
            self.emitted_start = True
        parts.append(protocol.StartStepPart())
        self.in_step = True
        return parts


def _ui_finish_reason(reason: chunks_.FinishReason) -> protocol.FinishReason:
    return "other" if reason == "unknown" else reason


async def to_ui_message_stream(
    stream: AsyncIterable[chunks_.Chunk],
    *,
    get_error_message: ErrorMessageFn = _mask_error,
) -> AsyncGenerator[protocol.UIMessageStreamPart, None]:
    """
    Convert a ``stream_text`` full stream into AI SDK UI message stream parts.

    This adapter transforms the runtime chunks into the AI SDK protocol
    that can be consumed by useChat and other AI SDK UI hooks.
    """
    state = _StreamState()

    async for chunk in stream:
        match chunk:
            case chunks_.StepStartChunk(message_id=message_id):
                for part in state.begin_step(message_id):
                    yield part

            case chunks_.ReasoningChunk(text_delta=delta):
                if not state.reasoning_id:
                    state.reasoning_id = _generate_id("reasoning")
                    yield protocol.ReasoningStartPart(id=state.reasoning_id)
                yield protocol.ReasoningDeltaPart(id=state.reasoning_id, delta=delta)

            case chunks_.TextDeltaChunk(text_delta=delta):
                # Close reasoning block when text starts (reasoning precedes text)
                if state.reasoning_id:
                    yield protocol.ReasoningEndPart(id=state.reasoning_id)
                    state.reasoning_id = None
                if not state.text_id:
                    state.text_id = _generate_id("text")
                    yield protocol.TextStartPart(id=state.text_id)
                yield protocol.TextDeltaPart(id=state.text_id, delta=delta)

            case chunks_.SourceChunk(source=source):
                yield protocol.SourceUrlPart(
                    source_id=source.id, url=source.url, title=source.title
                )

            case chunks_.FileChunk(file=file):
                yield protocol.FilePart(
                    url=f"data:{file.mime_type};base64,{file.base64}",
                    media_type=file.mime_type,
                )

            case chunks_.ToolCallStreamingStartChunk():
                yield protocol.ToolInputStartPart(
                    tool_call_id=chunk.tool_call_id, tool_name=chunk.tool_name
                )

            case chunks_.ToolCallDeltaChunk():
                yield protocol.ToolInputDeltaPart(
                    tool_call_id=chunk.tool_call_id,
                    input_text_delta=chunk.args_text_delta,
                )

            case chunks_.ToolCallChunk():
                yield protocol.ToolInputAvailablePart(
                    tool_call_id=chunk.tool_call_id,
                    tool_name=chunk.tool_name,
                    input=chunk.args,
                )

            case chunks_.ToolResultChunk():
                yield protocol.ToolOutputAvailablePart(
                    tool_call_id=chunk.tool_call_id, output=chunk.result
                )

            case chunks_.ErrorChunk(error=error):
                tool_call_id = getattr(error, "tool_call_id", None)
                if tool_call_id is not None:
                    yield protocol.ToolOutputErrorPart(
                        tool_call_id=tool_call_id, error_text=get_error_message(error)
                    )
                else:
                    yield protocol.ErrorPart(error_text=get_error_message(error))

            case chunks_.StepFinishChunk():
                for part in state.finish_step():
                    yield part

            case chunks_.FinishChunk(finish_reason=reason):
                for part in state.finish_step():
                    yield part
                yield protocol.FinishPart(finish_reason=_ui_finish_reason(reason))

            case (
                chunks_.ReasoningSignatureChunk()
                | chunks_.RedactedReasoningChunk()
                | chunks_.ResponseMetadataChunk()
            ):
                pass

            case _:
                raise ValueError(f"Unknown chunk type: {chunk.type}")


async def to_sse_stream(
    stream: AsyncIterable[chunks_.Chunk],
    *,
    get_error_message: ErrorMessageFn = _mask_error,
) -> AsyncGenerator[str, None]:
    """Convert a chunk stream directly into SSE-formatted strings."""
    async for part in to_ui_message_stream(stream, get_error_message=get_error_message):
        yield format_sse(part)
    yield SSE_DONE
