"""
Wire formats consumed by the AI SDK UI hooks.

- Data stream protocol: one ``<code>:<json>\\n`` line per part.
- UI message stream protocol: server-sent events, one JSON part per event.

Reference: https://ai-sdk.dev/docs/ai-sdk-ui/stream-protocol
"""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Callable
from typing import Any, Literal

# necessary headers for the streaming integrations to work
DATA_STREAM_HEADERS = {
    "Content-Type": "text/plain; charset=utf-8",
    "x-vercel-ai-data-stream": "v1",
}

UI_MESSAGE_STREAM_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "x-vercel-ai-ui-message-stream": "v1",
    "x-accel-buffering": "no",
}


# ============================================================================
# Data stream protocol
# ============================================================================

DataStreamPartName = Literal[
    "text",
    "data",
    "error",
    "message_annotations",
    "tool_call",
    "tool_result",
    "tool_call_streaming_start",
    "tool_call_delta",
    "finish_message",
    "finish_step",
    "start_step",
    "reasoning",
    "source",
    "redacted_reasoning",
    "reasoning_signature",
    "file",
]

DATA_STREAM_PART_CODES: dict[str, str] = {
    "text": "0",
    "data": "2",
    "error": "3",
    "message_annotations": "8",
    "tool_call": "9",
    "tool_result": "a",
    "tool_call_streaming_start": "b",
    "tool_call_delta": "c",
    "finish_message": "d",
    "finish_step": "e",
    "start_step": "f",
    "reasoning": "g",
    "source": "h",
    "redacted_reasoning": "i",
    "reasoning_signature": "j",
    "file": "k",
}

_NAMES_BY_CODE = {code: name for name, code in DATA_STREAM_PART_CODES.items()}


def _require_string(name: str) -> Callable[[Any], None]:
    def check(value: Any) -> None:
        if not isinstance(value, str):
            raise ValueError(f'"{name}" parts expect a string value.')

    return check


def _require_array(name: str) -> Callable[[Any], None]:
    def check(value: Any) -> None:
        if not isinstance(value, list):
            raise ValueError(f'"{name}" parts expect an array value.')

    return check


def _require_object(
    name: str, *, strings: tuple[str, ...] = (), present: tuple[str, ...] = ()
) -> Callable[[Any], None]:
    fields = ", ".join(f'"{f}"' for f in (*strings, *present))

    def check(value: Any) -> None:
        if (
            not isinstance(value, dict)
            or any(not isinstance(value.get(f), str) for f in strings)
            or any(f not in value for f in present)
        ):
            raise ValueError(
                f'"{name}" parts expect an object with {fields} properties.'
                if fields
                else f'"{name}" parts expect an object value.'
            )

    return check


def _check_finish(name: str, *, continued: bool) -> Callable[[Any], None]:
    def check(value: Any) -> None:
        if not isinstance(value, dict) or "finishReason" not in value:
            raise ValueError(f'"{name}" parts expect an object with a "finishReason" property.')
        usage = value.get("usage")
        if usage is not None and not (
            isinstance(usage, dict)
            and "promptTokens" in usage
            and "completionTokens" in usage
        ):
            raise ValueError(
                f'"{name}" parts expect "usage" with "promptTokens" and "completionTokens".'
            )
        if continued and not isinstance(value.get("isContinued"), bool):
            raise ValueError(f'"{name}" parts expect an "isContinued" boolean property.')

    return check


_VALIDATORS: dict[str, Callable[[Any], None]] = {
    "text": _require_string("text"),
    "data": _require_array("data"),
    "error": _require_string("error"),
    "message_annotations": _require_array("message_annotations"),
    "tool_call": _require_object(
        "tool_call", strings=("toolCallId", "toolName"), present=("args",)
    ),
    "tool_result": _require_object(
        "tool_result", strings=("toolCallId",), present=("result",)
    ),
    "tool_call_streaming_start": _require_object(
        "tool_call_streaming_start", strings=("toolCallId", "toolName")
    ),
    "tool_call_delta": _require_object(
        "tool_call_delta", strings=("toolCallId", "argsTextDelta")
    ),
    "finish_message": _check_finish("finish_message", continued=False),
    "finish_step": _check_finish("finish_step", continued=True),
    "start_step": _require_object("start_step", strings=("messageId",)),
    "reasoning": _require_string("reasoning"),
    "source": _require_object("source"),
    "redacted_reasoning": _require_object("redacted_reasoning", strings=("data",)),
    "reasoning_signature": _require_object(
        "reasoning_signature", strings=("signature",)
    ),
    "file": _require_object("file", strings=("data", "mimeType")),
}


@dataclasses.dataclass(frozen=True)
class DataStreamPart:
    type: DataStreamPartName
    value: Any


def format_data_stream_part(name: DataStreamPartName, value: Any) -> str:
    """Encode one part as ``<code>:<json>\\n``."""
    if name not in DATA_STREAM_PART_CODES:
        raise ValueError(f"Invalid stream part type: {name}")
    _VALIDATORS[name](value)
    return f"{DATA_STREAM_PART_CODES[name]}:{json.dumps(value)}\n"


def parse_data_stream_part(line: str) -> DataStreamPart:
    code, sep, text = line.partition(":")
    if not sep:
        raise ValueError("Failed to parse stream string. No separator found.")
    name = _NAMES_BY_CODE.get(code)
    if name is None:
        raise ValueError(f"Failed to parse stream string. Invalid code {code}.")
    value = json.loads(text)
    _VALIDATORS[name](value)
    return DataStreamPart(type=name, value=value)  # type: ignore[arg-type]


# ============================================================================
# UI message stream protocol
# ============================================================================

FinishReason = Literal[
    "stop", "length", "content-filter", "tool-calls", "error", "other"
]


@dataclasses.dataclass
class StartPart:
    """Indicates the beginning of a new message with metadata."""

    type: Literal["start"] = dataclasses.field(default="start", init=False)
    message_id: str | None = None
    message_metadata: Any | None = None


@dataclasses.dataclass
class TextStartPart:
    """Indicates the beginning of a text block."""

    id: str
    type: Literal["text-start"] = dataclasses.field(default="text-start", init=False)


@dataclasses.dataclass
class TextDeltaPart:
    """Contains incremental text content for the text block."""

    id: str
    delta: str
    type: Literal["text-delta"] = dataclasses.field(default="text-delta", init=False)


@dataclasses.dataclass
class TextEndPart:
    """Indicates the completion of a text block."""

    id: str
    type: Literal["text-end"] = dataclasses.field(default="text-end", init=False)


@dataclasses.dataclass
class ReasoningStartPart:
    """Indicates the beginning of a reasoning block."""

    id: str
    type: Literal["reasoning-start"] = dataclasses.field(
        default="reasoning-start", init=False
    )


@dataclasses.dataclass
class ReasoningDeltaPart:
    """Contains incremental reasoning content for the reasoning block."""

    id: str
    delta: str
    type: Literal["reasoning-delta"] = dataclasses.field(
        default="reasoning-delta", init=False
    )


@dataclasses.dataclass
class ReasoningEndPart:
    """Indicates the completion of a reasoning block."""

    id: str
    type: Literal["reasoning-end"] = dataclasses.field(
        default="reasoning-end", init=False
    )


@dataclasses.dataclass
class SourceUrlPart:
    """References to external URLs."""

    source_id: str
    url: str
    type: Literal["source-url"] = dataclasses.field(default="source-url", init=False)
    title: str | None = None


@dataclasses.dataclass
class FilePart:
    """The file parts contain references to files with their media type."""

    url: str
    media_type: str
    type: Literal["file"] = dataclasses.field(default="file", init=False)


@dataclasses.dataclass
class ToolInputStartPart:
    """Indicates the beginning of tool input streaming."""

    tool_call_id: str
    tool_name: str
    type: Literal["tool-input-start"] = dataclasses.field(
        default="tool-input-start", init=False
    )


@dataclasses.dataclass
class ToolInputDeltaPart:
    """Incremental chunks of tool input as it's being generated."""

    tool_call_id: str
    input_text_delta: str
    type: Literal["tool-input-delta"] = dataclasses.field(
        default="tool-input-delta", init=False
    )


@dataclasses.dataclass
class ToolInputAvailablePart:
    """Indicates that tool input is complete and ready for execution."""

    tool_call_id: str
    tool_name: str
    input: Any
    type: Literal["tool-input-available"] = dataclasses.field(
        default="tool-input-available", init=False
    )


@dataclasses.dataclass
class ToolOutputAvailablePart:
    """Contains the result of tool execution."""

    tool_call_id: str
    output: Any
    type: Literal["tool-output-available"] = dataclasses.field(
        default="tool-output-available", init=False
    )


@dataclasses.dataclass
class ToolOutputErrorPart:
    """Contains an error that occurred during tool execution."""

    tool_call_id: str
    error_text: str
    type: Literal["tool-output-error"] = dataclasses.field(
        default="tool-output-error", init=False
    )


@dataclasses.dataclass
class StartStepPart:
    """A part indicating the start of a step."""

    type: Literal["start-step"] = dataclasses.field(default="start-step", init=False)


@dataclasses.dataclass
class FinishStepPart:
    """A part indicating that a step has been completed."""

    type: Literal["finish-step"] = dataclasses.field(default="finish-step", init=False)


@dataclasses.dataclass
class FinishPart:
    """A part indicating the completion of a message."""

    type: Literal["finish"] = dataclasses.field(default="finish", init=False)
    finish_reason: FinishReason | None = None


@dataclasses.dataclass
class ErrorPart:
    """The error parts are appended to the message as they are received."""

    error_text: str
    type: Literal["error"] = dataclasses.field(default="error", init=False)


UIMessageStreamPart = (
    StartPart
    | TextStartPart
    | TextDeltaPart
    | TextEndPart
    | ReasoningStartPart
    | ReasoningDeltaPart
    | ReasoningEndPart
    | SourceUrlPart
    | FilePart
    | ToolInputStartPart
    | ToolInputDeltaPart
    | ToolInputAvailablePart
    | ToolOutputAvailablePart
    | ToolOutputErrorPart
    | StartStepPart
    | FinishStepPart
    | FinishPart
    | ErrorPart
)
