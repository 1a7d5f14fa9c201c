"""Typed chunks flowing through model, step and result streams.

Model adapters emit the provider subset (text/reasoning deltas, sources,
files, tool-call deltas, tool calls with JSON-text arguments, response
metadata, finish, error). The runtime adds parsed tool calls, tool results
and the step/finish framing.
"""

from __future__ import annotations

import base64
import dataclasses
import datetime
from typing import Any, Literal

FinishReason = Literal[
    "stop", "length", "content-filter", "tool-calls", "error", "other", "unknown"
]


@dataclasses.dataclass(frozen=True)
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def calculate(
        cls, prompt_tokens: int | None, completion_tokens: int | None
    ) -> Usage:
        prompt = prompt_tokens or 0
        completion = completion_tokens or 0
        return cls(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=prompt + completion,
        )

    def __add__(self, other: Usage) -> Usage:
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclasses.dataclass(frozen=True)
class ResponseMetadata:
    id: str
    model_id: str
    timestamp: datetime.datetime = dataclasses.field(
        default_factory=lambda: datetime.datetime.now(datetime.UTC)
    )
    headers: dict[str, str] | None = None


@dataclasses.dataclass(frozen=True)
class RequestMetadata:
    body: Any = None


@dataclasses.dataclass(frozen=True)
class CallWarning:
    """Something the provider ignored or adjusted in the call settings."""

    type: Literal["unsupported-setting", "unsupported-tool", "other"]
    setting: str | None = None
    message: str | None = None


@dataclasses.dataclass(frozen=True)
class Source:
    id: str
    url: str
    title: str | None = None
    source_type: Literal["url"] = "url"


@dataclasses.dataclass(frozen=True)
class GeneratedFile:
    data: bytes
    mime_type: str

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


# ── Content chunks ────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class TextDeltaChunk:
    text_delta: str
    type: Literal["text-delta"] = dataclasses.field(default="text-delta", init=False)


@dataclasses.dataclass(frozen=True)
class ReasoningChunk:
    text_delta: str
    type: Literal["reasoning"] = dataclasses.field(default="reasoning", init=False)


@dataclasses.dataclass(frozen=True)
class ReasoningSignatureChunk:
    signature: str
    type: Literal["reasoning-signature"] = dataclasses.field(
        default="reasoning-signature", init=False
    )


@dataclasses.dataclass(frozen=True)
class RedactedReasoningChunk:
    data: str
    type: Literal["redacted-reasoning"] = dataclasses.field(
        default="redacted-reasoning", init=False
    )


@dataclasses.dataclass(frozen=True)
class SourceChunk:
    source: Source
    type: Literal["source"] = dataclasses.field(default="source", init=False)


@dataclasses.dataclass(frozen=True)
class FileChunk:
    file: GeneratedFile
    type: Literal["file"] = dataclasses.field(default="file", init=False)


# ── Tool chunks ───────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class ToolCallStreamingStartChunk:
    tool_call_id: str
    tool_name: str
    type: Literal["tool-call-streaming-start"] = dataclasses.field(
        default="tool-call-streaming-start", init=False
    )


@dataclasses.dataclass(frozen=True)
class ToolCallDeltaChunk:
    tool_call_id: str
    tool_name: str
    args_text_delta: str
    type: Literal["tool-call-delta"] = dataclasses.field(
        default="tool-call-delta", init=False
    )


@dataclasses.dataclass(frozen=True)
class ToolCallChunk:
    """A complete tool call.

    ``args`` is the raw JSON text when emitted by a model and the validated
    argument value once the runtime has parsed it.
    """

    tool_call_id: str
    tool_name: str
    args: Any
    type: Literal["tool-call"] = dataclasses.field(default="tool-call", init=False)


@dataclasses.dataclass(frozen=True)
class ToolResultChunk:
    tool_call_id: str
    tool_name: str
    args: Any
    result: Any
    type: Literal["tool-result"] = dataclasses.field(default="tool-result", init=False)


# ── Framing chunks ────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class ResponseMetadataChunk:
    id: str | None = None
    model_id: str | None = None
    timestamp: datetime.datetime | None = None
    type: Literal["response-metadata"] = dataclasses.field(
        default="response-metadata", init=False
    )


@dataclasses.dataclass(frozen=True)
class StepStartChunk:
    message_id: str
    request: RequestMetadata = dataclasses.field(default_factory=RequestMetadata)
    warnings: tuple[CallWarning, ...] = ()
    type: Literal["step-start"] = dataclasses.field(default="step-start", init=False)


@dataclasses.dataclass(frozen=True)
class StepFinishChunk:
    message_id: str
    finish_reason: FinishReason
    usage: Usage
    is_continued: bool = False
    request: RequestMetadata = dataclasses.field(default_factory=RequestMetadata)
    response: ResponseMetadata | None = None
    warnings: tuple[CallWarning, ...] = ()
    type: Literal["step-finish"] = dataclasses.field(default="step-finish", init=False)


@dataclasses.dataclass(frozen=True)
class FinishChunk:
    finish_reason: FinishReason
    usage: Usage = dataclasses.field(default_factory=Usage)
    response: ResponseMetadata | None = None
    type: Literal["finish"] = dataclasses.field(default="finish", init=False)


@dataclasses.dataclass(frozen=True)
class ErrorChunk:
    error: Any
    type: Literal["error"] = dataclasses.field(default="error", init=False)


@dataclasses.dataclass(frozen=True)
class ObjectChunk:
    """A new partial object published by ``stream_object``."""

    object: Any
    type: Literal["object"] = dataclasses.field(default="object", init=False)


Chunk = (
    TextDeltaChunk
    | ReasoningChunk
    | ReasoningSignatureChunk
    | RedactedReasoningChunk
    | SourceChunk
    | FileChunk
    | ToolCallStreamingStartChunk
    | ToolCallDeltaChunk
    | ToolCallChunk
    | ToolResultChunk
    | ResponseMetadataChunk
    | StepStartChunk
    | StepFinishChunk
    | FinishChunk
    | ErrorChunk
)

ObjectStreamChunk = ObjectChunk | TextDeltaChunk | ErrorChunk | FinishChunk
