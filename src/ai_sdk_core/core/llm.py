from __future__ import annotations

import abc
import asyncio
import dataclasses
from collections.abc import AsyncIterator
from typing import Any, Literal

from . import chunks as chunks_
from . import messages as messages_


@dataclasses.dataclass(frozen=True)
class ToolDefinition:
    """What the model sees for a tool: name, description, parameter schema."""

    name: str
    description: str | None
    parameters: dict[str, Any]
    type: Literal["function"] = "function"


ToolChoice = (
    Literal["auto", "none", "required"]
    | dict[Literal["type", "tool_name"], str]
)


@dataclasses.dataclass(frozen=True)
class ResponseFormat:
    type: Literal["text", "json"] = "text"
    schema: dict[str, Any] | None = None
    name: str | None = None
    description: str | None = None


@dataclasses.dataclass
class CallOptions:
    """Everything a model adapter needs for one call."""

    prompt: list[messages_.Message]
    tools: list[ToolDefinition] | None = None
    tool_choice: ToolChoice | None = None
    response_format: ResponseFormat | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    stop_sequences: list[str] | None = None
    seed: int | None = None
    headers: dict[str, str] | None = None
    abort_signal: asyncio.Event | None = None


@dataclasses.dataclass
class GenerateResult:
    """A complete (non-streaming) model response."""

    text: str | None = None
    reasoning: str | None = None
    tool_calls: list[chunks_.ToolCallChunk] = dataclasses.field(default_factory=list)
    files: list[chunks_.GeneratedFile] = dataclasses.field(default_factory=list)
    sources: list[chunks_.Source] = dataclasses.field(default_factory=list)
    finish_reason: chunks_.FinishReason = "unknown"
    usage: chunks_.Usage = dataclasses.field(default_factory=chunks_.Usage)
    warnings: list[chunks_.CallWarning] = dataclasses.field(default_factory=list)
    request: chunks_.RequestMetadata = dataclasses.field(
        default_factory=chunks_.RequestMetadata
    )
    response: chunks_.ResponseMetadataChunk | None = None
    response_headers: dict[str, str] | None = None


@dataclasses.dataclass
class ModelStream:
    """An open streaming response.

    ``stream`` yields the provider subset of chunks and ends with a
    ``FinishChunk``.
    """

    stream: AsyncIterator[chunks_.Chunk]
    warnings: list[chunks_.CallWarning] = dataclasses.field(default_factory=list)
    request: chunks_.RequestMetadata = dataclasses.field(
        default_factory=chunks_.RequestMetadata
    )
    response_headers: dict[str, str] | None = None


class LanguageModel(abc.ABC):
    provider: str = "unknown"
    model_id: str = "unknown"
    supports_structured_outputs: bool = False

    @abc.abstractmethod
    async def generate(self, options: CallOptions) -> GenerateResult:
        raise NotImplementedError

    @abc.abstractmethod
    async def stream(self, options: CallOptions) -> ModelStream:
        """Open a streaming call.

        Raising here (rather than from the returned stream) lets the caller
        retry the call; errors after the stream is open are delivered as
        ``ErrorChunk`` or raised from iteration.
        """
        raise NotImplementedError
