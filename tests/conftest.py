from __future__ import annotations

from collections.abc import AsyncGenerator, Sequence

import pydantic

import ai_sdk_core as ai
from ai_sdk_core.core import llm


class MockLanguageModel(ai.LanguageModel):
    """Model that returns pre-configured responses, one per call.

    ``generate`` entries are ``GenerateResult`` values; ``stream`` entries
    are chunk lists. Either may be an exception, which the call raises.
    """

    provider = "mock-provider"

    def __init__(
        self,
        *,
        generate: Sequence[llm.GenerateResult | Exception] = (),
        stream: Sequence[Sequence[ai.Chunk] | Exception] = (),
        model_id: str = "mock-model-id",
        supports_structured_outputs: bool = False,
    ) -> None:
        self.model_id = model_id
        self.supports_structured_outputs = supports_structured_outputs
        self._generate = list(generate)
        self._stream = list(stream)
        self.calls: list[llm.CallOptions] = []

    async def generate(self, options: llm.CallOptions) -> llm.GenerateResult:
        self.calls.append(options)
        if not self._generate:
            raise RuntimeError("MockLanguageModel: no more responses configured")
        response = self._generate.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def stream(self, options: llm.CallOptions) -> llm.ModelStream:
        self.calls.append(options)
        if not self._stream:
            raise RuntimeError("MockLanguageModel: no more responses configured")
        response = self._stream.pop(0)
        if isinstance(response, Exception):
            raise response
        return llm.ModelStream(stream=_iterate(list(response)))


async def _iterate(chunks: list[ai.Chunk]) -> AsyncGenerator[ai.Chunk]:
    for chunk in chunks:
        yield chunk


async def agen[T](items: Sequence[T]) -> AsyncGenerator[T]:
    for item in items:
        yield item


async def collect[T](stream) -> list[T]:
    return [item async for item in stream]


def text_chunks(
    *deltas: str,
    finish_reason: ai.FinishReason = "stop",
    usage: ai.Usage | None = None,
) -> list[ai.Chunk]:
    return [
        *(ai.TextDeltaChunk(text_delta=d) for d in deltas),
        ai.FinishChunk(
            finish_reason=finish_reason,
            usage=usage or ai.Usage.calculate(3, 10),
        ),
    ]


def tool_call_chunks(
    *,
    tool_call_id: str = "call-1",
    tool_name: str = "tool1",
    args: str = '{"value": "value"}',
) -> list[ai.Chunk]:
    return [
        ai.ToolCallChunk(tool_call_id=tool_call_id, tool_name=tool_name, args=args),
        ai.FinishChunk(finish_reason="tool-calls", usage=ai.Usage.calculate(10, 5)),
    ]


def text_result(
    text: str | None,
    *,
    finish_reason: ai.FinishReason = "stop",
    tool_calls: Sequence[ai.ToolCallChunk] = (),
) -> llm.GenerateResult:
    return llm.GenerateResult(
        text=text,
        tool_calls=list(tool_calls),
        finish_reason=finish_reason,
        usage=ai.Usage.calculate(3, 10),
    )


class Item(pydantic.BaseModel):
    content: str
