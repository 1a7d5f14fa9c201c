from __future__ import annotations

import json
import os
from collections.abc import AsyncGenerator
from typing import Any, override

import openai

from ..core import chunks as chunks_
from ..core import errors as errors_
from ..core import llm as llm_
from ..core import messages as messages_

_FINISH_REASONS: dict[str | None, chunks_.FinishReason] = {
    "stop": "stop",
    "length": "length",
    "content_filter": "content-filter",
    "function_call": "tool-calls",
    "tool_calls": "tool-calls",
}


def _finish_reason(reason: str | None) -> chunks_.FinishReason:
    return _FINISH_REASONS.get(reason, "unknown")


def _tools_to_openai(tools: list[llm_.ToolDefinition]) -> list[dict[str, Any]]:
    """Convert tool definitions to OpenAI tool schema format."""
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
            },
        }
        for tool in tools
    ]


def _tool_choice_to_openai(choice: llm_.ToolChoice) -> Any:
    if isinstance(choice, str):
        return choice
    return {"type": "function", "function": {"name": choice["tool_name"]}}


def _messages_to_openai(messages: list[messages_.Message]) -> list[dict[str, Any]]:
    """Convert prompt messages to OpenAI API format.

    Assistant tool calls become ``tool_calls`` entries; each tool result
    becomes its own ``tool`` role message. Reasoning is sent back under the
    ``reasoning`` key, which OpenAI-compatible gateways preserve across turns.
    """
    result: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == "assistant":
            content = ""
            reasoning = ""
            tool_calls = []

            for part in msg.parts:
                if isinstance(part, messages_.ReasoningPart):
                    reasoning += part.text
                elif isinstance(part, messages_.TextPart):
                    content += part.text
                elif isinstance(part, messages_.ToolCallPart):
                    tool_calls.append(
                        {
                            "id": part.tool_call_id,
                            "type": "function",
                            "function": {
                                "name": part.tool_name,
                                "arguments": json.dumps(part.args),
                            },
                        }
                    )

            entry: dict[str, Any] = {"role": "assistant"}
            if content:
                entry["content"] = content
            if reasoning:
                entry["reasoning"] = reasoning
            if tool_calls:
                entry["tool_calls"] = tool_calls
            result.append(entry)
        elif msg.role == "tool":
            for part in msg.tool_results:
                result.append(
                    {
                        "role": "tool",
                        "tool_call_id": part.tool_call_id,
                        "content": json.dumps(part.result),
                    }
                )
        elif msg.role == "user" and any(
            isinstance(p, messages_.FilePart) for p in msg.parts
        ):
            content_parts: list[dict[str, Any]] = []
            for part in msg.parts:
                if isinstance(part, messages_.TextPart):
                    content_parts.append({"type": "text", "text": part.text})
                elif isinstance(part, messages_.FilePart):
                    content_parts.append(
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": f"data:{part.mime_type};base64,{part.data}"
                            },
                        }
                    )
            result.append({"role": "user", "content": content_parts})
        else:
            result.append({"role": msg.role, "content": msg.text})
    return result


def _response_format(fmt: llm_.ResponseFormat | None) -> dict[str, Any] | None:
    if fmt is None or fmt.type == "text":
        return None
    if fmt.schema is None:
        return {"type": "json_object"}
    return {
        "type": "json_schema",
        "json_schema": {
            "name": fmt.name or "response",
            "description": fmt.description,
            "schema": fmt.schema,
            "strict": False,
        },
    }


def _api_call_error(exc: openai.APIError, url: str) -> errors_.APICallError:
    if isinstance(exc, openai.APIStatusError):
        return errors_.APICallError(
            exc.message,
            url=url,
            status_code=exc.status_code,
            response_body=exc.response.text,
            response_headers=dict(exc.response.headers),
            cause=exc,
        )
    # connection failures and timeouts are worth retrying
    return errors_.APICallError(
        exc.message,
        url=url,
        is_retryable=isinstance(exc, openai.APIConnectionError),
        cause=exc,
    )


def _usage(usage: Any) -> chunks_.Usage:
    if usage is None:
        return chunks_.Usage()
    return chunks_.Usage.calculate(usage.prompt_tokens, usage.completion_tokens)


def _reasoning(delta: Any) -> str | None:
    # Reasoning may arrive as a direct attribute or in pydantic's model_extra
    value = getattr(delta, "reasoning", None)
    if not value and getattr(delta, "model_extra", None):
        value = delta.model_extra.get("reasoning")
    return value or None


class OpenAIChatModel(llm_.LanguageModel):
    """Chat Completions adapter.

    Works against OpenAI and OpenAI-compatible endpoints (``base_url``),
    including gateways that surface model reasoning.
    """

    provider = "openai.chat"
    supports_structured_outputs = True

    def __init__(
        self,
        model: str = "gpt-4o",
        base_url: str | None = None,
        api_key: str | None = None,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        """Initialize OpenAI model adapter.

        Args:
            model: Model identifier (e.g., 'gpt-4o', 'openai/gpt-5.2')
            base_url: API base URL, defaults to ``OPENAI_BASE_URL``
            api_key: API key for authentication, defaults to ``OPENAI_API_KEY``
            client: Preconfigured client; overrides ``base_url``/``api_key``
        """
        self.model_id = model
        if client is None:
            resolved_key = api_key or os.environ.get("OPENAI_API_KEY") or ""
            resolved_url = base_url or os.environ.get("OPENAI_BASE_URL")
            client = openai.AsyncOpenAI(base_url=resolved_url, api_key=resolved_key)
        self._client = client

    @property
    def _url(self) -> str:
        return f"{self._client.base_url}chat/completions"

    def _args(self, options: llm_.CallOptions) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self.model_id,
            "messages": _messages_to_openai(options.prompt),
        }
        if options.tools:
            kwargs["tools"] = _tools_to_openai(options.tools)
            if options.tool_choice is not None:
                kwargs["tool_choice"] = _tool_choice_to_openai(options.tool_choice)
        if (fmt := _response_format(options.response_format)) is not None:
            kwargs["response_format"] = fmt
        for name, value in (
            ("max_tokens", options.max_tokens),
            ("temperature", options.temperature),
            ("top_p", options.top_p),
            ("presence_penalty", options.presence_penalty),
            ("frequency_penalty", options.frequency_penalty),
            ("stop", options.stop_sequences),
            ("seed", options.seed),
            ("extra_headers", options.headers),
        ):
            if value is not None:
                kwargs[name] = value
        return kwargs

    def _warnings(self, options: llm_.CallOptions) -> list[chunks_.CallWarning]:
        if options.top_k is not None:
            return [chunks_.CallWarning(type="unsupported-setting", setting="top_k")]
        return []

    @override
    async def generate(self, options: llm_.CallOptions) -> llm_.GenerateResult:
        args = self._args(options)
        try:
            response = await self._client.chat.completions.create(**args)
        except openai.APIError as exc:
            raise _api_call_error(exc, self._url) from exc

        choice = response.choices[0]
        return llm_.GenerateResult(
            text=choice.message.content,
            reasoning=_reasoning(choice.message),
            tool_calls=[
                chunks_.ToolCallChunk(
                    tool_call_id=tc.id,
                    tool_name=tc.function.name,
                    args=tc.function.arguments,
                )
                for tc in choice.message.tool_calls or []
            ],
            finish_reason=_finish_reason(choice.finish_reason),
            usage=_usage(response.usage),
            warnings=self._warnings(options),
            request=chunks_.RequestMetadata(body=args),
            response=chunks_.ResponseMetadataChunk(
                id=response.id, model_id=response.model
            ),
        )

    @override
    async def stream(self, options: llm_.CallOptions) -> llm_.ModelStream:
        args = self._args(options)
        try:
            stream = await self._client.chat.completions.create(
                **args, stream=True, stream_options={"include_usage": True}
            )
        except openai.APIError as exc:
            raise _api_call_error(exc, self._url) from exc

        return llm_.ModelStream(
            stream=self._chunks(stream),
            warnings=self._warnings(options),
            request=chunks_.RequestMetadata(body=args),
        )

    async def _chunks(self, stream: Any) -> AsyncGenerator[chunks_.Chunk, None]:
        tool_calls: dict[int, dict[str, Any]] = {}  # index -> {id, name, args}
        finish_reason: chunks_.FinishReason = "unknown"
        usage = chunks_.Usage()
        is_first = True

        try:
            async for chunk in stream:
                if is_first:
                    is_first = False
                    yield chunks_.ResponseMetadataChunk(id=chunk.id, model_id=chunk.model)

                if chunk.usage is not None:
                    usage = _usage(chunk.usage)
                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta
                if choice.finish_reason is not None:
                    finish_reason = _finish_reason(choice.finish_reason)

                if (reasoning := _reasoning(delta)) is not None:
                    yield chunks_.ReasoningChunk(text_delta=reasoning)
                if delta.content:
                    yield chunks_.TextDeltaChunk(text_delta=delta.content)

                for tc in delta.tool_calls or []:
                    idx = tc.index
                    if idx not in tool_calls:
                        tool_calls[idx] = {"id": tc.id, "name": None, "args": ""}
                    if tc.id:
                        tool_calls[idx]["id"] = tc.id
                    if tc.function is None:
                        continue
                    if tc.function.name:
                        tool_calls[idx]["name"] = tc.function.name
                    if tc.function.arguments:
                        tool_calls[idx]["args"] += tc.function.arguments
                        yield chunks_.ToolCallDeltaChunk(
                            tool_call_id=tool_calls[idx]["id"] or "",
                            tool_name=tool_calls[idx]["name"] or "",
                            args_text_delta=tc.function.arguments,
                        )
        except openai.APIError as exc:
            yield chunks_.ErrorChunk(error=_api_call_error(exc, self._url))
            yield chunks_.FinishChunk(finish_reason="error", usage=usage)
            return

        for tc in tool_calls.values():
            yield chunks_.ToolCallChunk(
                tool_call_id=tc["id"] or "",
                tool_name=tc["name"] or "",
                args=tc["args"],
            )
        yield chunks_.FinishChunk(finish_reason=finish_reason, usage=usage)
