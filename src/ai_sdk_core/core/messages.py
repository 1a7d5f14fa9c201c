from __future__ import annotations

import dataclasses
import uuid
from collections.abc import Callable, Sequence
from typing import Annotated, Any, Literal

import pydantic

from . import errors as errors_
from . import schema as schema_


class TextPart(pydantic.BaseModel):
    text: str
    type: Literal["text"] = "text"


class ReasoningPart(pydantic.BaseModel):
    text: str
    type: Literal["reasoning"] = "reasoning"
    # Anthropic's thinking blocks include a signature for cache/verification.
    # This must be preserved and sent back in multi-turn conversations.
    signature: str | None = None


class RedactedReasoningPart(pydantic.BaseModel):
    data: str
    type: Literal["redacted-reasoning"] = "redacted-reasoning"


class FilePart(pydantic.BaseModel):
    data: str  # base64
    mime_type: str
    type: Literal["file"] = "file"


class ToolCallPart(pydantic.BaseModel):
    tool_call_id: str
    tool_name: str
    args: Any
    type: Literal["tool-call"] = "tool-call"


class ToolResultPart(pydantic.BaseModel):
    tool_call_id: str
    tool_name: str
    result: Any
    is_error: bool = False
    type: Literal["tool-result"] = "tool-result"


Part = Annotated[
    TextPart
    | ReasoningPart
    | RedactedReasoningPart
    | FilePart
    | ToolCallPart
    | ToolResultPart,
    pydantic.Field(discriminator="type"),
]


def _gen_id() -> str:
    return uuid.uuid4().hex[:12]


class Message(pydantic.BaseModel):
    role: Literal["system", "user", "assistant", "tool"]
    parts: list[Part]
    id: str = pydantic.Field(default_factory=_gen_id)

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.parts if isinstance(part, TextPart))

    @property
    def reasoning(self) -> str:
        return "".join(
            part.text for part in self.parts if isinstance(part, ReasoningPart)
        )

    @property
    def tool_calls(self) -> list[ToolCallPart]:
        return [part for part in self.parts if isinstance(part, ToolCallPart)]

    @property
    def tool_results(self) -> list[ToolResultPart]:
        return [part for part in self.parts if isinstance(part, ToolResultPart)]


def make_messages(*, system: str | None = None, user: str) -> list[Message]:
    """Convenience builder for common system + user message pattern."""
    result: list[Message] = []
    if system is not None:
        result.append(Message(role="system", parts=[TextPart(text=system)]))
    result.append(Message(role="user", parts=[TextPart(text=user)]))
    return result


# ── Prompt standardization ────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class StandardizedPrompt:
    type: Literal["prompt", "messages"]
    system: str | None
    messages: tuple[Message, ...]

    def with_response_messages(self, response: Sequence[Message]) -> list[Message]:
        """Model prompt for a step: system, input messages, prior responses."""
        result: list[Message] = []
        if self.system is not None:
            result.append(Message(role="system", parts=[TextPart(text=self.system)]))
        result.extend(self.messages)
        result.extend(response)
        return result


def standardize_prompt(
    *,
    prompt: str | None = None,
    messages: Sequence[Message] | None = None,
    system: str | None = None,
) -> StandardizedPrompt:
    if prompt is None and messages is None:
        raise errors_.InvalidPromptError("prompt or messages must be defined")
    if prompt is not None and messages is not None:
        raise errors_.InvalidPromptError("prompt and messages cannot be defined at the same time")
    if system is not None and not isinstance(system, str):
        raise errors_.InvalidPromptError("system must be a string", prompt=system)

    if prompt is not None:
        if not isinstance(prompt, str):
            raise errors_.InvalidPromptError("prompt must be a string", prompt=prompt)
        return StandardizedPrompt(
            type="prompt",
            system=system,
            messages=(Message(role="user", parts=[TextPart(text=prompt)]),),
        )

    if not messages:
        raise errors_.InvalidPromptError("messages must not be empty", prompt=messages)
    try:
        validated = tuple(
            m if isinstance(m, Message) else Message.model_validate(m) for m in messages
        )
    except pydantic.ValidationError as exc:
        raise errors_.InvalidPromptError(
            "messages must be a list of Message objects", prompt=messages
        ) from exc
    return StandardizedPrompt(type="messages", system=system, messages=validated)


# ── Response messages ─────────────────────────────────────────────


def to_response_messages(
    *,
    text: str,
    reasoning: str = "",
    reasoning_signature: str | None = None,
    files: Sequence[Any] = (),
    tool_calls: Sequence[Any] = (),
    tool_results: Sequence[Any] = (),
    message_id: str,
    generate_message_id: Callable[[], str],
) -> list[Message]:
    """Turn one step's output into the assistant (and tool) messages that
    seed the next step.

    ``files`` are ``GeneratedFile`` values, ``tool_calls``/``tool_results``
    are parsed ``ToolCallChunk``/``ToolResultChunk`` values.
    """
    parts: list[Part] = []
    if reasoning:
        parts.append(ReasoningPart(text=reasoning, signature=reasoning_signature))
    parts.extend(FilePart(data=f.base64, mime_type=f.mime_type) for f in files)
    parts.append(TextPart(text=text))
    parts.extend(
        ToolCallPart(
            tool_call_id=call.tool_call_id,
            tool_name=call.tool_name,
            args=schema_.to_jsonable(call.args),
        )
        for call in tool_calls
    )

    result = [Message(role="assistant", parts=parts, id=message_id)]
    if tool_results:
        result.append(
            Message(
                role="tool",
                id=generate_message_id(),
                parts=[
                    ToolResultPart(
                        tool_call_id=r.tool_call_id,
                        tool_name=r.tool_name,
                        result=schema_.to_jsonable(r.result),
                    )
                    for r in tool_results
                ],
            )
        )
    return result


def append_continuation(messages: list[Message], text: str) -> list[Message]:
    """Return ``messages`` with ``text`` appended to the last assistant message."""
    last = messages[-1]
    parts = list(last.parts)
    if parts and isinstance(parts[-1], TextPart):
        parts[-1] = TextPart(text=parts[-1].text + text)
    else:
        parts.append(TextPart(text=text))
    return [*messages[:-1], last.model_copy(update={"parts": parts})]
