"""Structured output for ``generate_text``/``stream_text``.

``text_output()`` keeps plain text; ``object_output(schema)`` asks the model
for JSON and parses it (partially while streaming, fully at the end).
"""

from __future__ import annotations

import abc
from typing import Any, Literal, override

from . import errors as errors_
from . import json_repair as json_repair_
from . import llm as llm_
from . import output_strategy as output_strategy_
from . import schema as schema_


class Output(abc.ABC):
    type: Literal["text", "object"]

    @abc.abstractmethod
    def response_format(self, model: llm_.LanguageModel) -> llm_.ResponseFormat: ...

    @abc.abstractmethod
    def inject_into_system_prompt(
        self, system: str | None, model: llm_.LanguageModel
    ) -> str | None: ...

    @abc.abstractmethod
    def parse_partial(self, text: str) -> tuple[Any] | None:
        """Return ``(partial,)`` or ``None`` when nothing can be parsed yet."""

    @abc.abstractmethod
    def parse_output(
        self, text: str, context: output_strategy_.FinalResultContext
    ) -> Any: ...


class TextOutput(Output):
    type: Literal["text", "object"] = "text"

    @override
    def response_format(self, model: llm_.LanguageModel) -> llm_.ResponseFormat:
        return llm_.ResponseFormat(type="text")

    @override
    def inject_into_system_prompt(
        self, system: str | None, model: llm_.LanguageModel
    ) -> str | None:
        return system

    @override
    def parse_partial(self, text: str) -> tuple[Any] | None:
        return (text,)

    @override
    def parse_output(
        self, text: str, context: output_strategy_.FinalResultContext
    ) -> Any:
        return text


class ObjectOutput(Output):
    type: Literal["text", "object"] = "object"

    def __init__(self, schema: Any) -> None:
        self.schema = schema_.as_schema(schema)

    @override
    def response_format(self, model: llm_.LanguageModel) -> llm_.ResponseFormat:
        return llm_.ResponseFormat(
            type="json",
            schema=self.schema.json_schema if model.supports_structured_outputs else None,
        )

    @override
    def inject_into_system_prompt(
        self, system: str | None, model: llm_.LanguageModel
    ) -> str | None:
        if model.supports_structured_outputs:
            return system
        return output_strategy_.inject_json_instruction(system, self.schema.json_schema)

    @override
    def parse_partial(self, text: str) -> tuple[Any] | None:
        result = json_repair_.parse_partial_json(text)
        if result.state in ("failed-parse", "undefined-input"):
            return None
        return (result.value,)

    @override
    def parse_output(
        self, text: str, context: output_strategy_.FinalResultContext
    ) -> Any:
        parsed = json_repair_.safe_parse_json(text)
        if not parsed.success:
            raise no_object_generated("could not parse the response", parsed.error, context)
        validated = schema_.safe_validate_types(parsed.value, self.schema)
        if not validated.success:
            raise no_object_generated("response did not match schema", validated.error, context)
        return validated.value


def no_object_generated(
    reason: str,
    cause: errors_.AISDKError | None,
    context: output_strategy_.FinalResultContext,
) -> errors_.NoObjectGeneratedError:
    return errors_.NoObjectGeneratedError(
        f"No object generated: {reason}.",
        cause=cause,
        text=context.text,
        response=context.response,
        usage=context.usage,
        finish_reason=context.finish_reason,
    )


def text_output() -> TextOutput:
    return TextOutput()


def object_output(schema: Any) -> ObjectOutput:
    return ObjectOutput(schema)

