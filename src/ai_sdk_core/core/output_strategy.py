"""How ``generate_object``/``stream_object`` shape, validate and stream
model output.

Four closed variants, selected by ``get_output_strategy``:

- ``object``: one value validated against a schema when complete.
- ``array``: ``{"elements": [...]}`` on the wire, surfaced as a list; every
  completed element is validated while streaming.
- ``enum``: ``{"result": "<value>"}`` on the wire, surfaced as the value.
- ``no-schema``: any JSON value, unvalidated.
"""

from __future__ import annotations

import abc
import dataclasses
import json
from collections.abc import AsyncIterable, AsyncIterator, Sequence
from typing import Any, Literal, cast, override

from . import chunks as chunks_
from . import errors as errors_
from . import schema as schema_

OutputType = Literal["object", "array", "enum", "no-schema"]

_OUTPUT_TYPES: tuple[OutputType, ...] = ("object", "array", "enum", "no-schema")


@dataclasses.dataclass(frozen=True)
class PartialResult:
    partial: Any
    text_delta: str


@dataclasses.dataclass(frozen=True)
class FinalResultContext:
    text: str
    response: chunks_.ResponseMetadata | None = None
    usage: chunks_.Usage | None = None
    finish_reason: chunks_.FinishReason | None = None


class OutputStrategy(abc.ABC):
    type: OutputType

    @property
    @abc.abstractmethod
    def json_schema(self) -> dict[str, Any] | None: ...

    @abc.abstractmethod
    def validate_partial_result(
        self,
        *,
        value: Any,
        text_delta: str,
        latest_object: Any,
        is_first_delta: bool,
        is_final_delta: bool,
    ) -> schema_.ValidationResult[PartialResult]: ...

    @abc.abstractmethod
    def validate_final_result(
        self, value: Any, context: FinalResultContext
    ) -> schema_.ValidationResult[Any]: ...

    @abc.abstractmethod
    def create_element_stream(
        self, stream: AsyncIterable[chunks_.ObjectStreamChunk]
    ) -> AsyncIterator[Any]: ...


def _unsupported(functionality: str) -> errors_.UnsupportedFunctionalityError:
    return errors_.UnsupportedFunctionalityError(functionality=functionality)


# ── no-schema ─────────────────────────────────────────────────────


class NoSchemaOutputStrategy(OutputStrategy):
    type: OutputType = "no-schema"

    @property
    @override
    def json_schema(self) -> None:
        return None

    @override
    def validate_partial_result(
        self,
        *,
        value: Any,
        text_delta: str,
        latest_object: Any,
        is_first_delta: bool,
        is_final_delta: bool,
    ) -> schema_.ValidationResult[PartialResult]:
        return schema_.ValidationResult.ok(PartialResult(value, text_delta))

    @override
    def validate_final_result(
        self, value: Any, context: FinalResultContext
    ) -> schema_.ValidationResult[Any]:
        if value is None:
            return schema_.ValidationResult.fail(
                errors_.NoObjectGeneratedError(
                    "No object generated: response did not match schema.",
                    text=context.text,
                    response=context.response,
                    usage=context.usage,
                    finish_reason=context.finish_reason,
                )
            )
        return schema_.ValidationResult.ok(value)

    @override
    def create_element_stream(
        self, stream: AsyncIterable[chunks_.ObjectStreamChunk]
    ) -> AsyncIterator[Any]:
        raise _unsupported("element streams in no-schema mode")


# ── object ────────────────────────────────────────────────────────


class ObjectOutputStrategy(OutputStrategy):
    type: OutputType = "object"

    def __init__(self, schema: schema_.Schema[Any]) -> None:
        self.schema = schema

    @property
    @override
    def json_schema(self) -> dict[str, Any]:
        return self.schema.json_schema

    @override
    def validate_partial_result(
        self,
        *,
        value: Any,
        text_delta: str,
        latest_object: Any,
        is_first_delta: bool,
        is_final_delta: bool,
    ) -> schema_.ValidationResult[PartialResult]:
        # partial objects are not validated
        return schema_.ValidationResult.ok(PartialResult(value, text_delta))

    @override
    def validate_final_result(
        self, value: Any, context: FinalResultContext
    ) -> schema_.ValidationResult[Any]:
        return schema_.safe_validate_types(value, self.schema)

    @override
    def create_element_stream(
        self, stream: AsyncIterable[chunks_.ObjectStreamChunk]
    ) -> AsyncIterator[Any]:
        raise _unsupported("element streams in object mode")


# ── array ─────────────────────────────────────────────────────────


def _elements_error(value: Any) -> errors_.TypeValidationError:
    return errors_.TypeValidationError(
        value=value,
        cause="value must be an object that contains an array of elements",
    )


def _dump_element(value: Any) -> str:
    return json.dumps(schema_.to_jsonable(value), separators=(",", ":"))


class ArrayOutputStrategy(OutputStrategy):
    type: OutputType = "array"

    def __init__(self, schema: schema_.Schema[Any]) -> None:
        self.schema = schema

    @property
    @override
    def json_schema(self) -> dict[str, Any]:
        items = {k: v for k, v in self.schema.json_schema.items() if k != "$schema"}
        defs = items.pop("$defs", None)
        result: dict[str, Any] = {
            "type": "object",
            "properties": {"elements": {"type": "array", "items": items}},
            "required": ["elements"],
            "additionalProperties": False,
        }
        # item refs point at "#/$defs/...", so the defs move to the root
        if defs is not None:
            result["$defs"] = defs
        return result

    @override
    def validate_partial_result(
        self,
        *,
        value: Any,
        text_delta: str,
        latest_object: Any,
        is_first_delta: bool,
        is_final_delta: bool,
    ) -> schema_.ValidationResult[PartialResult]:
        if not isinstance(value, dict) or not isinstance(value.get("elements"), list):
            return schema_.ValidationResult.fail(_elements_error(value))

        elements: list[Any] = value["elements"]
        result: list[Any] = []
        for i, element in enumerate(elements):
            # the last element may still be incomplete
            if i == len(elements) - 1 and not is_final_delta:
                continue
            validated = schema_.safe_validate_types(element, self.schema)
            if not validated.success:
                return schema_.ValidationResult.fail(
                    cast(errors_.AISDKError, validated.error)
                )
            result.append(validated.value)

        published: Sequence[Any] = latest_object or []
        if len(result) < len(published):
            result = list(published)
        new_elements = result[len(published) :]

        delta = ""
        if is_first_delta:
            delta += "["
        if published and new_elements:
            delta += ","
        delta += ",".join(_dump_element(e) for e in new_elements)
        if is_final_delta:
            delta += "]"

        return schema_.ValidationResult.ok(PartialResult(result, delta))

    @override
    def validate_final_result(
        self, value: Any, context: FinalResultContext
    ) -> schema_.ValidationResult[Any]:
        if not isinstance(value, dict) or not isinstance(value.get("elements"), list):
            return schema_.ValidationResult.fail(_elements_error(value))

        result: list[Any] = []
        for element in value["elements"]:
            validated = schema_.safe_validate_types(element, self.schema)
            if not validated.success:
                return validated
            result.append(validated.value)
        return schema_.ValidationResult.ok(result)

    @override
    async def create_element_stream(
        self, stream: AsyncIterable[chunks_.ObjectStreamChunk]
    ) -> AsyncIterator[Any]:
        published = 0
        async for chunk in stream:
            match chunk:
                case chunks_.ObjectChunk(object=elements):
                    while published < len(elements):
                        yield elements[published]
                        published += 1
                case (
                    chunks_.TextDeltaChunk()
                    | chunks_.FinishChunk()
                    | chunks_.ErrorChunk()
                ):
                    pass
                case _:
                    raise ValueError(f"Unsupported chunk type: {chunk.type}")


# ── enum ──────────────────────────────────────────────────────────


class EnumOutputStrategy(OutputStrategy):
    type: OutputType = "enum"

    def __init__(self, values: Sequence[str]) -> None:
        self.values = list(values)

    @property
    @override
    def json_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"result": {"type": "string", "enum": self.values}},
            "required": ["result"],
            "additionalProperties": False,
        }

    @override
    def validate_partial_result(
        self,
        *,
        value: Any,
        text_delta: str,
        latest_object: Any,
        is_first_delta: bool,
        is_final_delta: bool,
    ) -> schema_.ValidationResult[PartialResult]:
        raise _unsupported("partial results in enum mode")

    @override
    def validate_final_result(
        self, value: Any, context: FinalResultContext
    ) -> schema_.ValidationResult[Any]:
        if not isinstance(value, dict) or not isinstance(value.get("result"), str):
            return schema_.ValidationResult.fail(
                errors_.TypeValidationError(
                    value=value,
                    cause='value must be an object that contains a string in the "result" property.',
                )
            )
        result = value["result"]
        if result not in self.values:
            return schema_.ValidationResult.fail(
                errors_.TypeValidationError(
                    value=value, cause="value must be a string in the enum"
                )
            )
        return schema_.ValidationResult.ok(result)

    @override
    def create_element_stream(
        self, stream: AsyncIterable[chunks_.ObjectStreamChunk]
    ) -> AsyncIterator[Any]:
        raise _unsupported("element streams in enum mode")


# ── Selection ─────────────────────────────────────────────────────


def _invalid(argument: str, message: str, value: Any = None) -> errors_.InvalidArgumentError:
    return errors_.InvalidArgumentError(argument=argument, message=message, value=value)


def validate_object_generation_input(
    *,
    output: str,
    schema: Any = None,
    schema_name: str | None = None,
    schema_description: str | None = None,
    enum_values: Sequence[str] | None = None,
) -> None:
    if output not in _OUTPUT_TYPES:
        raise _invalid("output", "Invalid output type.", output)

    if output in ("no-schema", "enum"):
        if schema is not None:
            raise _invalid("schema", f"Schema is not supported for {output} output.", schema)
        if schema_description is not None:
            raise _invalid(
                "schema_description",
                f"Schema description is not supported for {output} output.",
                schema_description,
            )
        if schema_name is not None:
            raise _invalid(
                "schema_name",
                f"Schema name is not supported for {output} output.",
                schema_name,
            )

    if output in ("object", "array") and schema is None:
        raise _invalid("schema", f"Schema is required for {output} output.")

    if output == "enum":
        if enum_values is None:
            raise _invalid("enum_values", "Enum values are required for enum output.")
        for value in enum_values:
            if not isinstance(value, str):
                raise _invalid("enum_values", "Enum values must be strings.", value)
    elif enum_values is not None:
        raise _invalid(
            "enum_values",
            f"Enum values are not supported for {output} output.",
            enum_values,
        )


def get_output_strategy(
    output: OutputType,
    schema: Any = None,
    enum_values: Sequence[str] | None = None,
) -> OutputStrategy:
    validate_object_generation_input(
        output=output, schema=schema, enum_values=enum_values
    )
    match output:
        case "object":
            return ObjectOutputStrategy(schema_.as_schema(schema))
        case "array":
            return ArrayOutputStrategy(schema_.as_schema(schema))
        case "enum":
            return EnumOutputStrategy(cast(Sequence[str], enum_values))
        case "no-schema":
            return NoSchemaOutputStrategy()


# ── JSON prompting ────────────────────────────────────────────────

_SCHEMA_PREFIX = "JSON schema:"
_SCHEMA_SUFFIX = "You MUST answer with a JSON object that matches the JSON schema above."
_GENERIC_SUFFIX = "You MUST answer with JSON."


def inject_json_instruction(
    prompt: str | None = None, schema: dict[str, Any] | None = None
) -> str:
    """Extend a system prompt with instructions to answer in JSON."""
    lines: list[str] = []
    if prompt:
        lines += [prompt, ""]
    if schema is not None:
        lines += [_SCHEMA_PREFIX, json.dumps(schema), _SCHEMA_SUFFIX]
    else:
        lines.append(_GENERIC_SUFFIX)
    return "\n".join(lines)
