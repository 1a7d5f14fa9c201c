from __future__ import annotations

import dataclasses
from collections.abc import Callable
from typing import Any, cast

import pydantic
import pydantic_core

from . import errors as errors_


@dataclasses.dataclass(frozen=True)
class ValidationResult[T]:
    """Outcome of a validation: ``value`` on success, ``error`` otherwise."""

    success: bool
    value: T | None = None
    error: errors_.AISDKError | None = None

    @classmethod
    def ok(cls, value: T) -> ValidationResult[T]:
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: errors_.AISDKError) -> ValidationResult[T]:
        return cls(success=False, error=error)


class Schema[T]:
    """JSON Schema sent to the model plus an optional validator for its output."""

    def __init__(
        self,
        json_schema: dict[str, Any],
        validate: Callable[[Any], ValidationResult[T]] | None = None,
    ) -> None:
        self.json_schema = json_schema
        self._validate = validate

    def validate(self, value: Any) -> ValidationResult[T]:
        if self._validate is None:
            return ValidationResult.ok(value)
        return self._validate(value)


def _pydantic_schema(tp: Any) -> Schema[Any]:
    adapter: pydantic.TypeAdapter[Any] = pydantic.TypeAdapter(tp)

    def validate(value: Any) -> ValidationResult[Any]:
        try:
            return ValidationResult.ok(adapter.validate_python(value))
        except pydantic.ValidationError as exc:
            return ValidationResult.fail(
                errors_.TypeValidationError(value=value, cause=exc)
            )

    return Schema(adapter.json_schema(), validate)


def as_schema(schema: Any) -> Schema[Any]:
    """Normalize a schema-like value.

    Accepts a ``Schema``, a pydantic model (or any type pydantic can build a
    ``TypeAdapter`` for), a raw JSON Schema dict (no validation), or
    ``None`` for an empty object schema.
    """
    if isinstance(schema, Schema):
        return schema
    if schema is None:
        return Schema({"properties": {}, "additionalProperties": False})
    if isinstance(schema, dict):
        return Schema(schema)
    return _pydantic_schema(schema)


def safe_validate_types(value: Any, schema: Any) -> ValidationResult[Any]:
    try:
        result = as_schema(schema).validate(value)
    except Exception as exc:
        return ValidationResult.fail(errors_.TypeValidationError.wrap(value=value, cause=exc))
    if result.success:
        return result
    return ValidationResult.fail(
        errors_.TypeValidationError.wrap(
            value=value, cause=cast(errors_.AISDKError, result.error)
        )
    )


def to_jsonable(value: Any) -> Any:
    """Convert validated values (pydantic models, dataclasses, ...) to JSON data."""
    return pydantic_core.to_jsonable_python(value)
