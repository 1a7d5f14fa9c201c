from __future__ import annotations

import json
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from . import chunks as chunks_


def get_error_message(error: object) -> str:
    if error is None:
        return "unknown error"
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    try:
        return json.dumps(error)
    except (TypeError, ValueError):
        return repr(error)


class AISDKError(Exception):
    """Base class for every error raised by the runtime."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


# ── Provider calls ────────────────────────────────────────────────

_RETRYABLE_STATUS_CODES = frozenset({408, 409, 429})


class APICallError(AISDKError):
    """A failed call against a model provider.

    ``is_retryable`` defaults to the status code classification used by the
    retry executor: request timeout, conflict, rate limit and server errors.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
        response_body: str | None = None,
        response_headers: dict[str, str] | None = None,
        is_retryable: bool | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.url = url
        self.status_code = status_code
        self.response_body = response_body
        self.response_headers = response_headers
        if is_retryable is None:
            is_retryable = status_code is not None and (
                status_code in _RETRYABLE_STATUS_CODES or status_code >= 500
            )
        self.is_retryable = is_retryable


RetryErrorReason = Literal["maxRetriesExceeded", "errorNotRetryable"]


class RetryError(AISDKError):
    def __init__(
        self,
        message: str,
        *,
        reason: RetryErrorReason,
        errors: Sequence[BaseException],
    ) -> None:
        super().__init__(message, cause=errors[-1] if errors else None)
        self.reason = reason
        self.errors = list(errors)

    @property
    def last_error(self) -> BaseException | None:
        return self.errors[-1] if self.errors else None


class AbortError(AISDKError):
    """The caller set the abort signal; never retried."""

    def __init__(self, message: str = "The operation was aborted.") -> None:
        super().__init__(message)


# ── Arguments and prompts ─────────────────────────────────────────


class InvalidArgumentError(AISDKError):
    def __init__(self, *, argument: str, message: str, value: Any = None) -> None:
        super().__init__(f"Invalid argument for parameter {argument}: {message}")
        self.argument = argument
        self.value = value


class InvalidPromptError(AISDKError):
    def __init__(self, message: str, *, prompt: Any = None) -> None:
        super().__init__(f"Invalid prompt: {message}")
        self.prompt = prompt


class UnsupportedFunctionalityError(AISDKError):
    def __init__(self, *, functionality: str) -> None:
        super().__init__(f"'{functionality}' functionality not supported.")
        self.functionality = functionality


# ── Parsing and validation ────────────────────────────────────────


class JSONParseError(AISDKError):
    def __init__(self, *, text: str, cause: BaseException | None = None) -> None:
        super().__init__(
            f"JSON parsing failed: Text: {text}.\n"
            f"Error message: {get_error_message(cause)}",
            cause=cause,
        )
        self.text = text


class TypeValidationError(AISDKError):
    def __init__(self, *, value: Any, cause: BaseException | str | None = None) -> None:
        super().__init__(
            f"Type validation failed: Value: {_dump(value)}.\n"
            f"Error message: {get_error_message(cause)}",
            cause=cause if isinstance(cause, BaseException) else None,
        )
        self.value = value

    @classmethod
    def wrap(cls, *, value: Any, cause: BaseException | str) -> TypeValidationError:
        """Return ``cause`` unchanged when it already describes this value."""
        if isinstance(cause, TypeValidationError) and cause.value == value:
            return cause
        return cls(value=value, cause=cause)


def _dump(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)


class NoObjectGeneratedError(AISDKError):
    """The model output could not be turned into a value matching the schema."""

    def __init__(
        self,
        message: str = "No object generated.",
        *,
        cause: BaseException | None = None,
        text: str | None = None,
        response: chunks_.ResponseMetadata | None = None,
        usage: chunks_.Usage | None = None,
        finish_reason: str | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.text = text
        self.response = response
        self.usage = usage
        self.finish_reason = finish_reason


class NoOutputSpecifiedError(AISDKError):
    def __init__(self) -> None:
        super().__init__("No output specified.")


# ── Tools ─────────────────────────────────────────────────────────


class NoSuchToolError(AISDKError):
    def __init__(
        self, *, tool_name: str, available_tools: Sequence[str] | None = None
    ) -> None:
        if available_tools is None:
            message = f"Model tried to call unavailable tool '{tool_name}'. No tools are available."
        else:
            message = (
                f"Model tried to call unavailable tool '{tool_name}'. "
                f"Available tools: {', '.join(available_tools)}."
            )
        super().__init__(message)
        self.tool_name = tool_name
        self.available_tools = list(available_tools) if available_tools else None


class InvalidToolArgumentsError(AISDKError):
    def __init__(
        self, *, tool_name: str, tool_args: str, cause: BaseException | None = None
    ) -> None:
        super().__init__(
            f"Invalid arguments for tool {tool_name}: {get_error_message(cause)}",
            cause=cause,
        )
        self.tool_name = tool_name
        self.tool_args = tool_args


class ToolExecutionError(AISDKError):
    def __init__(
        self,
        *,
        tool_call_id: str,
        tool_name: str,
        tool_args: Any,
        cause: BaseException,
    ) -> None:
        super().__init__(
            f"Error executing tool {tool_name}: {get_error_message(cause)}",
            cause=cause,
        )
        self.tool_call_id = tool_call_id
        self.tool_name = tool_name
        self.tool_args = tool_args


class ToolCallRepairError(AISDKError):
    def __init__(
        self, *, original_error: AISDKError, cause: BaseException
    ) -> None:
        super().__init__(
            f"Error repairing tool call: {get_error_message(cause)}", cause=cause
        )
        self.original_error = original_error
