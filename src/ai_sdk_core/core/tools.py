from __future__ import annotations

import asyncio
import dataclasses
import inspect
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, get_type_hints

import pydantic

from . import errors as errors_
from . import llm as llm_
from . import messages as messages_
from . import schema as schema_


@dataclasses.dataclass(frozen=True)
class ToolExecutionOptions:
    """Passed to ``execute`` alongside the validated arguments."""

    tool_call_id: str
    messages: list[messages_.Message]
    abort_signal: asyncio.Event | None = None


ExecuteFn = Callable[[Any, ToolExecutionOptions], Awaitable[Any]]


class Tool:
    """A tool the model can call.

    ``parameters`` is anything ``schema.as_schema`` accepts; the model's
    arguments are validated against it before ``execute`` runs. Tools
    without ``execute`` are client-side: the runtime reports the call and
    stops there.
    """

    def __init__(
        self,
        *,
        name: str | None = None,
        description: str | None = None,
        parameters: Any = None,
        execute: ExecuteFn | None = None,
    ) -> None:
        self.name = name
        self.description = description
        self.parameters = schema_.as_schema(parameters)
        self.execute = execute

    @property
    def param_schema(self) -> dict[str, Any]:
        return self.parameters.json_schema

    def __repr__(self) -> str:
        return f"Tool(name={self.name!r})"


ToolSet = Mapping[str, Tool]


def _find_options_param(fn: Callable[..., Any]) -> str | None:
    """Find a parameter typed as ToolExecutionOptions, return its name or None."""
    try:
        hints = get_type_hints(fn)
    except Exception:
        return None
    for name, hint in hints.items():
        if hint is ToolExecutionOptions:
            return name
    return None


def tool(fn: Callable[..., Awaitable[Any]]) -> Tool:
    """Decorator to define a tool from an async function.

    Parameters become the tool's argument schema; a parameter annotated
    ``ToolExecutionOptions`` is filled in by the runtime instead.
    """

    # 1. build the argument model by parsing the function
    sig = inspect.signature(fn)
    hints = get_type_hints(fn) if hasattr(fn, "__annotations__") else {}
    options_param = _find_options_param(fn)

    fields: dict[str, Any] = {}

    for param_name, param in sig.parameters.items():
        if param_name == options_param:
            continue
        param_type = hints.get(param_name, str)
        if param.default is inspect.Parameter.empty:
            fields[param_name] = (param_type, ...)
        else:
            fields[param_name] = (param_type, param.default)

    validator = pydantic.create_model(f"{fn.__name__}_Args", **fields)

    # 2. bind validated args back onto the function
    async def execute(args: pydantic.BaseModel, options: ToolExecutionOptions) -> Any:
        kwargs = {name: getattr(args, name) for name in fields}
        if options_param is not None:
            kwargs[options_param] = options
        return await fn(**kwargs)

    return Tool(
        name=fn.__name__,
        description=inspect.getdoc(fn) or None,
        parameters=validator,
        execute=execute,
    )


def normalize_tools(tools: Sequence[Tool] | ToolSet | None) -> dict[str, Tool] | None:
    """Key tools by name. Mapping keys take precedence over ``Tool.name``."""
    if tools is None:
        return None
    if isinstance(tools, Mapping):
        return dict(tools)
    result: dict[str, Tool] = {}
    for t in tools:
        if not t.name:
            raise errors_.InvalidArgumentError(
                argument="tools",
                message="tools passed as a list must have a name",
                value=t,
            )
        result[t.name] = t
    return result


def to_definitions(tools: ToolSet | None) -> list[llm_.ToolDefinition] | None:
    if not tools:
        return None
    return [
        llm_.ToolDefinition(
            name=name, description=t.description, parameters=t.param_schema
        )
        for name, t in tools.items()
    ]
