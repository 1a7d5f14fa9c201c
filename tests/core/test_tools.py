"""@tool decorator: schema extraction, options injection, tool sets."""

from typing import Optional

import pytest

import ai_sdk_core as ai
from ai_sdk_core.core import tools


# -- Schema extraction from type hints ------------------------------------


def test_simple_types_produce_correct_schema() -> None:
    @ai.tool
    async def greet(name: str, count: int) -> str:
        """Say hello."""
        return f"Hello {name}" * count

    assert greet.name == "greet"
    assert greet.description == "Say hello."
    props = greet.param_schema["properties"]
    assert props["name"]["type"] == "string"
    assert props["count"]["type"] == "integer"
    assert set(greet.param_schema["required"]) == {"name", "count"}


def test_optional_param_not_required() -> None:
    @ai.tool
    async def search(query: str, limit: Optional[int] = None) -> str:
        """Search."""
        return query

    assert "query" in search.param_schema.get("required", [])
    assert "limit" not in search.param_schema.get("required", [])
    assert "limit" in search.param_schema["properties"]


def test_no_docstring_means_no_description() -> None:
    @ai.tool
    async def bare(x: int) -> int:
        return x

    assert bare.description is None


# -- Execution ------------------------------------------------------------


@pytest.mark.asyncio
async def test_execute_binds_validated_args() -> None:
    @ai.tool
    async def add(a: int, b: int = 1) -> int:
        return a + b

    args = add.parameters.validate({"a": 2}).value
    options = ai.ToolExecutionOptions(tool_call_id="call-1", messages=[])
    assert await add.execute(args, options) == 3


@pytest.mark.asyncio
async def test_options_param_excluded_from_schema_and_injected() -> None:
    seen = []

    @ai.tool
    async def lookup(key: str, options: ai.ToolExecutionOptions) -> str:
        """Look a key up."""
        seen.append(options)
        return key.upper()

    assert "options" not in lookup.param_schema["properties"]
    assert lookup.param_schema["required"] == ["key"]

    options = ai.ToolExecutionOptions(tool_call_id="call-1", messages=[])
    args = lookup.parameters.validate({"key": "k"}).value
    assert await lookup.execute(args, options) == "K"
    assert seen == [options]


def test_tool_without_parameters_has_empty_object_schema() -> None:
    t = ai.Tool(name="ping")
    assert t.param_schema["properties"] == {}
    assert t.execute is None


# -- Tool sets ------------------------------------------------------------


def test_normalize_tools_from_list() -> None:
    a, b = ai.Tool(name="a"), ai.Tool(name="b")
    assert tools.normalize_tools([a, b]) == {"a": a, "b": b}


def test_normalize_tools_mapping_keys_win() -> None:
    t = ai.Tool(name="internal")
    assert tools.normalize_tools({"public": t}) == {"public": t}


def test_normalize_tools_unnamed_in_list_raises() -> None:
    with pytest.raises(ai.InvalidArgumentError) as exc_info:
        tools.normalize_tools([ai.Tool()])
    assert exc_info.value.argument == "tools"


def test_to_definitions() -> None:
    t = ai.Tool(description="d", parameters={"type": "object", "properties": {}})
    [definition] = tools.to_definitions({"x": t})
    assert definition.name == "x"
    assert definition.description == "d"
    assert definition.parameters == {"type": "object", "properties": {}}
    assert tools.to_definitions(None) is None
    assert tools.to_definitions({}) is None
