"""Tool call parsing, repair, execution and the streaming tool transform."""

import pytest

import ai_sdk_core as ai
from ai_sdk_core.core import tool_calls

from ..conftest import agen, collect


def _call(args: str = '{"value": "v"}', tool_name: str = "tool1") -> ai.ToolCallChunk:
    return ai.ToolCallChunk(tool_call_id="call-1", tool_name=tool_name, args=args)


def _echo_tool() -> ai.Tool:
    @ai.tool
    async def tool1(value: str) -> str:
        return f"{value}-result"

    return tool1


def _failing_tool() -> ai.Tool:
    @ai.tool
    async def tool1(value: str) -> str:
        raise RuntimeError("tool exploded")

    return tool1


# -- parse_tool_call -------------------------------------------------------


@pytest.mark.asyncio
async def test_parse_validates_args() -> None:
    parsed = await tool_calls.parse_tool_call(_call(), {"tool1": _echo_tool()})
    assert parsed.tool_call_id == "call-1"
    assert parsed.args.value == "v"


@pytest.mark.asyncio
async def test_parse_blank_args_validated_as_empty_object() -> None:
    tool = ai.Tool(parameters={"type": "object", "properties": {}})
    parsed = await tool_calls.parse_tool_call(_call(args="  "), {"tool1": tool})
    assert parsed.args == {}


@pytest.mark.asyncio
async def test_parse_unknown_tool() -> None:
    with pytest.raises(ai.NoSuchToolError) as exc_info:
        await tool_calls.parse_tool_call(_call(tool_name="nope"), {"tool1": _echo_tool()})
    assert exc_info.value.tool_name == "nope"
    assert exc_info.value.available_tools == ["tool1"]


@pytest.mark.asyncio
async def test_parse_without_tools() -> None:
    with pytest.raises(ai.NoSuchToolError) as exc_info:
        await tool_calls.parse_tool_call(_call(), None)
    assert exc_info.value.available_tools is None
    assert "No tools are available" in exc_info.value.message


@pytest.mark.parametrize("args", ["{not json", '{"value": 1}', '{"other": "x"}'])
@pytest.mark.asyncio
async def test_parse_invalid_args(args: str) -> None:
    with pytest.raises(ai.InvalidToolArgumentsError) as exc_info:
        await tool_calls.parse_tool_call(_call(args=args), {"tool1": _echo_tool()})
    assert exc_info.value.tool_args == args


# -- Repair ----------------------------------------------------------------


@pytest.mark.asyncio
async def test_repair_fixes_tool_name() -> None:
    contexts = []

    async def repair(context: ai.ToolCallRepairContext):
        contexts.append(context)
        return ai.ToolCallChunk(
            tool_call_id=context.tool_call.tool_call_id,
            tool_name="tool1",
            args=context.tool_call.args,
        )

    parsed = await tool_calls.parse_tool_call(
        _call(tool_name="tool_one"),
        {"tool1": _echo_tool()},
        repair_tool_call=repair,
        system="sys",
    )
    assert parsed.tool_name == "tool1"
    [context] = contexts
    assert isinstance(context.error, ai.NoSuchToolError)
    assert context.system == "sys"
    assert context.parameter_schema("tool1")["required"] == ["value"]


@pytest.mark.asyncio
async def test_repair_returning_none_keeps_original_error() -> None:
    async def repair(context):
        return None

    with pytest.raises(ai.InvalidToolArgumentsError):
        await tool_calls.parse_tool_call(
            _call(args="{"), {"tool1": _echo_tool()}, repair_tool_call=repair
        )


@pytest.mark.asyncio
async def test_repair_failure_is_wrapped() -> None:
    async def repair(context):
        raise ValueError("repair broke")

    with pytest.raises(ai.ToolCallRepairError) as exc_info:
        await tool_calls.parse_tool_call(
            _call(args="{"), {"tool1": _echo_tool()}, repair_tool_call=repair
        )
    assert isinstance(exc_info.value.original_error, ai.InvalidToolArgumentsError)
    assert isinstance(exc_info.value.cause, ValueError)


# -- execute_tools ---------------------------------------------------------


@pytest.mark.asyncio
async def test_execute_tools_runs_server_side_tools_only() -> None:
    tools = {"tool1": _echo_tool(), "client": ai.Tool()}
    calls = [
        await tool_calls.parse_tool_call(_call(), tools),
        ai.ToolCallChunk(tool_call_id="call-2", tool_name="client", args={}),
    ]
    results = await tool_calls.execute_tools(calls, tools, messages=[])
    assert [(r.tool_call_id, r.result) for r in results] == [("call-1", "v-result")]


@pytest.mark.asyncio
async def test_execute_tools_wraps_failures() -> None:
    tools = {"tool1": _failing_tool()}
    call = await tool_calls.parse_tool_call(_call(), tools)
    with pytest.raises(ai.ToolExecutionError) as exc_info:
        await tool_calls.execute_tools([call], tools, messages=[])
    assert exc_info.value.tool_call_id == "call-1"
    assert "tool exploded" in exc_info.value.message


@pytest.mark.asyncio
async def test_execute_passes_options() -> None:
    seen = []

    @ai.tool
    async def tool1(value: str, options: ai.ToolExecutionOptions) -> str:
        seen.append(options)
        return value

    prompt = ai.make_messages(user="hi")
    call = await tool_calls.parse_tool_call(_call(), {"tool1": tool1})
    await tool_calls.execute_tools([call], {"tool1": tool1}, messages=prompt)
    assert seen[0].tool_call_id == "call-1"
    assert seen[0].messages == prompt


# -- run_tools_transformation ----------------------------------------------


def _types(chunks) -> list[str]:
    return [c.type for c in chunks]


@pytest.mark.asyncio
async def test_transform_emits_result_before_finish() -> None:
    source = [
        ai.TextDeltaChunk(text_delta="hi"),
        _call(),
        ai.FinishChunk(finish_reason="tool-calls"),
    ]
    out = await collect(
        tool_calls.run_tools_transformation(
            agen(source), {"tool1": _echo_tool()}, messages=[]
        )
    )
    assert _types(out) == ["text-delta", "tool-call", "tool-result", "finish"]
    assert out[1].args.value == "v"
    assert out[2].result == "v-result"


@pytest.mark.asyncio
async def test_transform_tool_failure_becomes_error_chunk() -> None:
    source = [_call(), ai.FinishChunk(finish_reason="tool-calls")]
    out = await collect(
        tool_calls.run_tools_transformation(
            agen(source), {"tool1": _failing_tool()}, messages=[]
        )
    )
    assert _types(out) == ["tool-call", "error", "finish"]
    assert isinstance(out[1].error, ai.ToolExecutionError)


@pytest.mark.asyncio
async def test_transform_unknown_tool_becomes_error_chunk() -> None:
    source = [_call(tool_name="nope"), ai.FinishChunk(finish_reason="tool-calls")]
    out = await collect(
        tool_calls.run_tools_transformation(
            agen(source), {"tool1": _echo_tool()}, messages=[]
        )
    )
    assert _types(out) == ["error", "finish"]
    assert isinstance(out[0].error, ai.NoSuchToolError)


@pytest.mark.asyncio
async def test_transform_client_side_tool_has_no_result() -> None:
    source = [_call(args="{}"), ai.FinishChunk(finish_reason="tool-calls")]
    out = await collect(
        tool_calls.run_tools_transformation(agen(source), {"tool1": ai.Tool()}, messages=[])
    )
    assert _types(out) == ["tool-call", "finish"]


def _deltas() -> list:
    return [
        ai.ToolCallDeltaChunk(tool_call_id="call-1", tool_name="tool1", args_text_delta='{"value"'),
        ai.ToolCallDeltaChunk(tool_call_id="call-1", tool_name="tool1", args_text_delta=': "v"}'),
        ai.FinishChunk(finish_reason="stop"),
    ]


@pytest.mark.asyncio
async def test_transform_tool_call_streaming_opt_in() -> None:
    out = await collect(
        tool_calls.run_tools_transformation(
            agen(_deltas()), {"tool1": _echo_tool()}, messages=[], tool_call_streaming=True
        )
    )
    assert _types(out) == [
        "tool-call-streaming-start",
        "tool-call-delta",
        "tool-call-delta",
        "finish",
    ]


@pytest.mark.asyncio
async def test_transform_drops_deltas_by_default() -> None:
    out = await collect(
        tool_calls.run_tools_transformation(agen(_deltas()), {"tool1": _echo_tool()}, messages=[])
    )
    assert _types(out) == ["finish"]
