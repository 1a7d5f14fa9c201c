"""generate_text: single and multi-step generation, tools, continuation, output."""

import pytest

import ai_sdk_core as ai

from ..conftest import Item, MockLanguageModel, text_result


def _ids():
    counter = iter(range(1000))
    return lambda: f"id-{next(counter)}"


@ai.tool
async def tool1(value: str) -> str:
    """Echo a value."""
    return f"{value}-result"


def _tool_call(args: str = '{"value": "value"}', tool_name: str = "tool1") -> ai.ToolCallChunk:
    return ai.ToolCallChunk(tool_call_id="call-1", tool_name=tool_name, args=args)


# -- Single step ----------------------------------------------------------


@pytest.mark.asyncio
async def test_generates_text() -> None:
    model = MockLanguageModel(generate=[text_result("Hello, world!")])
    result = await ai.generate_text(model, prompt="prompt", system="sys")

    assert result.text == "Hello, world!"
    assert result.finish_reason == "stop"
    assert result.usage == ai.Usage(prompt_tokens=3, completion_tokens=10, total_tokens=13)
    assert len(result.steps) == 1
    assert result.response.model_id == "mock-model-id"
    assert [m.role for m in result.response.messages] == ["assistant"]

    [options] = model.calls
    assert [m.role for m in options.prompt] == ["system", "user"]
    assert options.prompt[1].text == "prompt"
    assert options.tools is None


@pytest.mark.asyncio
async def test_call_settings_are_forwarded() -> None:
    model = MockLanguageModel(generate=[text_result("x")])
    await ai.generate_text(model, prompt="p", temperature=0.5, max_tokens=100, seed=7)
    [options] = model.calls
    assert options.temperature == 0.5
    assert options.max_tokens == 100
    assert options.seed == 7


@pytest.mark.parametrize(
    ("settings", "argument"),
    [({"max_tokens": 0}, "max_tokens"), ({"temperature": "hot"}, "temperature"), ({"bogus": 1}, "bogus")],
)
@pytest.mark.asyncio
async def test_invalid_settings_raise(settings, argument) -> None:
    model = MockLanguageModel(generate=[text_result("x")])
    with pytest.raises(ai.InvalidArgumentError) as exc_info:
        await ai.generate_text(model, prompt="p", **settings)
    assert exc_info.value.argument == argument
    assert model.calls == []


@pytest.mark.asyncio
async def test_max_steps_must_be_positive() -> None:
    with pytest.raises(ai.InvalidArgumentError):
        await ai.generate_text(MockLanguageModel(), prompt="p", max_steps=0)


@pytest.mark.asyncio
async def test_non_retryable_model_error_propagates() -> None:
    error = ai.APICallError("bad request", status_code=400)
    model = MockLanguageModel(generate=[error])
    with pytest.raises(ai.APICallError) as exc_info:
        await ai.generate_text(model, prompt="p")
    assert exc_info.value is error


# -- Tools ----------------------------------------------------------------


@pytest.mark.asyncio
async def test_tool_calls_are_executed() -> None:
    model = MockLanguageModel(
        generate=[text_result(None, finish_reason="tool-calls", tool_calls=[_tool_call()])]
    )
    result = await ai.generate_text(model, prompt="p", tools=[tool1])

    assert result.tool_calls[0].args.value == "value"
    assert result.tool_results[0].result == "value-result"
    assert len(result.steps) == 1
    [options] = model.calls
    assert [t.name for t in options.tools] == ["tool1"]
    assert options.tools[0].description == "Echo a value."


@pytest.mark.asyncio
async def test_multi_step_feeds_tool_results_back() -> None:
    model = MockLanguageModel(
        generate=[
            text_result(None, finish_reason="tool-calls", tool_calls=[_tool_call()]),
            text_result("Hello, world!"),
        ]
    )
    finished = []
    result = await ai.generate_text(
        model,
        prompt="p",
        tools={"tool1": tool1},
        max_steps=3,
        on_step_finish=finished.append,
        id_generator=_ids(),
    )

    assert result.text == "Hello, world!"
    assert [s.step_type for s in result.steps] == ["initial", "tool-result"]
    assert result.steps[0].tool_results[0].result == "value-result"
    assert finished == list(result.steps)
    assert result.usage.total_tokens == 26

    second = model.calls[1].prompt
    assert [m.role for m in second] == ["user", "assistant", "tool"]
    assert second[1].tool_calls[0].args == {"value": "value"}
    assert second[2].tool_results[0].result == "value-result"
    assert [m.role for m in result.response.messages] == ["assistant", "tool", "assistant"]


@pytest.mark.asyncio
async def test_client_side_tool_stops_the_loop() -> None:
    model = MockLanguageModel(
        generate=[text_result(None, finish_reason="tool-calls", tool_calls=[_tool_call("{}")])]
    )
    result = await ai.generate_text(model, prompt="p", tools={"tool1": ai.Tool()}, max_steps=5)
    assert len(result.steps) == 1
    assert result.tool_results == ()


@pytest.mark.asyncio
async def test_tool_failure_raises() -> None:
    @ai.tool
    async def broken(value: str) -> str:
        raise RuntimeError("boom")

    model = MockLanguageModel(
        generate=[text_result(None, tool_calls=[_tool_call(tool_name="broken")])]
    )
    with pytest.raises(ai.ToolExecutionError):
        await ai.generate_text(model, prompt="p", tools=[broken])


@pytest.mark.asyncio
async def test_unknown_tool_raises_without_repair() -> None:
    model = MockLanguageModel(generate=[text_result(None, tool_calls=[_tool_call(tool_name="nope")])])
    with pytest.raises(ai.NoSuchToolError):
        await ai.generate_text(model, prompt="p", tools=[tool1])


@pytest.mark.asyncio
async def test_repair_tool_call() -> None:
    async def repair(context: ai.ToolCallRepairContext):
        return ai.ToolCallChunk(
            tool_call_id=context.tool_call.tool_call_id,
            tool_name=context.tool_call.tool_name,
            args='{"value": "repaired"}',
        )

    model = MockLanguageModel(generate=[text_result(None, tool_calls=[_tool_call("{")])])
    result = await ai.generate_text(model, prompt="p", tools=[tool1], repair_tool_call=repair)
    assert result.tool_results[0].result == "repaired-result"


# -- Continuation ---------------------------------------------------------


@pytest.mark.asyncio
async def test_continue_steps_join_text() -> None:
    model = MockLanguageModel(
        generate=[
            text_result("The quick brown fox", finish_reason="length"),
            text_result("fox jumps over the dog."),
        ]
    )
    result = await ai.generate_text(
        model, prompt="p", max_steps=5, continue_steps=True, id_generator=_ids()
    )

    assert result.text == "The quick brown fox jumps over the dog."
    assert [s.text for s in result.steps] == ["The quick brown ", "fox jumps over the dog."]
    assert [s.is_continued for s in result.steps] == [True, False]
    assert [s.step_type for s in result.steps] == ["initial", "continue"]
    assert model.calls[1].prompt[-1].text == "The quick brown "
    [message] = result.response.messages
    assert message.text == "The quick brown fox jumps over the dog."


# -- Structured output ----------------------------------------------------


@pytest.mark.asyncio
async def test_object_output() -> None:
    model = MockLanguageModel(generate=[text_result('{"content": "Hello"}')])
    result = await ai.generate_text(model, prompt="p", output=ai.object_output(Item))

    assert result.output == Item(content="Hello")
    [options] = model.calls
    assert options.response_format.type == "json"
    assert options.response_format.schema is None
    assert "JSON schema:" in options.prompt[0].text


@pytest.mark.asyncio
async def test_object_output_with_structured_outputs_model() -> None:
    model = MockLanguageModel(
        generate=[text_result('{"content": "Hello"}')], supports_structured_outputs=True
    )
    await ai.generate_text(model, prompt="p", output=ai.object_output(Item))
    [options] = model.calls
    assert options.response_format.schema["properties"]["content"]["type"] == "string"
    assert [m.role for m in options.prompt] == ["user"]


@pytest.mark.asyncio
async def test_object_output_mismatch() -> None:
    model = MockLanguageModel(generate=[text_result('{"content": 1}')])
    result = await ai.generate_text(model, prompt="p", output=ai.object_output(Item))
    with pytest.raises(ai.NoObjectGeneratedError) as exc_info:
        result.output
    assert exc_info.value.text == '{"content": 1}'
    assert isinstance(exc_info.value.cause, ai.TypeValidationError)


@pytest.mark.asyncio
async def test_output_without_spec_raises() -> None:
    model = MockLanguageModel(generate=[text_result("x")])
    result = await ai.generate_text(model, prompt="p")
    with pytest.raises(ai.NoOutputSpecifiedError):
        result.output


@pytest.mark.asyncio
async def test_text_output_returns_text() -> None:
    model = MockLanguageModel(generate=[text_result("plain")])
    result = await ai.generate_text(model, prompt="p", output=ai.text_output())
    assert result.output == "plain"
