"""Output strategies: object, array, enum and no-schema validation."""

import json

import pydantic
import pytest

import ai_sdk_core as ai
from ai_sdk_core.core import output_strategy

from ..conftest import Item, agen, collect

_CONTEXT = output_strategy.FinalResultContext(text="")


def _partial(strategy, value, *, latest=None, first=False, final=False):
    return strategy.validate_partial_result(
        value=value,
        text_delta="",
        latest_object=latest,
        is_first_delta=first,
        is_final_delta=final,
    )


def _elements(*contents: str) -> dict:
    return {"elements": [{"content": c} for c in contents]}


# -- object ----------------------------------------------------------------


def test_object_partials_pass_through_unvalidated() -> None:
    strategy = output_strategy.get_output_strategy("object", Item)
    result = strategy.validate_partial_result(
        value={"cont": 1},
        text_delta="x",
        latest_object=None,
        is_first_delta=True,
        is_final_delta=False,
    )
    assert result.success
    assert result.value == output_strategy.PartialResult({"cont": 1}, "x")


def test_object_final_validates_against_schema() -> None:
    strategy = output_strategy.get_output_strategy("object", Item)
    assert strategy.validate_final_result({"content": "x"}, _CONTEXT).value == Item(content="x")
    failed = strategy.validate_final_result({"content": 1}, _CONTEXT)
    assert not failed.success
    assert isinstance(failed.error, ai.TypeValidationError)


def test_object_element_stream_unsupported() -> None:
    strategy = output_strategy.get_output_strategy("object", Item)
    with pytest.raises(ai.UnsupportedFunctionalityError):
        strategy.create_element_stream(agen([]))


# -- array -----------------------------------------------------------------


def test_array_json_schema_wraps_items() -> None:
    strategy = output_strategy.get_output_strategy("array", Item)
    schema = strategy.json_schema
    assert schema["required"] == ["elements"]
    assert schema["properties"]["elements"]["type"] == "array"
    assert schema["properties"]["elements"]["items"]["properties"]["content"]["type"] == "string"
    assert schema["additionalProperties"] is False


def test_array_json_schema_hoists_defs() -> None:
    class Outer(pydantic.BaseModel):
        item: Item

    schema = output_strategy.get_output_strategy("array", Outer).json_schema
    assert "Item" in schema["$defs"]
    assert "$defs" not in schema["properties"]["elements"]["items"]


def test_array_partial_deltas_form_the_json_array() -> None:
    strategy = output_strategy.get_output_strategy("array", Item)

    first = _partial(strategy, _elements("a", "b"), first=True)
    assert [e.content for e in first.value.partial] == ["a"]
    assert first.value.text_delta == '[{"content":"a"}'

    second = _partial(strategy, _elements("a", "b", "c"), latest=first.value.partial)
    assert [e.content for e in second.value.partial] == ["a", "b"]
    assert second.value.text_delta == ',{"content":"b"}'

    final = _partial(strategy, _elements("a", "b", "c"), latest=second.value.partial, final=True)
    assert [e.content for e in final.value.partial] == ["a", "b", "c"]
    assert final.value.text_delta == ',{"content":"c"}]'

    text = first.value.text_delta + second.value.text_delta + final.value.text_delta
    assert json.loads(text) == [{"content": c} for c in "abc"]


def test_array_partial_never_shrinks() -> None:
    strategy = output_strategy.get_output_strategy("array", Item)
    published = [Item(content="a"), Item(content="b")]
    result = _partial(strategy, _elements("a"), latest=published)
    assert result.value.partial == published
    assert result.value.text_delta == ""


def test_array_partial_first_delta_without_elements() -> None:
    strategy = output_strategy.get_output_strategy("array", Item)
    result = _partial(strategy, {"elements": []}, first=True)
    assert result.value == output_strategy.PartialResult([], "[")


def test_array_partial_invalid_element_fails() -> None:
    strategy = output_strategy.get_output_strategy("array", Item)
    result = _partial(strategy, {"elements": [{"content": 1}, {}]})
    assert not result.success
    assert isinstance(result.error, ai.TypeValidationError)


@pytest.mark.parametrize("value", [None, [], {"elements": "nope"}])
def test_array_requires_elements_array(value) -> None:
    strategy = output_strategy.get_output_strategy("array", Item)
    assert not _partial(strategy, value).success
    assert not strategy.validate_final_result(value, _CONTEXT).success


def test_array_final_validates_every_element() -> None:
    strategy = output_strategy.get_output_strategy("array", Item)
    result = strategy.validate_final_result(_elements("a", "b"), _CONTEXT)
    assert result.value == [Item(content="a"), Item(content="b")]
    assert not strategy.validate_final_result(
        {"elements": [{"content": "a"}, {"bad": 1}]}, _CONTEXT
    ).success


@pytest.mark.asyncio
async def test_array_element_stream_emits_each_element_once() -> None:
    strategy = output_strategy.get_output_strategy("array", Item)
    chunks = [
        ai.ObjectChunk(object=[]),
        ai.TextDeltaChunk(text_delta="["),
        ai.ObjectChunk(object=["a"]),
        ai.ObjectChunk(object=["a", "b", "c"]),
        ai.FinishChunk(finish_reason="stop"),
    ]
    assert await collect(strategy.create_element_stream(agen(chunks))) == ["a", "b", "c"]


# -- enum ------------------------------------------------------------------


def test_enum_json_schema() -> None:
    strategy = output_strategy.get_output_strategy("enum", enum_values=["sunny", "rainy"])
    assert strategy.json_schema["properties"]["result"] == {
        "type": "string",
        "enum": ["sunny", "rainy"],
    }


def test_enum_final_result() -> None:
    strategy = output_strategy.get_output_strategy("enum", enum_values=["sunny", "rainy"])
    assert strategy.validate_final_result({"result": "sunny"}, _CONTEXT).value == "sunny"

    outside = strategy.validate_final_result({"result": "foggy"}, _CONTEXT)
    assert "value must be a string in the enum" in outside.error.message

    not_object = strategy.validate_final_result("sunny", _CONTEXT)
    assert 'string in the "result" property' in not_object.error.message


def test_enum_partials_and_elements_unsupported() -> None:
    strategy = output_strategy.get_output_strategy("enum", enum_values=["a"])
    with pytest.raises(ai.UnsupportedFunctionalityError):
        _partial(strategy, {"result": "a"})
    with pytest.raises(ai.UnsupportedFunctionalityError):
        strategy.create_element_stream(agen([]))


# -- no-schema -------------------------------------------------------------


def test_no_schema_accepts_any_value() -> None:
    strategy = output_strategy.get_output_strategy("no-schema")
    assert strategy.json_schema is None
    assert strategy.validate_final_result([1, "two"], _CONTEXT).value == [1, "two"]


def test_no_schema_missing_value_fails() -> None:
    strategy = output_strategy.get_output_strategy("no-schema")
    context = output_strategy.FinalResultContext(text="", finish_reason="stop")
    result = strategy.validate_final_result(None, context)
    assert isinstance(result.error, ai.NoObjectGeneratedError)
    assert result.error.finish_reason == "stop"


# -- Input validation ------------------------------------------------------


@pytest.mark.parametrize(
    ("kwargs", "argument"),
    [
        ({"output": "banana"}, "output"),
        ({"output": "object"}, "schema"),
        ({"output": "array"}, "schema"),
        ({"output": "no-schema", "schema": Item}, "schema"),
        ({"output": "no-schema", "schema_name": "n"}, "schema_name"),
        ({"output": "enum", "enum_values": ["a"], "schema_description": "d"}, "schema_description"),
        ({"output": "enum"}, "enum_values"),
        ({"output": "enum", "enum_values": ["a", 1]}, "enum_values"),
        ({"output": "object", "schema": Item, "enum_values": ["a"]}, "enum_values"),
    ],
)
def test_validate_object_generation_input(kwargs, argument) -> None:
    with pytest.raises(ai.InvalidArgumentError) as exc_info:
        output_strategy.validate_object_generation_input(**kwargs)
    assert exc_info.value.argument == argument


# -- JSON instructions -----------------------------------------------------


def test_inject_json_instruction_with_schema() -> None:
    assert output_strategy.inject_json_instruction("Be nice.", {"type": "object"}) == (
        "Be nice.\n\n"
        "JSON schema:\n"
        '{"type": "object"}\n'
        "You MUST answer with a JSON object that matches the JSON schema above."
    )


def test_inject_json_instruction_without_schema() -> None:
    assert output_strategy.inject_json_instruction() == "You MUST answer with JSON."
