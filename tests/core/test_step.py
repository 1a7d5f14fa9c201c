"""Step loop: next step selection, state folding, continuation text."""

import pytest

import ai_sdk_core as ai
from ai_sdk_core.core import step


def _ids(*values: str):
    it = iter(values)
    return lambda: next(it)


def _step(text: str, step_type: step.StepType = "initial", **kwargs) -> step.StepResult:
    return step.StepResult(
        step_type=step_type,
        text=text,
        finish_reason=kwargs.pop("finish_reason", "stop"),
        usage=ai.Usage.calculate(1, 2),
        response=step.StepResponse(id="resp", model_id="m"),
        **kwargs,
    )


_CALL = ai.ToolCallChunk(tool_call_id="c1", tool_name="t", args={})
_RESULT = ai.ToolResultChunk(tool_call_id="c1", tool_name="t", args={}, result=1)


# -- next_step_type ---------------------------------------------------------


@pytest.mark.parametrize(
    ("kwargs", "expected"),
    [
        ({}, "done"),
        ({"tool_calls": [_CALL], "tool_results": [_RESULT]}, "tool-result"),
        ({"tool_calls": [_CALL], "tool_results": []}, "done"),
        ({"tool_calls": [_CALL], "tool_results": [_RESULT], "current_step": 2}, "done"),
        ({"finish_reason": "length", "continue_steps": True}, "continue"),
        ({"finish_reason": "length"}, "done"),
        (
            {
                "finish_reason": "length",
                "continue_steps": True,
                "tool_calls": [_CALL],
                "tool_results": [_RESULT],
            },
            "tool-result",
        ),
    ],
)
def test_next_step_type(kwargs, expected) -> None:
    args = {
        "current_step": 0,
        "max_steps": 3,
        "continue_steps": False,
        "finish_reason": "stop",
        "tool_calls": [],
        "tool_results": [],
    }
    args.update(kwargs)
    assert step.next_step_type(**args) == expected


def test_next_step_type_single_step_is_done() -> None:
    assert (
        step.next_step_type(
            current_step=0,
            max_steps=1,
            continue_steps=True,
            finish_reason="length",
            tool_calls=[],
            tool_results=[],
        )
        == "done"
    )


# -- advance ----------------------------------------------------------------


def test_advance_done() -> None:
    state = step.LoopState(message_id="msg-1")
    new = step.advance(state, _step("Hello"), next_step="done", generate_message_id=_ids("msg-2"))
    assert new.done
    assert new.text == "Hello"
    assert new.current_step == 1
    assert new.usage == ai.Usage.calculate(1, 2)
    assert [m.id for m in new.response_messages] == ["msg-1"]
    assert new.steps[0].response.messages == new.response_messages
    assert not new.steps[0].is_continued


def test_advance_tool_result_starts_new_message() -> None:
    state = step.LoopState(message_id="msg-1")
    new = step.advance(
        state,
        _step("", tool_calls=(_CALL,), tool_results=(_RESULT,)),
        next_step="tool-result",
        generate_message_id=_ids("msg-tool", "msg-2"),
    )
    assert not new.done
    assert new.step_type == "tool-result"
    assert new.message_id == "msg-2"
    assert [m.role for m in new.response_messages] == ["assistant", "tool"]


def test_advance_continue_keeps_message_and_joins_text() -> None:
    state = step.LoopState(message_id="msg-1")
    first = step.advance(
        state, _step("The quick "), next_step="continue", generate_message_id=_ids()
    )
    assert first.message_id == "msg-1"
    assert first.step_type == "continue"
    assert first.steps[0].is_continued

    second = step.advance(
        first,
        _step("brown fox", step_type="continue"),
        next_step="done",
        generate_message_id=_ids("msg-2"),
    )
    assert second.text == "The quick brown fox"
    assert len(second.response_messages) == 1
    assert second.response_messages[0].text == "The quick brown fox"
    assert second.usage == ai.Usage.calculate(2, 4)


# -- Continuation text ------------------------------------------------------


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Hello world", ("Hello", " ", "world")),
        ("Hello ", ("Hello", " ", "")),
        ("a b\n\nc", ("a b", "\n\n", "c")),
        ("Hello", None),
    ],
)
def test_split_on_last_whitespace(text, expected) -> None:
    assert step.split_on_last_whitespace(text) == expected


def test_remove_text_after_last_whitespace() -> None:
    assert step.remove_text_after_last_whitespace("Hello wor") == "Hello "
    assert step.remove_text_after_last_whitespace("Hello") == "Hello"


def test_continuation_text_trims_cut_word() -> None:
    state = step.LoopState(message_id="m")
    assert step.continuation_text("The quick brow", state=state, next_step="continue") == "The quick "


def test_continuation_text_strips_leading_whitespace_after_whitespace() -> None:
    state = step.LoopState(message_id="m", step_type="continue", text="The quick ")
    assert step.continuation_text("  brown fox", state=state, next_step="done") == "brown fox"


def test_continuation_text_keeps_leading_whitespace_otherwise() -> None:
    state = step.LoopState(message_id="m", step_type="continue", text="The quick")
    assert step.continuation_text(" brown", state=state, next_step="done") == " brown"
