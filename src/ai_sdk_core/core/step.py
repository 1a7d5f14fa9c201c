"""Step types and the multi-step loop as a fold over ``LoopState``."""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Callable, Sequence
from typing import Literal

from . import chunks as chunks_
from . import messages as messages_

StepType = Literal["initial", "continue", "tool-result"]
NextStepType = Literal["done", "continue", "tool-result"]


@dataclasses.dataclass(frozen=True)
class StepResponse(chunks_.ResponseMetadata):
    """Response metadata plus the response messages generated so far."""

    messages: tuple[messages_.Message, ...] = ()


@dataclasses.dataclass(frozen=True)
class StepResult:
    """Result of one model call, immutable once the step has finished."""

    step_type: StepType
    text: str
    finish_reason: chunks_.FinishReason
    usage: chunks_.Usage
    response: StepResponse
    reasoning: str = ""
    reasoning_signature: str | None = None
    files: tuple[chunks_.GeneratedFile, ...] = ()
    sources: tuple[chunks_.Source, ...] = ()
    tool_calls: tuple[chunks_.ToolCallChunk, ...] = ()
    tool_results: tuple[chunks_.ToolResultChunk, ...] = ()
    warnings: tuple[chunks_.CallWarning, ...] = ()
    request: chunks_.RequestMetadata = dataclasses.field(
        default_factory=chunks_.RequestMetadata
    )
    is_continued: bool = False


@dataclasses.dataclass(frozen=True)
class LoopState:
    message_id: str
    step_type: StepType = "initial"
    current_step: int = 0
    steps: tuple[StepResult, ...] = ()
    response_messages: tuple[messages_.Message, ...] = ()
    usage: chunks_.Usage = dataclasses.field(default_factory=chunks_.Usage)
    text: str = ""
    done: bool = False


def next_step_type(
    *,
    current_step: int,
    max_steps: int,
    continue_steps: bool,
    finish_reason: chunks_.FinishReason,
    tool_calls: Sequence[chunks_.ToolCallChunk],
    tool_results: Sequence[chunks_.ToolResultChunk],
) -> NextStepType:
    if current_step + 1 >= max_steps:
        return "done"
    if continue_steps and finish_reason == "length" and not tool_calls:
        return "continue"
    if tool_calls and len(tool_results) == len(tool_calls):
        return "tool-result"
    return "done"


def advance(
    state: LoopState,
    step: StepResult,
    *,
    next_step: NextStepType,
    generate_message_id: Callable[[], str],
) -> LoopState:
    """Fold one finished step into the loop state.

    Continuation text extends the last assistant message; any other step
    appends its own assistant (and tool) messages.
    """
    if step.step_type == "continue":
        response_messages = messages_.append_continuation(
            list(state.response_messages), step.text
        )
    else:
        response_messages = [
            *state.response_messages,
            *messages_.to_response_messages(
                text=step.text,
                reasoning=step.reasoning,
                reasoning_signature=step.reasoning_signature,
                files=step.files,
                tool_calls=step.tool_calls,
                tool_results=step.tool_results,
                message_id=state.message_id,
                generate_message_id=generate_message_id,
            ),
        ]

    step = dataclasses.replace(
        step,
        is_continued=next_step == "continue",
        response=dataclasses.replace(step.response, messages=tuple(response_messages)),
    )
    joined = next_step == "continue" or step.step_type == "continue"

    return LoopState(
        message_id=(
            state.message_id if next_step == "continue" else generate_message_id()
        ),
        step_type=state.step_type if next_step == "done" else next_step,
        current_step=state.current_step + 1,
        steps=(*state.steps, step),
        response_messages=tuple(response_messages),
        usage=state.usage + step.usage,
        text=state.text + step.text if joined else step.text,
        done=next_step == "done",
    )


# ── Continuation text ─────────────────────────────────────────────

_LAST_WHITESPACE = re.compile(r"(.*?)(\s+)(\S*)", re.DOTALL)


def split_on_last_whitespace(text: str) -> tuple[str, str, str] | None:
    """Split into (prefix, whitespace, suffix) around the last whitespace run."""
    match = _LAST_WHITESPACE.fullmatch(text)
    if match is None:
        return None
    return match.group(1), match.group(2), match.group(3)


def remove_text_after_last_whitespace(text: str) -> str:
    split = split_on_last_whitespace(text)
    if split is None:
        return text
    prefix, whitespace, _ = split
    return prefix + whitespace


def continuation_text(
    raw_text: str, *, state: LoopState, next_step: NextStepType
) -> str:
    """The text a (non-streaming) step contributes.

    A continuation drops its leading whitespace when the text so far already
    ends in whitespace; a step that will be continued keeps only the text up
    to its last whitespace boundary.
    """
    text = raw_text
    if state.step_type == "continue" and state.text.rstrip() != state.text:
        text = text.lstrip()
    if next_step == "continue":
        text = remove_text_after_last_whitespace(text)
    return text
