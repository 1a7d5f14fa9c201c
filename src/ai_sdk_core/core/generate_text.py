from __future__ import annotations

import asyncio
import dataclasses
import datetime
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from . import abort as abort_
from . import chunks as chunks_
from . import errors as errors_
from . import ids as ids_
from . import llm as llm_
from . import messages as messages_
from . import output as output_
from . import output_strategy as output_strategy_
from . import retry as retry_
from . import settings as settings_
from . import step as step_
from . import telemetry as telemetry_
from . import tool_calls as tool_calls_
from . import tools as tools_

logger = logging.getLogger(__name__)

generate_message_id = ids_.create_id_generator(prefix="msg", size=24)
_generate_response_id = ids_.create_id_generator(prefix="aitxt", size=24)

OnStepFinish = Callable[[step_.StepResult], Awaitable[None] | None]


@dataclasses.dataclass(frozen=True)
class GenerateTextResult:
    text: str
    reasoning: str
    files: tuple[chunks_.GeneratedFile, ...]
    sources: tuple[chunks_.Source, ...]
    tool_calls: tuple[chunks_.ToolCallChunk, ...]
    tool_results: tuple[chunks_.ToolResultChunk, ...]
    finish_reason: chunks_.FinishReason
    usage: chunks_.Usage
    warnings: tuple[chunks_.CallWarning, ...]
    steps: tuple[step_.StepResult, ...]
    request: chunks_.RequestMetadata
    response: step_.StepResponse
    output_definition: output_.Output | None = dataclasses.field(default=None, repr=False)

    @property
    def output(self) -> Any:
        """The parsed structured output; requires ``output=`` on the call."""
        if self.output_definition is None:
            raise errors_.NoOutputSpecifiedError()
        return self.output_definition.parse_output(
            self.text,
            output_strategy_.FinalResultContext(
                text=self.text,
                response=self.response,
                usage=self.usage,
                finish_reason=self.finish_reason,
            ),
        )


def build_result(
    state: step_.LoopState, output: output_.Output | None = None
) -> GenerateTextResult:
    """Materialize the result of a finished loop; the last step wins."""
    last = state.steps[-1]
    return GenerateTextResult(
        text=state.text,
        reasoning=last.reasoning,
        files=last.files,
        sources=tuple(s for step in state.steps for s in step.sources),
        tool_calls=last.tool_calls,
        tool_results=last.tool_results,
        finish_reason=last.finish_reason,
        usage=state.usage,
        warnings=last.warnings,
        steps=state.steps,
        request=last.request,
        response=last.response,
        output_definition=output,
    )


def _response(result: llm_.GenerateResult, model: llm_.LanguageModel) -> step_.StepResponse:
    meta = result.response or chunks_.ResponseMetadataChunk()
    return step_.StepResponse(
        id=meta.id or _generate_response_id(),
        model_id=meta.model_id or model.model_id,
        timestamp=meta.timestamp or datetime.datetime.now(datetime.UTC),
        headers=result.response_headers,
    )


async def call_callback(callback: Callable[..., Any] | None, *args: Any) -> None:
    """Invoke a sync or async user callback."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


async def generate_text(
    model: llm_.LanguageModel,
    *,
    prompt: str | None = None,
    messages: Sequence[messages_.Message] | None = None,
    system: str | None = None,
    tools: Sequence[tools_.Tool] | tools_.ToolSet | None = None,
    tool_choice: llm_.ToolChoice | None = None,
    max_steps: int = 1,
    continue_steps: bool = False,
    output: output_.Output | None = None,
    repair_tool_call: tool_calls_.RepairToolCall | None = None,
    on_step_finish: OnStepFinish | None = None,
    abort_signal: asyncio.Event | None = None,
    tracer: telemetry_.Tracer | None = None,
    id_generator: ids_.IdGenerator | None = None,
    **settings: Any,
) -> GenerateTextResult:
    """Generate text (and run tools) without streaming.

    With ``max_steps > 1`` tool results are fed back to the model until it
    stops calling tools; with ``continue_steps`` a response cut off by the
    token limit is continued in a further step.
    """
    if max_steps < 1:
        raise errors_.InvalidArgumentError(
            argument="max_steps", message="max_steps must be at least 1", value=max_steps
        )

    call_settings = settings_.prepare_call_settings(**settings)
    retry = retry_.prepare_retries(call_settings.max_retries)
    tracer = tracer or telemetry_.NoopTracer()
    new_message_id = id_generator or generate_message_id
    tool_set = tools_.normalize_tools(tools)

    initial_prompt = messages_.standardize_prompt(
        prompt=prompt, messages=messages, system=system
    )
    if output is not None:
        initial_prompt = dataclasses.replace(
            initial_prompt,
            system=output.inject_into_system_prompt(initial_prompt.system, model),
        )

    state = step_.LoopState(message_id=new_message_id())

    while not state.done:
        abort_.check_aborted(abort_signal)
        step_input = initial_prompt.with_response_messages(state.response_messages)
        options = llm_.CallOptions(
            prompt=step_input,
            tools=tools_.to_definitions(tool_set),
            tool_choice=tool_choice,
            response_format=output.response_format(model) if output else None,
            abort_signal=abort_signal,
            **call_settings.call_options(),
        )
        logger.debug("generate_text step %d (%s)", state.current_step, state.step_type)

        async def do_generate(span: telemetry_.Span) -> llm_.GenerateResult:
            return await abort_.race_abort(model.generate(options), abort_signal)

        result = await retry(
            lambda: telemetry_.record_span(
                tracer,
                "ai.generateText.doGenerate",
                do_generate,
                attributes={"ai.model.id": model.model_id},
            )
        )

        tool_calls = [
            await tool_calls_.parse_tool_call(
                call,
                tool_set,
                repair_tool_call=repair_tool_call,
                system=initial_prompt.system,
                messages=step_input,
            )
            for call in result.tool_calls
        ]
        tool_results = (
            await tool_calls_.execute_tools(
                tool_calls,
                tool_set,
                messages=step_input,
                abort_signal=abort_signal,
                tracer=tracer,
            )
            if tool_set
            else []
        )

        next_step = step_.next_step_type(
            current_step=state.current_step,
            max_steps=max_steps,
            continue_steps=continue_steps,
            finish_reason=result.finish_reason,
            tool_calls=tool_calls,
            tool_results=tool_results,
        )
        step = step_.StepResult(
            step_type=state.step_type,
            text=step_.continuation_text(
                result.text or "", state=state, next_step=next_step
            ),
            reasoning=result.reasoning or "",
            files=tuple(result.files),
            sources=tuple(result.sources),
            tool_calls=tuple(tool_calls),
            tool_results=tuple(tool_results),
            finish_reason=result.finish_reason,
            usage=result.usage,
            warnings=tuple(result.warnings),
            request=result.request,
            response=_response(result, model),
        )
        state = step_.advance(
            state, step, next_step=next_step, generate_message_id=new_message_id
        )
        await call_callback(on_step_finish, state.steps[-1])

    return build_result(state, output)
