from __future__ import annotations

import asyncio
import dataclasses
import datetime
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from . import abort as abort_
from . import chunks as chunks_
from . import errors as errors_
from . import ids as ids_
from . import json_repair as json_repair_
from . import llm as llm_
from . import messages as messages_
from . import output as output_
from . import output_strategy as output_strategy_
from . import retry as retry_
from . import settings as settings_
from . import telemetry as telemetry_

logger = logging.getLogger(__name__)

_generate_response_id = ids_.create_id_generator(prefix="aiobj", size=24)

RepairText = Callable[
    [str, errors_.JSONParseError | errors_.TypeValidationError],
    Awaitable[str | None],
]


@dataclasses.dataclass(frozen=True)
class GenerateObjectResult:
    object: Any
    finish_reason: chunks_.FinishReason
    usage: chunks_.Usage
    warnings: tuple[chunks_.CallWarning, ...]
    request: chunks_.RequestMetadata
    response: chunks_.ResponseMetadata


def object_system_prompt(
    system: str | None,
    strategy: output_strategy_.OutputStrategy,
    model: llm_.LanguageModel,
) -> str | None:
    """System prompt with JSON instructions unless the model enforces the schema."""
    if strategy.json_schema is None:
        return output_strategy_.inject_json_instruction(system)
    if model.supports_structured_outputs:
        return system
    return output_strategy_.inject_json_instruction(system, strategy.json_schema)


def _parse_and_validate(
    text: str,
    strategy: output_strategy_.OutputStrategy,
    context: output_strategy_.FinalResultContext,
) -> Any:
    parsed = json_repair_.safe_parse_json(text)
    if not parsed.success:
        raise output_.no_object_generated(
            "could not parse the response", parsed.error, context
        )
    validated = strategy.validate_final_result(parsed.value, context)
    if not validated.success:
        raise output_.no_object_generated(
            "response did not match schema", validated.error, context
        )
    return validated.value


async def _parse_with_repair(
    text: str,
    strategy: output_strategy_.OutputStrategy,
    context: output_strategy_.FinalResultContext,
    repair_text: RepairText | None,
) -> Any:
    try:
        return _parse_and_validate(text, strategy, context)
    except errors_.NoObjectGeneratedError as error:
        if repair_text is None or not isinstance(
            error.cause, (errors_.JSONParseError, errors_.TypeValidationError)
        ):
            raise
        repaired = await repair_text(text, error.cause)
        if repaired is None:
            raise
        logger.debug("Retrying object parsing with repaired text")
        return _parse_and_validate(
            repaired, strategy, dataclasses.replace(context, text=repaired)
        )


async def generate_object(
    model: llm_.LanguageModel,
    *,
    output: output_strategy_.OutputType = "object",
    schema: Any = None,
    schema_name: str | None = None,
    schema_description: str | None = None,
    enum_values: Sequence[str] | None = None,
    prompt: str | None = None,
    messages: Sequence[messages_.Message] | None = None,
    system: str | None = None,
    repair_text: RepairText | None = None,
    abort_signal: asyncio.Event | None = None,
    tracer: telemetry_.Tracer | None = None,
    **settings: Any,
) -> GenerateObjectResult:
    """Generate a structured value matching ``schema`` (or ``enum_values``).

    Raises ``NoObjectGeneratedError`` when the response cannot be parsed or
    does not validate; ``repair_text`` gets one chance to fix the text first.
    """
    output_strategy_.validate_object_generation_input(
        output=output,
        schema=schema,
        schema_name=schema_name,
        schema_description=schema_description,
        enum_values=enum_values,
    )
    strategy = output_strategy_.get_output_strategy(output, schema, enum_values)
    call_settings = settings_.prepare_call_settings(**settings)
    retry = retry_.prepare_retries(call_settings.max_retries)
    tracer = tracer or telemetry_.NoopTracer()

    standardized = messages_.standardize_prompt(
        prompt=prompt,
        messages=messages,
        system=object_system_prompt(system, strategy, model),
    )
    options = llm_.CallOptions(
        prompt=standardized.with_response_messages([]),
        response_format=llm_.ResponseFormat(
            type="json",
            schema=strategy.json_schema,
            name=schema_name,
            description=schema_description,
        ),
        abort_signal=abort_signal,
        **call_settings.call_options(),
    )

    async def do_generate(span: telemetry_.Span) -> llm_.GenerateResult:
        return await abort_.race_abort(model.generate(options), abort_signal)

    result = await retry(
        lambda: telemetry_.record_span(
            tracer,
            "ai.generateObject.doGenerate",
            do_generate,
            attributes={"ai.model.id": model.model_id},
        )
    )

    meta = result.response or chunks_.ResponseMetadataChunk()
    response = chunks_.ResponseMetadata(
        id=meta.id or _generate_response_id(),
        model_id=meta.model_id or model.model_id,
        timestamp=meta.timestamp or datetime.datetime.now(datetime.UTC),
        headers=result.response_headers,
    )
    context = output_strategy_.FinalResultContext(
        text=result.text or "",
        response=response,
        usage=result.usage,
        finish_reason=result.finish_reason,
    )
    if result.text is None:
        raise output_.no_object_generated(
            "the model did not return a response", None, context
        )

    value = await _parse_with_repair(result.text, strategy, context, repair_text)
    return GenerateObjectResult(
        object=value,
        finish_reason=result.finish_reason,
        usage=result.usage,
        warnings=tuple(result.warnings),
        request=result.request,
        response=response,
    )
