"""Abort signal: model calls, stream reads, retries and the step loops."""

import asyncio

import pytest

import ai_sdk_core as ai
from ai_sdk_core.core import abort, llm

from ..conftest import MockLanguageModel, collect, text_result, tool_call_chunks


def _stopping_tool(signal: asyncio.Event) -> ai.Tool:
    @ai.tool
    async def tool1(value: str) -> str:
        signal.set()
        return f"{value}-result"

    return tool1


class StalledStreamModel(MockLanguageModel):
    """Streams one text delta, then waits until the read is cancelled."""

    def __init__(self) -> None:
        super().__init__()
        self.cancelled = False

    async def stream(self, options: llm.CallOptions) -> llm.ModelStream:
        self.calls.append(options)

        async def chunks():
            yield ai.TextDeltaChunk(text_delta="partial")
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled = True
                raise

        return llm.ModelStream(stream=chunks())


# -- Helpers ---------------------------------------------------------------


def test_check_aborted() -> None:
    signal = asyncio.Event()
    abort.check_aborted(None)
    abort.check_aborted(signal)
    signal.set()
    with pytest.raises(ai.AbortError):
        abort.check_aborted(signal)


@pytest.mark.asyncio
async def test_race_abort_returns_result() -> None:
    async def work() -> str:
        return "done"

    assert await abort.race_abort(work(), asyncio.Event()) == "done"
    assert await abort.race_abort(work(), None) == "done"


@pytest.mark.asyncio
async def test_race_abort_cancels_pending_work() -> None:
    signal = asyncio.Event()
    started = asyncio.Event()
    cancelled = []

    async def work() -> str:
        started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            cancelled.append(True)
            raise
        return "never"

    task = asyncio.create_task(abort.race_abort(work(), signal))
    await started.wait()
    signal.set()
    with pytest.raises(ai.AbortError):
        await task
    assert cancelled == [True]


@pytest.mark.asyncio
async def test_race_abort_rejects_when_already_set() -> None:
    signal = asyncio.Event()
    signal.set()
    ran = []

    async def work() -> None:
        ran.append(True)

    with pytest.raises(ai.AbortError):
        await abort.race_abort(work(), signal)
    assert ran == []


@pytest.mark.asyncio
async def test_abortable_stops_stream_reads() -> None:
    signal = asyncio.Event()
    model = StalledStreamModel()
    model_stream = await model.stream(llm.CallOptions(prompt=[]))
    stream = abort.abortable(model_stream.stream, signal)

    assert await anext(stream) == ai.TextDeltaChunk(text_delta="partial")
    read = asyncio.create_task(anext(stream))
    await asyncio.sleep(0.01)
    signal.set()
    with pytest.raises(ai.AbortError):
        await read
    assert model.cancelled


# -- Retry -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_abort_error_is_never_retried() -> None:
    calls = []

    async def fn():
        calls.append(1)
        raise ai.AbortError()

    retry = ai.retry_with_exponential_backoff(max_retries=3, initial_delay_ms=0)
    with pytest.raises(ai.AbortError):
        await retry(fn)
    assert len(calls) == 1


# -- generate_text ---------------------------------------------------------


@pytest.mark.asyncio
async def test_generate_text_stops_after_abort_in_tool() -> None:
    signal = asyncio.Event()
    model = MockLanguageModel(
        generate=[
            text_result(
                None,
                finish_reason="tool-calls",
                tool_calls=[
                    ai.ToolCallChunk(
                        tool_call_id="call-1", tool_name="tool1", args='{"value": "v"}'
                    )
                ],
            ),
            text_result("after abort"),
        ]
    )

    with pytest.raises(ai.AbortError):
        await ai.generate_text(
            model,
            prompt="prompt",
            tools=[_stopping_tool(signal)],
            max_steps=3,
            abort_signal=signal,
        )
    assert len(model.calls) == 1


@pytest.mark.asyncio
async def test_generate_text_with_set_signal_makes_no_call() -> None:
    signal = asyncio.Event()
    signal.set()
    model = MockLanguageModel(generate=[text_result("x")])
    with pytest.raises(ai.AbortError):
        await ai.generate_text(model, prompt="prompt", abort_signal=signal)
    assert model.calls == []


@pytest.mark.asyncio
async def test_generate_text_abort_during_model_call() -> None:
    signal = asyncio.Event()

    class SlowModel(MockLanguageModel):
        async def generate(self, options: llm.CallOptions) -> llm.GenerateResult:
            self.calls.append(options)
            signal.set()
            await asyncio.Event().wait()
            return text_result("late")

    model = SlowModel()
    with pytest.raises(ai.AbortError):
        await ai.generate_text(model, prompt="prompt", abort_signal=signal, max_retries=5)
    assert len(model.calls) == 1


# -- stream_text -----------------------------------------------------------


@pytest.mark.asyncio
async def test_stream_text_stops_after_abort_in_tool() -> None:
    signal = asyncio.Event()
    model = MockLanguageModel(stream=[tool_call_chunks(), tool_call_chunks()])
    result = ai.stream_text(
        model,
        prompt="prompt",
        tools=[_stopping_tool(signal)],
        max_steps=3,
        abort_signal=signal,
    )

    chunks = await collect(result.full_stream)
    assert [c.type for c in chunks][:2] == ["step-start", "tool-call"]
    assert chunks[-1].type == "error"
    assert isinstance(chunks[-1].error, ai.AbortError)
    assert "finish" not in [c.type for c in chunks]
    assert len(model.calls) == 1
    with pytest.raises(ai.AbortError):
        await result.text


@pytest.mark.asyncio
async def test_stream_text_abort_interrupts_stream_read() -> None:
    signal = asyncio.Event()
    model = StalledStreamModel()
    result = ai.stream_text(model, prompt="prompt", abort_signal=signal)

    stream = result.full_stream
    assert (await anext(stream)).type == "step-start"
    assert await anext(stream) == ai.TextDeltaChunk(text_delta="partial")
    read = asyncio.create_task(anext(stream))
    await asyncio.sleep(0.01)
    signal.set()
    error = await asyncio.wait_for(read, timeout=1)

    assert isinstance(error, ai.ErrorChunk)
    assert isinstance(error.error, ai.AbortError)
    assert await collect(stream) == []
    assert model.cancelled


# -- stream_object ---------------------------------------------------------


@pytest.mark.asyncio
async def test_stream_object_with_set_signal() -> None:
    signal = asyncio.Event()
    signal.set()
    model = MockLanguageModel(stream=[tool_call_chunks()])
    result = ai.stream_object(model, output="no-schema", prompt="prompt", abort_signal=signal)

    chunks = await collect(result.full_stream)
    assert [c.type for c in chunks] == ["error"]
    assert isinstance(chunks[0].error, ai.AbortError)
    assert model.calls == []
