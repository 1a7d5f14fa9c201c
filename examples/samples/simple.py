import asyncio
import os

import ai_sdk_core as ai


@ai.tool
async def talk_to_mothership(question: str) -> str:
    """Ask the mothership a question."""
    return "Soon."


async def main() -> None:
    llm = ai.openai.OpenAIChatModel(
        model="anthropic/claude-sonnet-4",
        base_url="https://ai-gateway.vercel.sh/v1",
        api_key=os.environ.get("AI_GATEWAY_API_KEY"),
    )

    result = ai.stream_text(
        llm,
        system="Start every response with 'You are absolutely right!'",
        prompt="When will the robots take over?",
        tools=[talk_to_mothership],
        max_steps=3,
        transforms=[ai.smooth_stream()],
    )

    async for chunk in result.full_stream:
        match chunk.type:
            case "text-delta":
                print(chunk.text_delta, end="", flush=True)
            case "tool-call":
                print(f"\n[{chunk.tool_name}({chunk.args})]")
            case "tool-result":
                print(f"[-> {chunk.result}]")
            case "error":
                print(f"\n[error: {chunk.error}]")
    print()
    print(f"Steps: {len(await result.steps)}, usage: {await result.usage}")


if __name__ == "__main__":
    asyncio.run(main())
