"""Print the wire encodings a chat UI would receive for one response."""

import asyncio
import os

import ai_sdk_core as ai


async def main() -> None:
    llm = ai.openai.OpenAIChatModel(
        model="anthropic/claude-sonnet-4",
        base_url="https://ai-gateway.vercel.sh/v1",
        api_key=os.environ.get("AI_GATEWAY_API_KEY"),
    )

    result = ai.stream_text(llm, prompt="Say hello in three languages.")

    print("--- Data stream ---")
    async for line in result.to_data_stream(send_reasoning=True):
        print(line, end="")

    print("\n--- UI message stream (SSE) ---")
    async for event in result.to_sse_stream():
        print(event, end="")


if __name__ == "__main__":
    asyncio.run(main())
