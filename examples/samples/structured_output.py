import asyncio
import os

import pydantic

import ai_sdk_core as ai


class WeatherForecast(pydantic.BaseModel):
    city: str
    temperature: float
    conditions: str
    humidity: int
    wind_speed: float


async def main() -> None:
    llm = ai.openai.OpenAIChatModel(
        model="anthropic/claude-sonnet-4",
        base_url="https://ai-gateway.vercel.sh/v1",
        api_key=os.environ.get("AI_GATEWAY_API_KEY"),
    )

    system = "You are a weather assistant. Respond with realistic weather data."
    prompt = "What's the weather like in San Francisco right now?"

    # Streaming: watch the object fill in, get the validated value at the end
    print("--- Streaming ---")
    result = ai.stream_object(llm, schema=WeatherForecast, system=system, prompt=prompt)
    async for partial in result.partial_object_stream:
        print(partial)
    print(f"\nParsed: {await result.object}")

    # Arrays stream element by element
    print("\n--- Elements ---")
    result = ai.stream_object(
        llm,
        output="array",
        schema=WeatherForecast,
        system=system,
        prompt="Give me forecasts for three European capitals.",
    )
    async for forecast in result.element_stream:
        print(forecast)

    # Non-streaming
    print("\n--- Generate ---")
    generated = await ai.generate_object(
        llm,
        output="enum",
        enum_values=["sunny", "cloudy", "rainy"],
        prompt="Is it usually sunny, cloudy or rainy in London?",
    )
    print(generated.object)


if __name__ == "__main__":
    asyncio.run(main())
