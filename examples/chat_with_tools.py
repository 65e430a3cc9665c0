"""Stream a tool-enabled chat from the provider configured in the environment.

    LLM_PROVIDER=openai OPENAI_API_KEY=... OPENAI_MODEL=gpt-4o python examples/chat_with_tools.py
"""

import asyncio
import json

from llmstream.chat import Message, Role, Tool, ToolChoice, ToolFunction
from llmstream.config import ProviderConfig
from llmstream.provider.router import get_provider

WEATHER_TOOL = Tool(function=ToolFunction(
    name="get_weather",
    description="Get the current weather for a location",
    parameters={
        "type": "object",
        "properties": {
            "location": {"type": "string", "description": "The city and state, e.g. San Francisco, CA"},
        },
        "required": ["location"],
    },
))


async def main():
    provider = get_provider(ProviderConfig.from_env())
    messages = [
        Message(role=Role.SYSTEM, content="You are a helpful assistant."),
        Message(role=Role.USER, content="What's the weather in Boston?"),
    ]

    result = await provider.chat_stream_with_tools_and_usage(messages, [WEATHER_TOOL], ToolChoice.AUTO)
    async for fragment in result.channel:
        if fragment.startswith('{"type":"tool_call_start"'):
            call = json.loads(fragment)
            print(f"\n[tool call {call['id']}: {call['function']['name']}] ", end="")
        else:
            print(fragment, end="", flush=True)
    print()

    usage = result.get_usage()
    if usage:
        print(f"tokens: {usage.prompt_tokens} in, {usage.completion_tokens} out")


if __name__ == "__main__":
    asyncio.run(main())
