"""OpenAI provider implementation with full tool support"""

import logging
from typing import Any, Sequence

import openai

from llmstream.chat import Message, Role, Tool, ToolChoice, UsageMetadata
from llmstream.errors import ProviderUnavailableError
from llmstream.stream.channel import TokenChannel, UsageBox
from .base import Provider, tool_call_start_marker

logger = logging.getLogger(__name__)


class OpenAIProvider(Provider):
    """Provider for OpenAI Chat Completions (and compatible endpoints)"""

    name = "openai"

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        temperature: float | None = None,
        base_url: str | None = None,
        client: Any = None,
    ):
        super().__init__(model, temperature)
        if client is None:
            try:
                client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url)
            except openai.OpenAIError as e:
                raise ProviderUnavailableError(self.name, str(e)) from e
        self.client = client

    def _convert_messages(self, messages: Sequence[Message]) -> list[dict]:
        """Convert canonical messages to OpenAI format, system prompts first"""
        system = []
        result = []

        for msg in messages:
            if msg.role == Role.SYSTEM:
                system.append({"role": "system", "content": msg.content})
                continue

            converted = msg.to_dict()
            if msg.role == Role.ASSISTANT:
                converted["content"] = msg.content or None
            result.append(converted)

        return system + result

    def _convert_tools(self, tools: Sequence[Tool] | None) -> list[dict] | None:
        """Convert tool declarations to OpenAI format"""
        if not tools:
            return None
        return [t.to_dict() for t in tools]

    def build_request(
        self,
        messages: Sequence[Message],
        tools: Sequence[Tool] | None,
        tool_choice: ToolChoice,
    ) -> dict:
        kwargs = {
            "model": self.model,
            "messages": self._convert_messages(messages),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature

        openai_tools = self._convert_tools(tools)
        if openai_tools:
            kwargs["tools"] = openai_tools
            kwargs["tool_choice"] = tool_choice.value

        return kwargs

    async def _open_stream(self, request: dict):
        return await self.client.chat.completions.create(**request)

    async def _drain(self, stream, channel: TokenChannel, usage: UsageBox):
        async for chunk in stream:
            if getattr(chunk, "usage", None):
                usage.set(UsageMetadata.from_counts(
                    chunk.usage.prompt_tokens,
                    chunk.usage.completion_tokens,
                    chunk.usage.total_tokens,
                ))

            delta = chunk.choices[0].delta if chunk.choices else None
            if not delta:
                continue

            if delta.tool_calls:
                for tc in delta.tool_calls:
                    function = tc.function
                    if tc.id:
                        name = function.name if function and function.name else ""
                        channel.send(tool_call_start_marker(tc.id, name))
                    if function and function.arguments:
                        channel.send(function.arguments)
                continue

            if delta.content:
                channel.send(delta.content)

    async def _release(self, stream):
        await stream.close()
