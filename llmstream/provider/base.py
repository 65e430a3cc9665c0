"""Provider abstraction for LLM streaming APIs"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Sequence

from llmstream.chat import Message, Tool, ToolChoice
from llmstream.errors import InvalidArgumentError, ProviderUnavailableError
from llmstream.stream.channel import StreamResult, TokenChannel, UsageBox, spawn_stream

logger = logging.getLogger(__name__)


def tool_call_start_marker(call_id: str, name: str) -> str:
    """JSON marker emitted inline when the model starts a tool call"""
    return json.dumps(
        {"type": "tool_call_start", "id": call_id, "function": {"name": name}},
        separators=(",", ":"),
    )


class Provider(ABC):
    """Base class for LLM providers.

    Subclasses translate canonical messages into a vendor request
    (``build_request``), start the vendor stream (``_open_stream``), fold vendor
    events into the output channel (``_drain``) and release the stream
    (``_release``). The public ``chat_stream*`` methods are shared.
    """

    name: str = "provider"

    def __init__(self, model: str, temperature: float | None = None):
        self.model = model
        self.temperature = temperature

    @abstractmethod
    def build_request(
        self,
        messages: Sequence[Message],
        tools: Sequence[Tool] | None,
        tool_choice: ToolChoice,
    ) -> dict:
        """Translate canonical messages and tools into the vendor request"""
        pass

    @abstractmethod
    async def _open_stream(self, request: dict) -> Any:
        """Start the vendor streaming call and return its event source"""
        pass

    @abstractmethod
    async def _drain(self, stream: Any, channel: TokenChannel, usage: UsageBox):
        """Forward vendor events into the channel until the stream ends"""
        pass

    @abstractmethod
    async def _release(self, stream: Any):
        """Close the vendor event source"""
        pass

    async def chat_stream(self, messages: Sequence[Message]) -> TokenChannel:
        """Stream a response without tools"""
        return await self.chat_stream_with_tools(messages, None, ToolChoice.AUTO)

    async def chat_stream_with_tools(
        self,
        messages: Sequence[Message],
        tools: Sequence[Tool] | None = None,
        tool_choice: ToolChoice = ToolChoice.AUTO,
    ) -> TokenChannel:
        """Stream a response with optional tool declarations"""
        result = await self.chat_stream_with_tools_and_usage(messages, tools, tool_choice)
        return result.channel

    async def chat_stream_with_usage(self, messages: Sequence[Message]) -> StreamResult:
        """Stream a response and expose usage metadata once drained"""
        return await self.chat_stream_with_tools_and_usage(messages, None, ToolChoice.AUTO)

    async def chat_stream_with_tools_and_usage(
        self,
        messages: Sequence[Message],
        tools: Sequence[Tool] | None = None,
        tool_choice: ToolChoice = ToolChoice.AUTO,
    ) -> StreamResult:
        if not messages:
            raise InvalidArgumentError("chat_stream: no messages provided")

        try:
            tool_choice = ToolChoice(tool_choice)
        except ValueError as e:
            raise InvalidArgumentError(f"chat_stream: unknown tool choice {tool_choice!r}") from e

        request = self.build_request(messages, tools, tool_choice)

        logger.info(f"Starting {self.name} stream with model: {self.model}")
        logger.debug(f"Messages count: {len(messages)}, Tools: {len(tools) if tools else 0}")

        try:
            stream = await self._open_stream(request)
        except ProviderUnavailableError:
            raise
        except Exception as e:
            raise ProviderUnavailableError(self.name, f"failed to start stream: {e}") from e

        usage = UsageBox()

        async def drain(channel: TokenChannel):
            await self._drain(stream, channel, usage)

        async def release():
            await self._release(stream)

        channel = spawn_stream(drain, release, name=f"{self.name}-stream")
        return StreamResult(channel=channel, usage=usage)
