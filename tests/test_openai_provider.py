"""Tests for the OpenAI provider"""

import asyncio
import json
from types import SimpleNamespace

import pytest

from llmstream.chat import FunctionCall, Message, Role, Tool, ToolCall, ToolChoice, ToolFunction
from llmstream.errors import InvalidArgumentError, ProviderUnavailableError
from llmstream.provider.openai import OpenAIProvider


def text_chunk(content):
    delta = SimpleNamespace(content=content, tool_calls=None)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta)], usage=None)


def tool_chunk(index, id=None, name=None, arguments=None):
    call = SimpleNamespace(
        index=index,
        id=id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )
    delta = SimpleNamespace(content=None, tool_calls=[call])
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta)], usage=None)


def usage_chunk(prompt, completion, total):
    usage = SimpleNamespace(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)
    return SimpleNamespace(choices=[], usage=usage)


class FakeStream:
    def __init__(self, chunks, error=None, hang=False):
        self.chunks = chunks
        self.error = error
        self.hang = hang
        self.closed = False

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for chunk in self.chunks:
            yield chunk
        if self.error:
            raise self.error
        if self.hang:
            await asyncio.Event().wait()

    async def close(self):
        self.closed = True


class FakeClient:
    def __init__(self, stream=None, error=None):
        self.stream = stream
        self.error = error
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self.create))

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.stream


@pytest.fixture
def weather_tool():
    return Tool(function=ToolFunction(
        name="get_weather",
        description="Get the current weather for a location",
        parameters={
            "type": "object",
            "properties": {"location": {"type": "string"}},
            "required": ["location"],
        },
    ))


class TestOpenAIRequest:
    def test_system_messages_hoisted(self):
        provider = OpenAIProvider("gpt-4o", client=FakeClient())
        request = provider.build_request([
            Message(role=Role.USER, content="Hello"),
            Message(role=Role.SYSTEM, content="Be brief."),
        ], None, ToolChoice.AUTO)

        assert request["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hello"},
        ]
        assert request["stream"] is True
        assert "tools" not in request
        assert "tool_choice" not in request
        assert "temperature" not in request

    def test_tool_round_trip(self, weather_tool):
        provider = OpenAIProvider("gpt-4o", temperature=0.2, client=FakeClient())
        call = ToolCall(id="t1", function=FunctionCall(name="get_weather", arguments='{"location":"Boston"}'))
        request = provider.build_request([
            Message(role=Role.USER, content="Weather?"),
            Message(role=Role.ASSISTANT, tool_calls=[call]),
            Message(role=Role.TOOL, content="72F", tool_call_id="t1"),
        ], [weather_tool], ToolChoice.REQUIRED)

        assistant = request["messages"][1]
        assert assistant["content"] is None
        sent = assistant["tool_calls"][0]
        assert sent["id"] == "t1"
        assert sent["function"]["name"] == "get_weather"
        assert json.loads(sent["function"]["arguments"]) == {"location": "Boston"}

        assert request["messages"][2] == {"role": "tool", "tool_call_id": "t1", "content": "72F"}
        assert request["tools"][0]["function"]["name"] == "get_weather"
        assert request["tool_choice"] == "required"
        assert request["temperature"] == 0.2

    def test_none_tool_choice_is_literal(self, weather_tool):
        provider = OpenAIProvider("gpt-4o", client=FakeClient())
        request = provider.build_request(
            [Message(role=Role.USER, content="Hi")], [weather_tool], ToolChoice.NONE
        )
        assert request["tool_choice"] == "none"


class TestOpenAIStream:
    @pytest.mark.asyncio
    async def test_text_deltas_in_order(self, user_messages):
        stream = FakeStream([text_chunk("Hello"), text_chunk(" world"), usage_chunk(9, 2, 11)])
        provider = OpenAIProvider("gpt-4o", client=FakeClient(stream))

        result = await provider.chat_stream_with_usage(user_messages)
        fragments = [f async for f in result.channel]

        assert fragments == ["Hello", " world"]
        usage = result.get_usage()
        assert usage.prompt_tokens == 9
        assert usage.total_tokens == usage.prompt_tokens + usage.completion_tokens
        assert stream.closed

    @pytest.mark.asyncio
    async def test_tool_call_deltas(self, user_messages, weather_tool):
        stream = FakeStream([
            tool_chunk(0, id="call_1", name="get_weather", arguments=""),
            tool_chunk(0, arguments='{"loc'),
            tool_chunk(0, arguments='ation":"Boston"}'),
        ])
        provider = OpenAIProvider("gpt-4o", client=FakeClient(stream))

        channel = await provider.chat_stream_with_tools(user_messages, [weather_tool], ToolChoice.AUTO)
        fragments = [f async for f in channel]

        assert json.loads(fragments[0]) == {
            "type": "tool_call_start",
            "id": "call_1",
            "function": {"name": "get_weather"},
        }
        assert "".join(fragments[1:]) == '{"location":"Boston"}'

    @pytest.mark.asyncio
    async def test_empty_messages_rejected(self):
        client = FakeClient(FakeStream([]))
        provider = OpenAIProvider("gpt-4o", client=client)

        with pytest.raises(InvalidArgumentError):
            await provider.chat_stream_with_tools([], [], ToolChoice.AUTO)
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_unknown_tool_choice_rejected(self, user_messages, weather_tool):
        client = FakeClient(FakeStream([]))
        provider = OpenAIProvider("gpt-4o", client=client)

        with pytest.raises(InvalidArgumentError):
            await provider.chat_stream_with_tools(user_messages, [weather_tool], "sometimes")
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_tool_choice_accepts_plain_string(self, user_messages, weather_tool):
        client = FakeClient(FakeStream([text_chunk("ok")]))
        provider = OpenAIProvider("gpt-4o", client=client)

        channel = await provider.chat_stream_with_tools(user_messages, [weather_tool], "required")

        assert [f async for f in channel] == ["ok"]
        assert client.calls[0]["tool_choice"] == "required"

    @pytest.mark.asyncio
    async def test_call_failure_is_provider_unavailable(self, user_messages):
        provider = OpenAIProvider("gpt-4o", client=FakeClient(error=ConnectionError("refused")))

        with pytest.raises(ProviderUnavailableError):
            await provider.chat_stream(user_messages)

    @pytest.mark.asyncio
    async def test_mid_stream_error_truncates(self, user_messages):
        stream = FakeStream([text_chunk("partial")], error=RuntimeError("decode failed"))
        provider = OpenAIProvider("gpt-4o", client=FakeClient(stream))

        channel = await provider.chat_stream(user_messages)

        assert [f async for f in channel] == ["partial"]
        assert stream.closed

    @pytest.mark.asyncio
    async def test_cancellation_releases_stream(self, user_messages):
        stream = FakeStream([text_chunk("Hello")], hang=True)
        provider = OpenAIProvider("gpt-4o", client=FakeClient(stream))

        channel = await provider.chat_stream(user_messages)
        assert await channel.receive() == "Hello"
        await channel.aclose()

        assert stream.closed
        assert channel.closed
