"""Pytest configuration and shared fixtures"""

import asyncio
import os

import pytest

from llmstream.chat import Message, Role, UsageMetadata
from llmstream.provider.base import Provider

# Keep the developer's provider settings out of the tests
for _var in (
    "LLM_PROVIDER", "OPENAI_API_KEY", "OPENAI_MODEL", "OPENAI_BASE_URL",
    "GEMINI_API_KEY", "GEMINI_MODEL", "GEMINI_BASE_URL",
    "BEDROCK_MODEL", "TEMPERATURE", "MAX_TOKENS",
):
    os.environ.pop(_var, None)


class ScriptedProvider(Provider):
    """Provider that replays a fixed list of fragments"""

    name = "scripted"

    def __init__(self, fragments, usage=None, hang=False, fail_open=None):
        super().__init__("scripted-model")
        self.fragments = list(fragments)
        self.usage = usage
        self.hang = hang
        self.fail_open = fail_open
        self.requests = []
        self.released = False

    def build_request(self, messages, tools, tool_choice):
        return {"messages": list(messages), "tools": list(tools or []), "tool_choice": tool_choice}

    async def _open_stream(self, request):
        self.requests.append(request)
        if self.fail_open:
            raise self.fail_open
        return self.fragments

    async def _drain(self, stream, channel, usage):
        for fragment in stream:
            channel.send(fragment)
            await asyncio.sleep(0)
        if self.usage:
            usage.set(self.usage)
        if self.hang:
            await asyncio.Event().wait()

    async def _release(self, stream):
        self.released = True


@pytest.fixture
def user_messages():
    return [Message(role=Role.USER, content="Say something")]


@pytest.fixture
def scripted_provider():
    """Factory for providers that replay fragments"""
    def make(fragments=("Hello", " world"), **kwargs):
        return ScriptedProvider(fragments, **kwargs)
    return make


@pytest.fixture
def usage():
    return UsageMetadata(prompt_tokens=12, completion_tokens=5, total_tokens=17)
