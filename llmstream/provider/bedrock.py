"""AWS Bedrock provider using the ConverseStream API"""

import asyncio
import logging
from typing import Any, Sequence

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from llmstream.chat import Message, Role, Tool, ToolChoice, UsageMetadata
from llmstream.errors import ProviderUnavailableError
from llmstream.stream.channel import TokenChannel, UsageBox
from .base import Provider, tool_call_start_marker

logger = logging.getLogger(__name__)

_EXHAUSTED = object()


class BedrockProvider(Provider):
    """Provider for models hosted on AWS Bedrock"""

    name = "bedrock"
    DEFAULT_REGION = "us-east-1"

    def __init__(
        self,
        model: str,
        region: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        client: Any = None,
    ):
        super().__init__(model, temperature)
        self.region = region or self.DEFAULT_REGION
        self.max_tokens = max_tokens
        if client is None:
            try:
                client = boto3.client("bedrock-runtime", region_name=self.region)
            except (BotoCoreError, ClientError) as e:
                raise ProviderUnavailableError(self.name, f"failed to load AWS config: {e}") from e
        self.client = client

    def _convert_messages(self, messages: Sequence[Message]) -> tuple[list[dict], list[dict]]:
        """Convert canonical messages to Converse messages plus system blocks.

        Consecutive tool results are merged into a single user turn since
        Converse requires alternating roles.
        """
        result = []
        system = []
        pending_results = []

        def flush():
            nonlocal pending_results
            if pending_results:
                result.append({"role": "user", "content": pending_results})
                pending_results = []

        for msg in messages:
            if msg.role == Role.SYSTEM:
                system.append({"text": msg.content})
                continue

            if msg.role == Role.TOOL:
                pending_results.append({
                    "toolResult": {
                        "toolUseId": msg.tool_call_id,
                        "content": [{"text": msg.content}],
                    }
                })
                continue

            flush()

            if msg.role == Role.USER:
                result.append({"role": "user", "content": [{"text": msg.content}]})

            elif msg.role == Role.ASSISTANT:
                content = []
                if msg.content:
                    content.append({"text": msg.content})
                for tc in msg.tool_calls:
                    content.append({
                        "toolUse": {
                            "toolUseId": tc.id,
                            "name": tc.function.name,
                            "input": tc.parsed_arguments(),
                        }
                    })
                if content:
                    result.append({"role": "assistant", "content": content})

        flush()
        return result, system

    def _convert_tool_config(self, tools: Sequence[Tool], tool_choice: ToolChoice) -> dict:
        config = {
            "tools": [
                {
                    "toolSpec": {
                        "name": t.function.name,
                        "description": t.function.description,
                        "inputSchema": {"json": t.function.parameters},
                    }
                }
                for t in tools
            ]
        }

        if tool_choice == ToolChoice.AUTO:
            config["toolChoice"] = {"auto": {}}
        elif tool_choice == ToolChoice.REQUIRED:
            config["toolChoice"] = {"any": {}}
        # Converse has no "none" choice; leave it to the model default

        return config

    def build_request(
        self,
        messages: Sequence[Message],
        tools: Sequence[Tool] | None,
        tool_choice: ToolChoice,
    ) -> dict:
        converse_messages, system = self._convert_messages(messages)
        request = {
            "modelId": self.model,
            "messages": converse_messages,
        }

        inference_config = {}
        if self.temperature is not None:
            inference_config["temperature"] = self.temperature
        if self.max_tokens:
            inference_config["maxTokens"] = self.max_tokens
        if inference_config:
            request["inferenceConfig"] = inference_config

        if system:
            request["system"] = system

        if tools:
            request["toolConfig"] = self._convert_tool_config(tools, tool_choice)

        return request

    async def _open_stream(self, request: dict):
        try:
            output = await asyncio.to_thread(lambda: self.client.converse_stream(**request))
        except (BotoCoreError, ClientError) as e:
            raise ProviderUnavailableError(self.name, f"failed to start converse stream: {e}") from e
        return output["stream"]

    async def _drain(self, stream, channel: TokenChannel, usage: UsageBox):
        events = iter(stream)
        while True:
            # boto3 event streams block, so each read happens off the loop
            event = await asyncio.to_thread(next, events, _EXHAUSTED)
            if event is _EXHAUSTED:
                break

            if "contentBlockStart" in event:
                start = event["contentBlockStart"].get("start") or {}
                tool_use = start.get("toolUse")
                if tool_use:
                    channel.send(tool_call_start_marker(
                        tool_use.get("toolUseId", ""),
                        tool_use.get("name", ""),
                    ))

            elif "contentBlockDelta" in event:
                delta = event["contentBlockDelta"].get("delta") or {}
                if "text" in delta:
                    channel.send(delta["text"])
                elif "toolUse" in delta:
                    partial = delta["toolUse"].get("input")
                    if partial:
                        channel.send(partial)

            elif "metadata" in event:
                counts = event["metadata"].get("usage")
                if counts:
                    usage.set(UsageMetadata.from_counts(
                        counts.get("inputTokens"),
                        counts.get("outputTokens"),
                        counts.get("totalTokens"),
                    ))

            elif "messageStop" in event:
                logger.debug(f"Bedrock message stop: {event['messageStop'].get('stopReason')}")

            else:
                for key, value in event.items():
                    if key.endswith("Exception"):
                        message = value.get("message", "") if isinstance(value, dict) else value
                        raise RuntimeError(f"{key}: {message}")

    async def _release(self, stream):
        close = getattr(stream, "close", None)
        if close is not None:
            await asyncio.to_thread(close)
