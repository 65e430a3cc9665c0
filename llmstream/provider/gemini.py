"""Google Gemini provider using raw HTTP streaming"""

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Sequence

import httpx

from llmstream.chat import Message, Role, Tool, ToolChoice, UsageMetadata
from llmstream.errors import ProviderUnavailableError
from llmstream.stream.channel import TokenChannel, UsageBox
from .base import Provider, tool_call_start_marker

logger = logging.getLogger(__name__)

_MODES = {
    ToolChoice.AUTO: "AUTO",
    ToolChoice.REQUIRED: "ANY",
    ToolChoice.NONE: "NONE",
}


@dataclass
class _GeminiStream:
    response: httpx.Response
    client: httpx.AsyncClient | None = None  # closed with the stream when we own it


class GeminiProvider(Provider):
    """Provider for Gemini models via the generativelanguage streaming endpoint"""

    name = "gemini"
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        model: str,
        api_key: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 120.0,
    ):
        super().__init__(model, temperature)
        self.api_key = api_key
        self.max_tokens = max_tokens
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.http_client = http_client
        self.timeout = timeout

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:streamGenerateContent?alt=sse"

    def _convert_messages(self, messages: Sequence[Message]) -> tuple[list[dict], list[dict]]:
        """Convert canonical messages to Gemini contents plus system instruction parts"""
        contents = []
        system_parts = []
        pending_responses = []
        tool_names: dict[str, str] = {}

        def flush():
            nonlocal pending_responses
            if pending_responses:
                contents.append({"role": "user", "parts": pending_responses})
                pending_responses = []

        for msg in messages:
            if msg.role == Role.SYSTEM:
                system_parts.append({"text": msg.content})
                continue

            if msg.role == Role.TOOL:
                pending_responses.append({
                    "functionResponse": {
                        "name": tool_names.get(msg.tool_call_id, msg.tool_call_id),
                        "response": _tool_response(msg.content),
                    }
                })
                continue

            flush()

            if msg.role == Role.USER:
                contents.append({"role": "user", "parts": [{"text": msg.content}]})

            elif msg.role == Role.ASSISTANT:
                parts = []
                if msg.content:
                    parts.append({"text": msg.content})
                for tc in msg.tool_calls:
                    tool_names[tc.id] = tc.function.name
                    parts.append({
                        "functionCall": {
                            "name": tc.function.name,
                            "args": tc.parsed_arguments(),
                        }
                    })
                if parts:
                    contents.append({"role": "model", "parts": parts})

        flush()
        return contents, system_parts

    def _convert_tools(self, tools: Sequence[Tool] | None) -> list[dict] | None:
        if not tools:
            return None
        return [{
            "functionDeclarations": [
                {
                    "name": t.function.name,
                    "description": t.function.description,
                    "parameters": t.function.parameters,
                }
                for t in tools
            ]
        }]

    def build_request(
        self,
        messages: Sequence[Message],
        tools: Sequence[Tool] | None,
        tool_choice: ToolChoice,
    ) -> dict:
        contents, system_parts = self._convert_messages(messages)
        body = {"contents": contents}

        if system_parts:
            body["systemInstruction"] = {"parts": system_parts}

        generation_config = {}
        if self.temperature is not None:
            generation_config["temperature"] = self.temperature
        if self.max_tokens:
            generation_config["maxOutputTokens"] = self.max_tokens
        if generation_config:
            body["generationConfig"] = generation_config

        gemini_tools = self._convert_tools(tools)
        if gemini_tools:
            body["tools"] = gemini_tools
            body["toolConfig"] = {"functionCallingConfig": {"mode": _MODES[tool_choice]}}

        return body

    async def _open_stream(self, request: dict) -> _GeminiStream:
        owned = None
        client = self.http_client
        if client is None:
            owned = client = httpx.AsyncClient(timeout=self.timeout)

        try:
            req = client.build_request(
                "POST",
                self.url,
                headers={"Content-Type": "application/json", "x-goog-api-key": self.api_key},
                json=request,
            )
            response = await client.send(req, stream=True)
        except BaseException:
            if owned is not None:
                await owned.aclose()
            raise

        if response.status_code != 200:
            error_text = await response.aread()
            await response.aclose()
            if owned is not None:
                await owned.aclose()
            try:
                error_json = json.loads(error_text)
                error_msg = error_json.get("error", {}).get("message", str(error_json))
            except (json.JSONDecodeError, AttributeError):
                error_msg = error_text.decode(errors="replace")[:500]
            raise ProviderUnavailableError(self.name, f"API error ({response.status_code}): {error_msg}")

        return _GeminiStream(response=response, client=owned)

    async def _drain(self, stream: _GeminiStream, channel: TokenChannel, usage: UsageBox):
        async for line in stream.response.aiter_lines():
            if not line.startswith("data:"):
                continue

            data = line[5:].strip()
            if data == "[DONE]":
                break

            event = json.loads(data)
            if "error" in event:
                error = event["error"]
                raise ValueError(f"Stream error: {error.get('message', str(error))}")

            for candidate in event.get("candidates") or []:
                for part in (candidate.get("content") or {}).get("parts") or []:
                    if part.get("thought"):
                        continue
                    if "functionCall" in part:
                        call = part["functionCall"]
                        call_id = call.get("id") or f"call_{uuid.uuid4().hex[:24]}"
                        channel.send(tool_call_start_marker(call_id, call.get("name", "")))
                        channel.send(json.dumps(call.get("args") or {}))
                    elif part.get("text"):
                        channel.send(part["text"])

            metadata = event.get("usageMetadata")
            if metadata:
                usage.set(UsageMetadata.from_counts(
                    metadata.get("promptTokenCount"),
                    metadata.get("candidatesTokenCount"),
                    metadata.get("totalTokenCount"),
                ))

    async def _release(self, stream: _GeminiStream):
        try:
            await stream.response.aclose()
        finally:
            if stream.client is not None:
                await stream.client.aclose()


def _tool_response(content: str) -> dict:
    """Gemini expects a JSON object as the function response"""
    try:
        value = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        return {"content": content}
    if isinstance(value, dict):
        return value
    return {"content": value}
