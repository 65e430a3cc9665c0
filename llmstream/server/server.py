"""HTTP API server.

StreamingResponse owns the socket writes, so write_sse and its
TransportWriteError are not used here. A failed write reaches the frame
generator as an early close, which relay_frames logs as a client disconnect.
"""

import logging
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from llmstream import __version__
from llmstream.chat import Message, Tool, ToolChoice
from llmstream.errors import InvalidArgumentError, ProviderUnavailableError
from llmstream.provider.base import Provider
from llmstream.stream.sse import KEEPALIVE_INTERVAL, SSE_HEADERS, sse_frames

logger = logging.getLogger(__name__)


async def relay_frames(frames: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield SSE frames to the response, logging clients that leave early"""
    finished = False
    try:
        async for frame in frames:
            yield frame
        finished = True
    finally:
        if not finished:
            logger.info("Client disconnected before the stream finished")
        await frames.aclose()


class ChatRequest(BaseModel):
    messages: list[dict]
    tools: list[dict] | None = None
    tool_choice: ToolChoice = ToolChoice.AUTO


def create_app(provider: Provider, keepalive_interval: float = KEEPALIVE_INTERVAL) -> FastAPI:
    app = FastAPI(title="llmstream", version=__version__)

    @app.get("/health")
    async def health():
        return {"status": "ok", "provider": provider.name, "model": provider.model}

    @app.post("/chat")
    async def chat(request: ChatRequest):
        try:
            messages = [Message.from_dict(m) for m in request.messages]
            tools = [Tool.from_dict(t) for t in request.tools or []]
            result = await provider.chat_stream_with_tools_and_usage(
                messages, tools, request.tool_choice
            )
        except InvalidArgumentError as e:
            return JSONResponse({"error": str(e)}, status_code=400)
        except ProviderUnavailableError as e:
            logger.error(f"stream error: {e}")
            return JSONResponse({"error": "Failed to stream from provider"}, status_code=502)

        frames = sse_frames(
            result.channel,
            get_usage=result.get_usage,
            keepalive_interval=keepalive_interval,
        )
        return StreamingResponse(relay_frames(frames), media_type="text/event-stream", headers=SSE_HEADERS)

    return app


def start_server(provider: Provider, host: str = "0.0.0.0", port: int = 8080, keepalive_interval: float = KEEPALIVE_INTERVAL):
    import uvicorn
    logger.info(f"Listening on http://{host}:{port}")
    uvicorn.run(create_app(provider, keepalive_interval), host=host, port=port)
