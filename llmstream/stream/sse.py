"""SSE wire transcoder.

Frames, each followed by a blank line:

    f:{"messageId":"msg-<id>"}          start
    0:"<fragment>"                      token
    :keepalive                          keep-alive comment
    d:{"finishReason":"stop",...}       finish
    e:{"finishReason":"stop",...}       end
"""

import asyncio
import json
import logging
import uuid
from typing import AsyncIterator, Awaitable, Callable

from llmstream.chat.usage import UsageMetadata
from llmstream.errors import ChannelClosed, TransportWriteError
from .channel import TokenChannel

logger = logging.getLogger(__name__)

KEEPALIVE_INTERVAL = 30.0
KEEPALIVE_FRAME = ":keepalive\n\n"

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def _dumps(value) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def new_message_id() -> str:
    return f"msg-{uuid.uuid4().hex}"


def start_frame(message_id: str) -> str:
    return f"f:{_dumps({'messageId': message_id})}\n\n"


def token_frame(fragment: str) -> str:
    return f"0:{_dumps(fragment)}\n\n"


def finish_frames(usage: UsageMetadata | None = None) -> str:
    """The terminal d/e frame pair"""
    usage = usage or UsageMetadata()
    counts = {
        "promptTokens": usage.prompt_tokens,
        "completionTokens": usage.completion_tokens,
    }
    d = _dumps({"finishReason": "stop", "usage": counts})
    e = _dumps({"finishReason": "stop", "usage": counts, "isContinued": False})
    return f"d:{d}\n\ne:{e}\n\n"


async def sse_frames(
    channel: TokenChannel,
    *,
    get_usage: Callable[[], UsageMetadata | None] | None = None,
    keepalive_interval: float = KEEPALIVE_INTERVAL,
    message_id: str | None = None,
) -> AsyncIterator[str]:
    """Transcode a token channel into SSE frames.

    Emits the start frame, one token frame per non-empty fragment, a keep-alive
    frame for each idle period, and the finish/end pair once the channel
    closes. If the generator is cancelled or closed early no terminal frames
    are produced and the channel's producer is stopped.
    """
    message_id = message_id or new_message_id()
    yield start_frame(message_id)

    loop = asyncio.get_running_loop()
    next_tick = loop.time() + keepalive_interval
    try:
        while True:
            timeout = max(0.0, next_tick - loop.time())
            try:
                fragment = await asyncio.wait_for(channel.receive(), timeout)
            except asyncio.TimeoutError:
                now = loop.time()
                while next_tick <= now:
                    next_tick += keepalive_interval
                yield KEEPALIVE_FRAME
                continue
            except ChannelClosed:
                usage = get_usage() if get_usage else None
                yield finish_frames(usage)
                return

            if not fragment:
                continue
            yield token_frame(fragment)
    finally:
        await channel.aclose()


async def write_sse(
    channel: TokenChannel,
    write: Callable[[bytes], Awaitable[None]],
    **kwargs,
):
    """Drive sse_frames into an async write callable, one call per frame"""
    frames = sse_frames(channel, **kwargs)
    try:
        async for frame in frames:
            try:
                await write(frame.encode("utf-8"))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"SSE write failed: {e}")
                raise TransportWriteError(str(e)) from e
    finally:
        await frames.aclose()
