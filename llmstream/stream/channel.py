"""Single-producer/single-consumer fragment channel and usage side channel"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable

from llmstream.chat.usage import UsageMetadata
from llmstream.errors import ChannelClosed

logger = logging.getLogger(__name__)

_CLOSED = object()


class TokenChannel:
    """Ordered stream of text and tool-call fragments.

    The producer calls ``send`` and finally ``close``. The consumer either
    iterates with ``async for`` or calls ``receive`` until it raises
    ``ChannelClosed``. Closure is the only end-of-stream signal.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._drained = False
        self._producer: asyncio.Task | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, fragment: str):
        if self._closed:
            raise ChannelClosed("send on closed channel")
        self._queue.put_nowait(fragment)

    def close(self):
        """Close the channel. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def receive(self) -> str:
        """Wait for the next fragment; raises ChannelClosed after the last one"""
        if self._drained:
            raise ChannelClosed("channel is closed")
        item = await self._queue.get()
        if item is _CLOSED:
            self._drained = True
            raise ChannelClosed("channel is closed")
        return item

    def attach(self, producer: asyncio.Task):
        self._producer = producer

    async def aclose(self):
        """Stop the producer, release its vendor stream and close the channel"""
        producer = self._producer
        try:
            if producer is not None and not producer.done():
                producer.cancel()
                # wait() does not re-raise the producer's cancellation, only our own
                await asyncio.wait([producer])
        finally:
            self.close()

    def __aiter__(self) -> AsyncIterator[str]:
        return self

    async def __anext__(self) -> str:
        try:
            return await self.receive()
        except ChannelClosed:
            raise StopAsyncIteration


class UsageBox:
    """Holds usage metadata written by the producer and read by the caller"""

    def __init__(self):
        self._lock = threading.Lock()
        self._usage: UsageMetadata | None = None

    def set(self, usage: UsageMetadata):
        with self._lock:
            self._usage = usage

    def get(self) -> UsageMetadata | None:
        with self._lock:
            return self._usage


@dataclass
class StreamResult:
    """Output channel plus deferred usage metadata.

    ``get_usage()`` returns None until the producer has captured usage. Drain
    the channel first for a reliable read.
    """
    channel: TokenChannel
    usage: UsageBox = field(default_factory=UsageBox)

    def get_usage(self) -> UsageMetadata | None:
        return self.usage.get()

    def __aiter__(self) -> AsyncIterator[str]:
        return self.channel.__aiter__()


def spawn_stream(
    drain: Callable[[TokenChannel], Awaitable[None]],
    release: Callable[[], Awaitable[None]],
    *,
    name: str = "llmstream",
) -> TokenChannel:
    """Run drain(channel) on its own task.

    release() always runs and the channel is always closed, whether the drain
    finishes, fails or is cancelled. Drain failures are logged and end the
    stream early.
    """
    channel = TokenChannel()

    async def _run():
        try:
            await drain(channel)
        except asyncio.CancelledError:
            logger.debug(f"{name}: stream cancelled")
            raise
        except Exception as e:
            logger.warning(f"{name}: stream interrupted: {e}")
        finally:
            try:
                await release()
            except Exception as e:
                logger.debug(f"{name}: failed to release stream: {e}")
            finally:
                channel.close()

    channel.attach(asyncio.create_task(_run(), name=name))
    return channel
