from .channel import TokenChannel, UsageBox, StreamResult, spawn_stream
from .sse import SSE_HEADERS, sse_frames, write_sse

__all__ = [
    "TokenChannel",
    "UsageBox",
    "StreamResult",
    "spawn_stream",
    "SSE_HEADERS",
    "sse_frames",
    "write_sse",
]
