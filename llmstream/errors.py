"""Error types raised by llmstream"""


class LLMStreamError(Exception):
    """Base class for all llmstream errors"""


class InvalidArgumentError(LLMStreamError, ValueError):
    """Raised before any network call when the request is malformed"""


class ProviderUnavailableError(LLMStreamError):
    """Raised when a vendor client cannot be built or the vendor call fails to start"""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class ConfigurationError(LLMStreamError):
    """Raised when provider configuration is missing or unknown"""


class TransportWriteError(LLMStreamError):
    """Raised when the SSE transcoder cannot write to the outbound transport"""


class ChannelClosed(LLMStreamError):
    """Raised by TokenChannel.receive() once the channel is closed and drained"""
