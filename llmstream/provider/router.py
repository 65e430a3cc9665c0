"""Provider selection from configuration"""

from typing import Dict, Type

from llmstream.config import ProviderConfig
from llmstream.errors import ConfigurationError
from .base import Provider
from .bedrock import BedrockProvider
from .gemini import GeminiProvider
from .openai import OpenAIProvider


PROVIDERS: Dict[str, Type[Provider]] = {
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
    "bedrock": BedrockProvider,
}


def get_provider(config: ProviderConfig) -> Provider:
    """Build the provider named by config.provider"""
    name = config.provider
    if name not in PROVIDERS:
        supported = ", ".join(PROVIDERS)
        raise ConfigurationError(f"Unsupported provider: {name!r}. Supported: {supported}")

    if name == "openai":
        if not config.api_key or not config.model:
            raise ConfigurationError("missing OPENAI_API_KEY or OPENAI_MODEL")
        return OpenAIProvider(
            model=config.model,
            api_key=config.api_key,
            temperature=config.temperature,
            base_url=config.base_url,
        )

    if name == "gemini":
        if not config.api_key or not config.model:
            raise ConfigurationError("missing GEMINI_API_KEY or GEMINI_MODEL")
        return GeminiProvider(
            model=config.model,
            api_key=config.api_key,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            base_url=config.base_url,
        )

    if not config.model:
        raise ConfigurationError("missing BEDROCK_MODEL")
    return BedrockProvider(
        model=config.model,
        region=config.region,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )
