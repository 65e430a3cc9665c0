"""Configuration management"""

import json
import logging
import os
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


def _parse_float(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring unparseable float value: {value!r}")
        return None


def _parse_int(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring unparseable integer value: {value!r}")
        return None


class ProviderConfig(BaseModel):
    """Everything needed to construct one provider"""
    provider: str = ""
    model: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    region: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ProviderConfig":
        """Read provider settings from environment variables.

        LLM_PROVIDER picks the vendor; the remaining variables depend on it:
        OPENAI_API_KEY/OPENAI_MODEL/OPENAI_BASE_URL, GEMINI_API_KEY/GEMINI_MODEL,
        AWS_REGION/BEDROCK_MODEL. TEMPERATURE and MAX_TOKENS apply to all.
        """
        env = os.environ if environ is None else environ
        provider = env.get("LLM_PROVIDER", "")

        config = cls(
            provider=provider,
            temperature=_parse_float(env.get("TEMPERATURE")),
            max_tokens=_parse_int(env.get("MAX_TOKENS")),
        )

        if provider == "openai":
            config.api_key = env.get("OPENAI_API_KEY")
            config.model = env.get("OPENAI_MODEL")
            config.base_url = env.get("OPENAI_BASE_URL")
        elif provider == "gemini":
            config.api_key = env.get("GEMINI_API_KEY")
            config.model = env.get("GEMINI_MODEL")
            config.base_url = env.get("GEMINI_BASE_URL")
        elif provider == "bedrock":
            config.region = env.get("AWS_REGION") or "us-east-1"
            config.model = env.get("BEDROCK_MODEL")

        return config


class ServerConfig(BaseModel):
    """HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 8080
    keepalive_interval: float = 30.0
    provider: ProviderConfig = Field(default_factory=ProviderConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "ServerConfig":
        """Load config from a JSON file, falling back to the environment"""
        if path is None:
            candidates = [
                Path.cwd() / "llmstream.json",
                Path.home() / ".config" / "llmstream" / "config.json",
            ]
            for p in candidates:
                if p.exists():
                    path = p
                    break

        if path and path.exists():
            data = json.loads(path.read_text())
            if "provider" not in data:
                data["provider"] = ProviderConfig.from_env()
            return cls(**data)

        return cls(provider=ProviderConfig.from_env())

    def save(self, path: Path):
        """Save config to file"""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2))
