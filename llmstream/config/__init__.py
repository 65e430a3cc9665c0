from .config import ProviderConfig, ServerConfig

__all__ = ["ProviderConfig", "ServerConfig"]
