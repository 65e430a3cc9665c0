from .base import Provider
from .router import PROVIDERS, get_provider

__all__ = ["Provider", "PROVIDERS", "get_provider"]
