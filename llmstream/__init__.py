"""Provider-agnostic LLM chat streaming with an SSE wire format"""

__version__ = "0.1.0"
