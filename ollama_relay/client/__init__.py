"""
Client Package
==============

Caller-side adapter for chatting with Ollama through the gateway.

Usage:
------
    from ollama_relay.client import ChatOptions, LLMConfig, OllamaRelayClient

    client = OllamaRelayClient()
    await client.chat(ChatOptions(
        messages=[{"role": "user", "content": "Hello"}],
        config=LLMConfig(model="llama3.2"),
        on_update=lambda text, delta: print(delta, end=""),
        on_finish=lambda text: print(),
    ))
"""

from .relay import (
    ChatAbortedError,
    ChatController,
    ChatOptions,
    EmptyResponseError,
    LLMConfig,
    OllamaRelayClient,
    StreamState,
    pacing_slice_size,
)
from .sse import ServerSentEvent, aiter_sse

__all__ = [
    "ChatAbortedError",
    "ChatController",
    "ChatOptions",
    "EmptyResponseError",
    "LLMConfig",
    "OllamaRelayClient",
    "ServerSentEvent",
    "StreamState",
    "aiter_sse",
    "pacing_slice_size",
]
