"""
Shared constants for the gateway and the relay client.
"""

from enum import Enum


class OllamaPath(str, Enum):
    """Upstream subpaths the gateway is allowed to forward to."""

    CHAT_PATH = "api/chat"
    OPENAI_COMPATIBLE_CHAT_PATH = "v1/chat/completions"


class ModelProvider(str, Enum):
    """Provider tags handed to the authorization check."""

    GPT = "GPT"
    OLLAMA = "Ollama"


class ServiceProvider(str, Enum):
    """Service tags used to select provider-specific behaviour."""

    OPENAI = "OpenAI"
    AZURE = "Azure"
    OLLAMA = "Ollama"


OLLAMA_BASE_URL = "http://localhost:11434"

# Gateway route prefix; the trailing segments are the upstream subpath
OLLAMA_ROUTE_PREFIX = "/api/ollama"

PROXY_TIMEOUT_SECONDS = 10 * 60
REQUEST_TIMEOUT_SECONDS = 60

# Pacing: drain ~1/60th of the pending backlog per frame
PACING_DIVISOR = 60
FRAME_INTERVAL_SECONDS = 1 / 60

EVENT_STREAM_CONTENT_TYPE = "text/event-stream"
DONE_SENTINEL = "[DONE]"

ACCESS_CODE_PREFIX = "nk-"

UNAUTHORIZED_NOTICE = (
    "Unauthorized access, please enter a valid access code "
    "or session token to use this gateway."
)
