"""
Ollama Relay
============

Streaming gateway and client for chatting with an Ollama inference server.

Components:
    - Gateway (ollama_relay.main, ollama_relay.proxy): FastAPI service that
      forwards allow-listed, authorized requests to Ollama and streams the
      response back untouched apart from header sanitization.
    - Relay client (ollama_relay.client): sends chat requests to the gateway,
      parses the server-sent-event stream and paces partial text out to
      caller callbacks.
"""

__version__ = "1.0.0"
