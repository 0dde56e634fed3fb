"""
Proxy Package
=============

This package implements the gateway endpoint that forwards allow-listed
requests to the upstream inference server and relays its stream back.

Main Components:
----------------
- routes.py: FastAPI router mounted under /api/ollama

Usage:
------
    from ollama_relay.proxy import proxy_router
    app.include_router(proxy_router, prefix="/api/ollama")
"""

from .routes import ALLOWED_PATHS, proxy_router

__all__ = ["ALLOWED_PATHS", "proxy_router"]
