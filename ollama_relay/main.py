"""
FastAPI Gateway Application Factory
====================================

Entry point for the gateway that sits between chat clients and an Ollama
inference server.

Architecture:
    Chat client (OllamaRelayClient) → Gateway (this service) → Ollama

Routers:
    - /api/ollama/* : Allow-listed, authorized requests streamed to Ollama
    - /health       : Health check endpoint

Environment Variables:
    - OLLAMA_URL: Upstream base URL (default: http://localhost:11434)
    - CODE: Comma-separated access codes
    - SESSION_JWT_SECRET: Secret for session JWTs accepted instead of codes
    - ALLOWED_ORIGINS: Comma-separated CORS origins
    - PROXY_TIMEOUT_SECONDS: Deadline for a forwarded request (default: 600)
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn ollama_relay.main:app --reload --host 0.0.0.0 --port 8080

    Production:
        uvicorn ollama_relay.main:app --host 0.0.0.0 --port 8080 --workers 4
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings, validate_configuration
from .constants import OLLAMA_ROUTE_PREFIX
from .proxy import ALLOWED_PATHS, proxy_router


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


class AppState:
    """
    Global application state container.

    Holds the shared upstream HTTP client and the loaded settings.
    """
    def __init__(self):
        self.upstream_client: Optional[httpx.AsyncClient] = None
        self.settings: Optional[Settings] = None


app_state = AppState()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
        - Load configuration and configure logging
        - Report configuration problems
        - Create the shared upstream HTTP client

    Shutdown:
        - Close the upstream HTTP client
    """
    settings = get_settings()
    app_state.settings = settings

    setup_logging(settings.LOG_LEVEL)
    logger = logging.getLogger("ollama_relay.main")

    report = validate_configuration(settings)
    for error in report["errors"]:
        logger.error(f"Configuration error: {error}")
    for warning in report["warnings"]:
        logger.warning(f"Configuration warning: {warning}")

    # Per-request deadlines are enforced by the proxy; reads may idle while
    # the model is thinking.
    app_state.upstream_client = httpx.AsyncClient(
        timeout=httpx.Timeout(None, connect=10.0),
    )

    logger.info(
        "Gateway started",
        extra={
            "upstream": settings.ollama_base_url,
            "allowed_paths": sorted(ALLOWED_PATHS),
            "log_level": settings.LOG_LEVEL,
        }
    )

    yield

    logger.info("Shutting down gateway")
    if app_state.upstream_client is not None:
        await app_state.upstream_client.aclose()
        app_state.upstream_client = None
    logger.info("Gateway shutdown complete")


def create_application() -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Lifespan management
        - CORS middleware
        - Route handlers
        - Exception handlers

    Returns:
        FastAPI: Configured application instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Ollama Relay Gateway",
        description="Streaming proxy between chat clients and an Ollama server",
        version="1.0.0",
        lifespan=lifespan,
    )

    origins = settings.allowed_origins_list
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
            expose_headers=["*"]
        )

    app.include_router(
        proxy_router,
        prefix=OLLAMA_ROUTE_PREFIX,
        tags=["Ollama Proxy"]
    )

    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, str]:
        return {
            "status": "ok",
            "service": "ollama-relay",
            "version": "1.0.0"
        }

    @app.get("/", tags=["System"])
    async def root() -> Dict[str, Any]:
        """Service metadata and available endpoints."""
        return {
            "service": "ollama-relay",
            "version": "1.0.0",
            "endpoints": {
                "health": "/health",
                "docs": "/docs",
                "ollama": OLLAMA_ROUTE_PREFIX,
            },
            "allowed_paths": sorted(ALLOWED_PATHS),
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Log unhandled errors and return a standardized error response."""
        logger = logging.getLogger("ollama_relay.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": True,
                "msg": "An unexpected error occurred",
                "detail": str(exc) if settings.LOG_LEVEL == "DEBUG" else None
            }
        )

    app.state.app_state = app_state
    return app


app = create_application()


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "ollama_relay.main:app",
        host=settings.GATEWAY_HOST,
        port=settings.GATEWAY_PORT,
        log_level=settings.LOG_LEVEL.lower()
    )
