"""
Proxy Routes - Upstream Inference Server Forwarding
====================================================

This module implements the gateway endpoint that forwards allow-listed
requests to the upstream Ollama server and streams its response back.

Request Gating (in order):
--------------------------
1. OPTIONS requests short-circuit with 200 (no forwarding)
2. The subpath must be one of the allow-listed upstream paths (403 otherwise)
3. The access check must allow the request (401 otherwise)

Relay:
------
- Method and body are forwarded unchanged with a fixed JSON content type
- Status and headers are passed through, minus ``www-authenticate``
  (browser credential prompts) and hop-by-hop headers
- ``X-Accel-Buffering: no`` is set so nginx does not buffer the stream
- The body is relayed chunk by chunk without buffering

Endpoints:
----------
- GET|POST|OPTIONS /api/ollama/{path}
"""

import asyncio
import logging
from typing import AsyncIterator, FrozenSet, List, Tuple

import httpx
from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse, StreamingResponse

from ..auth import authorize
from ..config import get_settings, normalize_base_url
from ..constants import ModelProvider, OllamaPath
from ..models import ErrorResponse
from ..utils.format import describe_exception

logger = logging.getLogger(__name__)

proxy_router = APIRouter()

ALLOWED_PATHS: FrozenSet[str] = frozenset(path.value for path in OllamaPath)

HOP_BY_HOP_HEADERS = frozenset({"connection", "keep-alive", "transfer-encoding"})
STRIPPED_HEADERS = HOP_BY_HOP_HEADERS | {"www-authenticate"}


# ============================================================================
# Dependencies
# ============================================================================

def get_upstream_client(request: Request) -> httpx.AsyncClient:
    """
    Get the shared upstream HTTP client from app state.

    Raises:
        HTTPException: 503 if the client has not been initialised
    """
    if not hasattr(request.app.state, "app_state"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Upstream client not initialized"
        )

    client = request.app.state.app_state.upstream_client
    if not client:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Upstream client not available"
        )

    return client


# ============================================================================
# Forwarding Helpers
# ============================================================================

def build_upstream_url(base_url: str, subpath: str, query: str = "") -> str:
    """
    Join the normalized upstream base URL, the subpath and the query string.

    Example:
        >>> build_upstream_url("example.com/", "api/chat")
        'https://example.com/api/chat'
    """
    url = f"{normalize_base_url(base_url)}/{subpath}"
    if query:
        url = f"{url}?{query}"
    return url


def build_response_headers(upstream_headers: httpx.Headers) -> List[Tuple[str, str]]:
    """
    Copy upstream headers for the client, sanitized for streaming.

    Repeated headers (e.g. several Set-Cookie lines) stay separate entries.
    """
    headers = [
        (key, value)
        for key, value in upstream_headers.multi_items()
        if key.lower() not in STRIPPED_HEADERS
    ]
    headers.append(("X-Accel-Buffering", "no"))
    return headers


def _status_for(exc: BaseException) -> int:
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return status.HTTP_504_GATEWAY_TIMEOUT
    if isinstance(exc, httpx.NetworkError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_502_BAD_GATEWAY


async def relay_body(upstream: httpx.Response, deadline: float) -> AsyncIterator[bytes]:
    """
    Yield the upstream body byte-for-byte until it ends or the deadline passes.

    The upstream response is always closed, including when the client
    disconnects and the relay is cancelled.
    """
    chunks = upstream.aiter_raw()
    try:
        while True:
            try:
                async with asyncio.timeout_at(deadline):
                    chunk = await anext(chunks)
            except StopAsyncIteration:
                break
            yield chunk
    except TimeoutError:
        logger.warning("[Ollama] upstream relay exceeded the proxy deadline")
    except httpx.HTTPError as e:
        logger.warning(f"[Ollama] upstream relay interrupted: {e}")
    finally:
        await upstream.aclose()


# ============================================================================
# Proxy Endpoint
# ============================================================================

@proxy_router.api_route("/{subpath:path}", methods=["GET", "POST", "OPTIONS"])
async def handle(request: Request, subpath: str):
    """
    Forward an allow-listed request to the upstream Ollama server.

    ``subpath`` is the trailing path segments joined with '/'.

    Returns:
        Streaming upstream response, or a JSON error body
    """
    logger.info("[Ollama Route] params", extra={"subpath": subpath, "method": request.method})

    if request.method == "OPTIONS":
        return JSONResponse({"body": "OK"}, status_code=status.HTTP_200_OK)

    if subpath not in ALLOWED_PATHS:
        logger.info(f"[Ollama Route] forbidden path {subpath}")
        return JSONResponse(
            ErrorResponse(msg=f"you are not allowed to request {subpath}").model_dump(),
            status_code=status.HTTP_403_FORBIDDEN,
        )

    auth_result = authorize(request, ModelProvider.OLLAMA)
    if auth_result.error:
        return JSONResponse(
            auth_result.model_dump(exclude_none=True),
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    upstream_client = get_upstream_client(request)
    settings = get_settings()

    try:
        base_url = settings.ollama_base_url
        fetch_url = build_upstream_url(base_url, subpath, request.url.query)
        logger.info(f"[Proxy] {subpath}")
        logger.info(f"[Base Url] {base_url}")

        deadline = asyncio.get_running_loop().time() + settings.PROXY_TIMEOUT_SECONDS

        upstream_request = upstream_client.build_request(
            request.method,
            fetch_url,
            headers={"Content-Type": "application/json"},
            content=request.stream() if request.method != "GET" else None,
        )

        async with asyncio.timeout_at(deadline):
            upstream = await upstream_client.send(
                upstream_request,
                stream=True,
                follow_redirects=False,
            )

    except Exception as e:
        logger.error(f"[Ollama] {e}", exc_info=True)
        return JSONResponse(describe_exception(e), status_code=_status_for(e))

    response = StreamingResponse(
        relay_body(upstream, deadline),
        status_code=upstream.status_code,
    )
    for key, value in build_response_headers(upstream.headers):
        response.headers.append(key, value)
    return response
