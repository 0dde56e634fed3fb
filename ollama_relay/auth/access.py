"""
Access check consumed by the gateway.

``authorize`` never raises: a denied request is reported through an
``AuthDecision`` with ``error=True`` and the gateway turns that into a 401.

Accepted credentials, both sent as ``Authorization: Bearer <token>``:
    - ``nk-<access code>``: checked against the MD5 digests of ``CODE``
    - a session JWT: verified when ``SESSION_JWT_SECRET`` is configured
"""

import hashlib
import logging
from typing import Optional

from fastapi import HTTPException, Request

from ..config import Settings, get_settings
from ..constants import ACCESS_CODE_PREFIX, ModelProvider
from ..models import AuthDecision
from .session import extract_token_from_header, verify_session_jwt

logger = logging.getLogger(__name__)


def authorize(
    request: Request,
    provider: ModelProvider,
    settings: Optional[Settings] = None,
) -> AuthDecision:
    """
    Decide whether ``request`` may use the upstream of ``provider``.

    Args:
        request: Inbound request
        provider: Provider tag of the route being accessed
        settings: Settings override (defaults to the process settings)

    Returns:
        AuthDecision with ``error=False`` when allowed
    """
    settings = settings or get_settings()
    token = extract_token_from_header(request.headers.get("Authorization"))

    if token and not token.startswith(ACCESS_CODE_PREFIX) and settings.SESSION_JWT_SECRET:
        try:
            claims = verify_session_jwt(token, settings)
        except HTTPException as e:
            logger.info(f"[Auth] session token rejected for {provider.value}: {e.detail}")
            return AuthDecision(error=True, msg=str(e.detail), status=e.status_code)

        logger.debug(f"[Auth] session token accepted for {provider.value}",
                     extra={"user_id": claims.get("sub")})
        return AuthDecision(error=False)

    access_code = token[len(ACCESS_CODE_PREFIX):] if token.startswith(ACCESS_CODE_PREFIX) else ""
    hashed_code = hashlib.md5(access_code.encode("utf-8")).hexdigest() if access_code else ""

    if settings.need_code:
        if not access_code:
            return AuthDecision(error=True, msg="empty access code")
        if hashed_code not in settings.access_codes:
            logger.info(f"[Auth] wrong access code for {provider.value}")
            return AuthDecision(error=True, msg="wrong access code")

    return AuthDecision(error=False)
