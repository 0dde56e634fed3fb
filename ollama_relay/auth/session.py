"""
JWT Session Module
==================

Creation and verification of session JWTs accepted by the gateway as an
alternative to access codes. HMAC algorithms only; the secret and algorithm
come from settings.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import HTTPException, status
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class JWTSessionError(Exception):
    """Base exception for JWT session errors"""
    pass


# =============================================================================
# Token Creation
# =============================================================================

def create_session_jwt(
    claims: Dict[str, Any],
    settings: Optional[Settings] = None,
) -> str:
    """
    Create a session JWT with the provided claims.

    Args:
        claims: Claims to include; 'sub' is required.
        settings: Settings override (defaults to the process settings)

    Returns:
        Encoded JWT string

    Raises:
        JWTSessionError: If the secret is missing or a required claim is absent
    """
    settings = settings or get_settings()

    if not settings.SESSION_JWT_SECRET:
        raise JWTSessionError("SESSION_JWT_SECRET not configured")

    payload = claims.copy()
    if "sub" not in payload:
        raise JWTSessionError("Missing required claim: 'sub' (subject/user ID)")

    now = datetime.now(timezone.utc)
    payload.update({
        "iat": now,
        "exp": now + timedelta(minutes=settings.SESSION_JWT_EXPIRY_MINUTES),
        "iss": settings.JWT_ISSUER,
    })

    token = jwt.encode(
        payload,
        settings.SESSION_JWT_SECRET,
        algorithm=settings.SESSION_JWT_ALGORITHM,
    )

    logger.debug(
        "Created session JWT",
        extra={
            "user_id": payload.get("sub"),
            "expires_in_minutes": settings.SESSION_JWT_EXPIRY_MINUTES,
        },
    )
    return token


# =============================================================================
# Token Verification
# =============================================================================

def verify_session_jwt(
    token: str,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    """
    Verify and decode a session JWT.

    Args:
        token: JWT string to verify
        settings: Settings override (defaults to the process settings)

    Returns:
        Dictionary containing the decoded claims

    Raises:
        HTTPException: 401 for missing, expired or invalid tokens
    """
    settings = settings or get_settings()

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authentication token provided",
        )

    if not settings.SESSION_JWT_SECRET:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session tokens are not enabled",
        )

    try:
        decoded = jwt.decode(
            token,
            settings.SESSION_JWT_SECRET,
            algorithms=[settings.SESSION_JWT_ALGORITHM],
            issuer=settings.JWT_ISSUER,
            options={"require": ["exp", "iat", "sub"]},
        )
    except ExpiredSignatureError:
        logger.warning("JWT token expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
        )
    except InvalidTokenError as e:
        logger.warning(f"Invalid JWT token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
        )

    logger.debug("JWT verified", extra={"user_id": decoded.get("sub")})
    return decoded


# =============================================================================
# Helper Functions
# =============================================================================

def extract_token_from_header(authorization: Optional[str]) -> str:
    """
    Extract the Bearer token from an Authorization header.

    Returns an empty string when the header is missing, not a Bearer header,
    or carries no token.
    """
    if not authorization:
        return ""

    parts = authorization.strip().split(None, 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""

    return parts[1].strip()


__all__ = [
    "JWTSessionError",
    "create_session_jwt",
    "verify_session_jwt",
    "extract_token_from_header",
]
