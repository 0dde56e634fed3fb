"""
Authentication Package

Access checks applied by the gateway before any request is forwarded.

Modules:
- access: ``authorize(request, provider) -> AuthDecision`` used by the proxy
- session: Session JWT creation and verification (PyJWT)
"""

from .access import authorize

__all__ = [
    "authorize",
]
