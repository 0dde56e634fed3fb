"""
Configuration module for the Ollama Relay gateway and client.

This module uses Pydantic Settings to load and validate environment variables
for the upstream inference server, access control, session tokens, CORS and
logging.

Environment variables are loaded from .env file or system environment.
"""

import hashlib
import logging
from functools import lru_cache
from typing import List, Optional, Set

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    FRAME_INTERVAL_SECONDS,
    OLLAMA_BASE_URL,
    PROXY_TIMEOUT_SECONDS,
    REQUEST_TIMEOUT_SECONDS,
)


def normalize_base_url(base_url: str) -> str:
    """
    Normalize an upstream base URL.

    Prefixes ``https://`` when the URL carries no scheme and strips a single
    trailing slash.

    Example:
        >>> normalize_base_url("example.com/")
        'https://example.com'
    """
    if not base_url.startswith("http"):
        base_url = f"https://{base_url}"

    if base_url.endswith("/"):
        base_url = base_url[:-1]

    return base_url


class Settings(BaseSettings):
    """
    Gateway settings loaded from environment variables.

    Every field has a default so the gateway starts against a local Ollama
    server with no configuration at all.
    """

    # =========================================================================
    # Upstream Inference Server
    # =========================================================================

    OLLAMA_URL: Optional[str] = Field(
        None,
        description="Upstream base URL override (e.g., http://ollama:11434)",
    )

    PROXY_TIMEOUT_SECONDS: float = Field(
        default=PROXY_TIMEOUT_SECONDS,
        description="Deadline for a forwarded request, body relay included",
        gt=0,
    )

    # =========================================================================
    # Access Control
    # =========================================================================

    CODE: Optional[str] = Field(
        None,
        description="Comma-separated access codes (leave empty to disable codes)",
    )

    SESSION_JWT_SECRET: Optional[str] = Field(
        None,
        description="Secret for verifying session JWTs (leave empty to disable)",
    )

    SESSION_JWT_ALGORITHM: str = Field(
        default="HS256",
        description="JWT signing algorithm (HS256, HS384, or HS512)",
    )

    SESSION_JWT_EXPIRY_MINUTES: int = Field(
        default=60,
        description="Session JWT expiry time in minutes",
        ge=5,
        le=1440,
    )

    JWT_ISSUER: str = Field(
        default="ollama-relay",
        description="Issuer claim expected on session JWTs",
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    GATEWAY_HOST: str = Field(default="0.0.0.0")

    GATEWAY_PORT: int = Field(default=8080, ge=1, le=65535)

    ALLOWED_ORIGINS: Optional[str] = Field(
        None,
        description="Comma-separated list of allowed CORS origins",
    )

    LOG_LEVEL: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def ollama_base_url(self) -> str:
        """Configured (or default) upstream base URL, normalized."""
        return normalize_base_url(self.OLLAMA_URL or OLLAMA_BASE_URL)

    @property
    def access_codes(self) -> Set[str]:
        """
        MD5 hex digests of the configured access codes.

        Clients send the plain code; the gateway compares digests.
        """
        if not self.CODE:
            return set()

        return {
            hashlib.md5(code.strip().encode("utf-8")).hexdigest()
            for code in self.CODE.split(",")
            if code.strip()
        }

    @property
    def need_code(self) -> bool:
        return len(self.access_codes) > 0

    @property
    def allowed_origins_list(self) -> List[str]:
        if not self.ALLOWED_ORIGINS:
            return []

        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("SESSION_JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        allowed_algorithms = ["HS256", "HS384", "HS512"]

        if v not in allowed_algorithms:
            raise ValueError(
                f"JWT algorithm must be one of {allowed_algorithms}, got: {v}"
            )

        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level


class RelayClientSettings(BaseSettings):
    """
    Caller-side settings for the stream relay client.

    Read from ``RELAY_``-prefixed environment variables.
    """

    GATEWAY_URL: str = Field(
        default="http://localhost:8080",
        description="Base URL of the gateway serving /api/ollama/*",
    )

    ACCESS_CODE: Optional[str] = Field(
        None,
        description="Access code sent as 'Bearer nk-<code>'",
    )

    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=REQUEST_TIMEOUT_SECONDS,
        description="Connect / first-byte timeout; the stream itself is unbounded",
        gt=0,
    )

    FRAME_INTERVAL_SECONDS: float = Field(
        default=FRAME_INTERVAL_SECONDS,
        description="Delay between two pacing ticks",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Cached so the environment is read once per process.
    """
    return Settings()


def validate_configuration(settings: Optional[Settings] = None) -> dict:
    """
    Validate configuration settings and return a status report.

    Called during application startup; errors and warnings are logged.

    Example:
        >>> status = validate_configuration()
        >>> if not status["valid"]:
        ...     print(status["errors"])
    """
    settings = settings or get_settings()
    errors = []
    warnings = []

    if settings.SESSION_JWT_SECRET and len(settings.SESSION_JWT_SECRET) < 32:
        errors.append("SESSION_JWT_SECRET is too short (minimum 32 characters)")

    if not settings.need_code and not settings.SESSION_JWT_SECRET:
        warnings.append(
            "Neither CODE nor SESSION_JWT_SECRET is set; the gateway is open to anyone"
        )

    if not settings.OLLAMA_URL:
        warnings.append(
            f"OLLAMA_URL is not set, falling back to {OLLAMA_BASE_URL}"
        )

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "upstream": settings.ollama_base_url,
    }
