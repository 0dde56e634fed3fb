"""
Configuration Tests

Tests settings validation, computed properties and the startup
configuration report.
"""

import pytest
from pydantic import ValidationError

from ollama_relay.config import (
    RelayClientSettings,
    Settings,
    normalize_base_url,
    validate_configuration,
)


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


@pytest.mark.parametrize("raw,expected", [
    ("http://localhost:11434", "http://localhost:11434"),
    ("http://localhost:11434/", "http://localhost:11434"),
    ("https://ollama.example.com/", "https://ollama.example.com"),
    ("ollama.example.com", "https://ollama.example.com"),
    ("ollama.example.com//", "https://ollama.example.com/"),
])
def test_normalize_base_url(raw, expected):
    assert normalize_base_url(raw) == expected


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("OLLAMA_URL", "CODE", "SESSION_JWT_SECRET", "ALLOWED_ORIGINS", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        settings = make_settings()

        assert settings.ollama_base_url == "http://localhost:11434"
        assert settings.PROXY_TIMEOUT_SECONDS == 600
        assert settings.need_code is False
        assert settings.allowed_origins_list == []
        assert settings.LOG_LEVEL == "INFO"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_URL", "gpu-box:11434/")
        monkeypatch.setenv("CODE", "abc")

        settings = make_settings()

        assert settings.ollama_base_url == "https://gpu-box:11434"
        assert settings.need_code is True

    def test_allowed_origins_list(self):
        settings = make_settings(ALLOWED_ORIGINS="http://a.test, http://b.test,")

        assert settings.allowed_origins_list == ["http://a.test", "http://b.test"]

    def test_log_level_normalized(self):
        assert make_settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(LOG_LEVEL="chatty")

    def test_asymmetric_algorithm_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(SESSION_JWT_ALGORITHM="RS256")

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(PROXY_TIMEOUT_SECONDS=0)


class TestValidateConfiguration:

    def test_open_gateway_warns(self):
        status = validate_configuration(make_settings(OLLAMA_URL="http://ollama:11434"))

        assert status["valid"] is True
        assert status["upstream"] == "http://ollama:11434"
        assert any("open to anyone" in w for w in status["warnings"])

    def test_missing_upstream_warns(self):
        status = validate_configuration(make_settings(CODE="abc"))

        assert any("OLLAMA_URL" in w for w in status["warnings"])
        assert status["upstream"] == "http://localhost:11434"

    def test_short_secret_is_an_error(self):
        status = validate_configuration(make_settings(SESSION_JWT_SECRET="short"))

        assert status["valid"] is False
        assert "too short" in status["errors"][0]


def test_relay_client_settings_prefix(monkeypatch):
    monkeypatch.setenv("RELAY_GATEWAY_URL", "http://gateway.test")
    monkeypatch.setenv("RELAY_ACCESS_CODE", "letmein")

    settings = RelayClientSettings(_env_file=None)

    assert settings.GATEWAY_URL == "http://gateway.test"
    assert settings.ACCESS_CODE == "letmein"
    assert settings.REQUEST_TIMEOUT_SECONDS == 60
