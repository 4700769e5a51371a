import logging

import pytest
from pydantic import ValidationError

from portal.core.config import Settings
from portal.core.logging import configure_logging, init_tracer, parse_otlp_headers, shutdown_tracer


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("PORTAL_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("PORTAL_API_TOKENS", '{"tok-1": "u-mgr"}')
    monkeypatch.setenv("PORTAL_MANAGER_AREA_EXCEPTIONS", '{"max.multi@example.com": ["it", "electrical"]}')
    monkeypatch.setenv("PORTAL_BULK_TIMEOUT_SECONDS", "2.5")

    settings = Settings()

    assert settings.storage_backend == "memory"
    assert settings.api_tokens == {"tok-1": "u-mgr"}
    assert settings.manager_area_exceptions == {"max.multi@example.com": ["it", "electrical"]}
    assert settings.bulk_timeout_seconds == 2.5
    assert settings.identifier_max_attempts == 3


def test_settings_reject_unknown_backend():
    with pytest.raises(ValidationError):
        Settings(storage_backend="sqlite")


def test_parse_otlp_headers_skips_malformed_items():
    assert parse_otlp_headers("api-key=abc, tenant = ops,broken,=x") == {"api-key": "abc", "tenant": "ops"}
    assert parse_otlp_headers(None) == {}


def test_configure_logging_quiets_http_clients():
    logger = configure_logging(Settings(log_level="debug"))

    assert logger.name == "portal"
    assert logger.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_tracer_is_not_installed_when_disabled():
    provider = init_tracer(Settings(otel_enabled=False))

    assert provider is None
    shutdown_tracer(provider)
