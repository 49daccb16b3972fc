from __future__ import annotations

import pytest

from account_lifecycle.config import Settings
from account_lifecycle.errors import ConfigurationError


def test_suggested_defaults_are_consistent():
    settings = Settings(token_ttl_seconds=86400, retry_ttl_seconds=7200, store_backend="memory")
    assert settings.retry_ttl_seconds <= settings.token_ttl_seconds


def test_equal_windows_are_allowed():
    Settings(token_ttl_seconds=3600, retry_ttl_seconds=3600, store_backend="memory")


@pytest.mark.parametrize(
    "overrides",
    [
        {"token_ttl_seconds": 3600, "retry_ttl_seconds": 7200},
        {"token_ttl_seconds": 0},
        {"retry_ttl_seconds": -1},
        {"resolution_mode": "phone-only"},
        {"store_backend": "mongodb"},
        {"store_backend": "postgres", "database_url": ""},
        {"store_backend": "redis", "redis_url": ""},
        {"password_hash_rounds": 3},
    ],
)
def test_invalid_settings_are_rejected_at_startup(overrides):
    values = {
        "token_ttl_seconds": 86400,
        "retry_ttl_seconds": 7200,
        "resolution_mode": "either",
        "store_backend": "memory",
        "password_hash_rounds": 12,
    }
    values.update(overrides)
    with pytest.raises(ConfigurationError):
        Settings(**values)
