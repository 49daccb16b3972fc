from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import os

from .errors import ConfigurationError

RESOLUTION_MODES = ("username-only", "email-only", "either")
STORE_BACKENDS = ("memory", "postgres", "redis")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime configuration values shared by the services and front ends."""

    app_name: str = "account-lifecycle"
    version: str = "0.1.0"
    token_ttl_seconds: int = int(os.getenv("RESET_TOKEN_TTL_SECONDS", "86400"))
    retry_ttl_seconds: int = int(os.getenv("RESET_RETRY_TTL_SECONDS", "7200"))
    resolution_mode: str = os.getenv("IDENTITY_RESOLUTION_MODE", "either").lower()
    role_prefix: str = os.getenv("ROLE_PREFIX", "")
    identifier_case_sensitive: bool = _env_flag("IDENTIFIER_CASE_SENSITIVE", "false")
    store_backend: str = os.getenv("ACCOUNT_STORE_BACKEND", "memory").lower()
    database_url: str = os.getenv("POSTGRES_URL", "")
    redis_url: str = os.getenv("REDIS_URL", "")
    password_hash_rounds: int = int(os.getenv("PASSWORD_HASH_ROUNDS", "12"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    def __post_init__(self) -> None:
        """Reject settings the services cannot honour."""
        if self.token_ttl_seconds <= 0 or self.retry_ttl_seconds <= 0:
            raise ConfigurationError("reset TTLs must be positive")
        if self.retry_ttl_seconds > self.token_ttl_seconds:
            raise ConfigurationError(
                f"retry TTL ({self.retry_ttl_seconds}s) must not exceed "
                f"token TTL ({self.token_ttl_seconds}s)"
            )
        if self.resolution_mode not in RESOLUTION_MODES:
            raise ConfigurationError(f"unknown identity resolution mode {self.resolution_mode!r}")
        if self.store_backend not in STORE_BACKENDS:
            raise ConfigurationError(f"unknown account store backend {self.store_backend!r}")
        if self.store_backend == "postgres" and not self.database_url:
            raise ConfigurationError("POSTGRES_URL is required for the postgres backend")
        if self.store_backend == "redis" and not self.redis_url:
            raise ConfigurationError("REDIS_URL is required for the redis backend")
        if not 4 <= self.password_hash_rounds <= 31:
            raise ConfigurationError("bcrypt rounds must be between 4 and 31")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings instance for the running process."""
    return Settings()
