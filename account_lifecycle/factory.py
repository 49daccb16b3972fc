"""Startup wiring: pick the account store backend and build the services."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from psycopg_pool import ConnectionPool

from .config import Settings
from .domain.contracts import AccountListener
from .domain.manipulator import RoleManipulator
from .domain.resetting import ResetTokenService
from .domain.resolver import IdentityResolver
from .memory_repository import InMemoryAccountRepository
from .metrics import record_event
from .repository import AccountStore, PostgresAccountRepository
from .security.locks import KeyedLock
from .security.passwords import PasswordHasher

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AccountServices:
    """The public surface handed to front ends."""

    store: AccountStore
    resolver: IdentityResolver
    manipulator: RoleManipulator
    resetting: ResetTokenService


def build_repository(settings: Settings) -> AccountStore:
    """Instantiate the configured account store backend."""
    if settings.store_backend == "postgres":
        pool = ConnectionPool(settings.database_url, open=False)
        pool.open()
        logger.info("account store configured for postgres backend")
        return PostgresAccountRepository(pool, case_sensitive=settings.identifier_case_sensitive)

    if settings.store_backend == "redis":
        import redis

        from .redis_repository import RedisAccountRepository

        client = redis.from_url(settings.redis_url)
        logger.info("account store configured for redis backend at %s", settings.redis_url)
        return RedisAccountRepository(client, case_sensitive=settings.identifier_case_sensitive)

    logger.info("account store using in-memory backend")
    return InMemoryAccountRepository(case_sensitive=settings.identifier_case_sensitive)


def build_services(
    settings: Settings,
    store: AccountStore | None = None,
    *,
    listeners: list[AccountListener] | None = None,
    clock: Callable[[], datetime] | None = None,
) -> AccountServices:
    """Assemble resolver, manipulator and reset service around one store."""
    if store is None:
        store = build_repository(settings)
    all_listeners: list[AccountListener] = [record_event, *(listeners or [])]
    resolver = IdentityResolver(store, settings.resolution_mode)
    hasher = PasswordHasher(rounds=settings.password_hash_rounds)
    # shared by both services: one lock per account
    locks = KeyedLock()
    return AccountServices(
        store=store,
        resolver=resolver,
        manipulator=RoleManipulator(
            store,
            resolver,
            hasher,
            role_prefix=settings.role_prefix,
            listeners=all_listeners,
            clock=clock,
            locks=locks,
        ),
        resetting=ResetTokenService(
            store,
            resolver,
            hasher,
            token_ttl_seconds=settings.token_ttl_seconds,
            retry_ttl_seconds=settings.retry_ttl_seconds,
            listeners=all_listeners,
            clock=clock,
            locks=locks,
        ),
    )
