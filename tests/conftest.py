from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from account_lifecycle.config import Settings
from account_lifecycle.domain.account import Account
from account_lifecycle.domain.contracts import AccountEvent
from account_lifecycle.factory import AccountServices, build_services
from account_lifecycle.memory_repository import InMemoryAccountRepository
from account_lifecycle.security.passwords import PasswordHasher


class FrozenClock:
    """Clock returning a fixed instant that tests move forward explicitly."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def make_account(
    username: str = "user",
    email: str = "user@example.com",
    password: str = "not-a-real-hash",
    **overrides,
) -> Account:
    return Account(
        account_id=overrides.pop("account_id", str(uuid.uuid4())),
        username=username,
        email=email,
        password=password,
        **overrides,
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        token_ttl_seconds=86400,
        retry_ttl_seconds=7200,
        resolution_mode="either",
        role_prefix="",
        store_backend="memory",
        password_hash_rounds=4,
    )


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def store() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def account(store: InMemoryAccountRepository, hasher: PasswordHasher) -> Account:
    return store.create(make_account(password=hasher.hash("old-password")))


@pytest.fixture
def events() -> list[AccountEvent]:
    return []


@pytest.fixture
def services(settings, store, clock, events) -> AccountServices:
    return build_services(settings, store, listeners=[events.append], clock=clock)
