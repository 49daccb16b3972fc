from __future__ import annotations

import re
import threading

import pytest

from account_lifecycle.domain import contracts
from account_lifecycle.domain.resetting import ResetTokenService
from account_lifecycle.domain.resolver import IdentityResolver
from account_lifecycle.errors import (
    AccountNotFound,
    ConfigurationError,
    InvalidPassword,
    InvalidToken,
    StorageFailure,
    ThrottledTooSoon,
    TokenExpired,
)


def test_request_then_confirm(services, store, hasher, account):
    token = services.resetting.request_reset("user")

    updated = services.resetting.confirm_reset(token, "newpass")

    assert updated.password != account.password
    assert hasher.verify("newpass", updated.password)
    assert updated.confirmation_token is None
    stored = store.find_by_username("user")
    assert stored.confirmation_token is None
    assert stored.password_requested_at is None
    assert store.find_by_confirmation_token(token) is None


def test_token_is_url_safe_and_long(services, account):
    token = services.resetting.request_reset("user")
    assert re.fullmatch(r"[A-Za-z0-9_-]{43,}", token)


def test_request_by_email(services, store, account):
    token = services.resetting.request_reset("user@example.com")
    assert store.find_by_username("user").confirmation_token == token


def test_second_request_within_retry_window_is_throttled(services, store, clock, account):
    token = services.resetting.request_reset("user")
    clock.advance(3600)

    with pytest.raises(ThrottledTooSoon) as excinfo:
        services.resetting.request_reset("user")

    assert excinfo.value.retry_after == 3600
    assert store.find_by_username("user").confirmation_token == token


def test_request_after_retry_window_issues_new_token(services, store, clock, account):
    first = services.resetting.request_reset("user")
    clock.advance(7200)

    second = services.resetting.request_reset("user")

    assert second != first
    stored = store.find_by_username("user")
    assert stored.confirmation_token == second
    assert stored.password_requested_at == clock.now
    with pytest.raises(InvalidToken):
        services.resetting.confirm_reset(first, "newpass")


def test_expired_token_is_cleared(services, store, clock, events, account):
    token = services.resetting.request_reset("user")
    clock.advance(3600)
    with pytest.raises(ThrottledTooSoon):
        services.resetting.request_reset("user")
    clock.advance(90000 - 3600)

    with pytest.raises(TokenExpired):
        services.resetting.confirm_reset(token, "newpass")

    stored = store.find_by_username("user")
    assert stored.confirmation_token is None
    assert stored.password_requested_at is None
    assert stored.password == account.password
    assert events[-1].event_type == contracts.RESET_EXPIRED

    with pytest.raises(InvalidToken):
        services.resetting.confirm_reset(token, "newpass")


def test_expiry_boundary(services, store, clock, account):
    services.resetting.request_reset("user")
    clock.advance(86400)
    assert services.resetting.is_request_expired(store.find_by_username("user")) is False
    clock.advance(1)
    assert services.resetting.is_request_expired(store.find_by_username("user")) is True


def test_account_without_request_counts_as_expired(services, account):
    assert services.resetting.is_request_expired(account) is True


def test_confirm_rejects_unknown_and_empty_tokens(services, account):
    with pytest.raises(InvalidToken):
        services.resetting.confirm_reset("not-a-token", "newpass")
    with pytest.raises(InvalidToken):
        services.resetting.confirm_reset("", "newpass")


def test_rejected_password_keeps_request_pending(services, store, account):
    token = services.resetting.request_reset("user")

    with pytest.raises(InvalidPassword):
        services.resetting.confirm_reset(token, "")

    assert store.find_by_username("user").confirmation_token == token


def test_cancel_reset(services, store, events, account):
    services.resetting.request_reset("user")

    assert services.resetting.cancel_reset("user") is True
    assert services.resetting.cancel_reset("user") is False

    stored = store.find_by_username("user")
    assert stored.confirmation_token is None
    assert events[-1].event_type == contracts.RESET_CANCELLED


def test_cancel_unknown_account(services):
    with pytest.raises(AccountNotFound):
        services.resetting.cancel_reset("ghost")


def test_request_unknown_account(services):
    with pytest.raises(AccountNotFound):
        services.resetting.request_reset("ghost")


def test_retry_window_longer_than_token_window_is_rejected(store, hasher):
    with pytest.raises(ConfigurationError):
        ResetTokenService(
            store,
            IdentityResolver(store),
            hasher,
            token_ttl_seconds=3600,
            retry_ttl_seconds=7200,
        )


def test_concurrent_requests_issue_a_single_token(services, store, account):
    outcomes: list[str] = []
    barrier = threading.Barrier(8)

    def request() -> None:
        barrier.wait()
        try:
            services.resetting.request_reset("user")
            outcomes.append("issued")
        except ThrottledTooSoon:
            outcomes.append("throttled")

    threads = [threading.Thread(target=request) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("issued") == 1
    assert outcomes.count("throttled") == 7


def test_concurrent_requests_through_different_identifiers(services, store, account):
    identifiers = ["user", "user@example.com", "USER", "User@Example.com"] * 4
    outcomes: list[str] = []
    barrier = threading.Barrier(len(identifiers))

    def request(identifier: str) -> None:
        barrier.wait()
        try:
            services.resetting.request_reset(identifier)
            outcomes.append("issued")
        except ThrottledTooSoon:
            outcomes.append("throttled")
        except StorageFailure:
            outcomes.append("conflict")

    threads = [threading.Thread(target=request, args=(identifier,)) for identifier in identifiers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("issued") == 1
    assert outcomes.count("throttled") == len(identifiers) - 1
    assert "conflict" not in outcomes


def test_confirm_and_cancel_race_resolves_cleanly(services, store, account):
    token = services.resetting.request_reset("user")
    outcomes: list[str] = []
    barrier = threading.Barrier(8)

    def confirm() -> None:
        barrier.wait()
        try:
            services.resetting.confirm_reset(token, "newpass")
            outcomes.append("completed")
        except InvalidToken:
            outcomes.append("invalid")
        except StorageFailure:
            outcomes.append("conflict")

    def cancel() -> None:
        barrier.wait()
        try:
            outcomes.append("cancelled" if services.resetting.cancel_reset("USER") else "noop")
        except StorageFailure:
            outcomes.append("conflict")

    threads = [threading.Thread(target=confirm) for _ in range(4)]
    threads += [threading.Thread(target=cancel) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert "conflict" not in outcomes
    assert outcomes.count("completed") + outcomes.count("cancelled") == 1
    assert store.find_by_username("user").confirmation_token is None


def test_issue_reset_returns_updated_account(services, store, account):
    updated, token = services.resetting.issue_reset("user")

    assert updated.account_id == account.account_id
    assert updated.email == "user@example.com"
    assert updated.confirmation_token == token
    assert updated.has_pending_reset
    assert updated.version == store.find_by_username("user").version
