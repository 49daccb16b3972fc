"""In-process account store for single-node deployments and tests."""

from __future__ import annotations

from dataclasses import replace
from threading import Lock

from .domain.account import Account, canonicalize
from .errors import StorageFailure


def _copy(account: Account) -> Account:
    return replace(account, roles=set(account.roles))


class InMemoryAccountRepository:
    """Thread-safe dictionary-backed store with the same contract as Postgres.

    Accounts are copied on the way in and out so callers never share an
    instance with the store or with each other.
    """

    def __init__(self, *, case_sensitive: bool = False) -> None:
        self._case_sensitive = case_sensitive
        self._accounts: dict[str, Account] = {}
        self._lock = Lock()
        self.saves = 0

    def _key(self, value: str) -> str:
        return canonicalize(value, self._case_sensitive)

    def find_by_username(self, username: str) -> Account | None:
        key = self._key(username)
        return self._find(lambda account: self._key(account.username) == key)

    def find_by_email(self, email: str) -> Account | None:
        key = self._key(email)
        return self._find(lambda account: self._key(account.email) == key)

    def find_by_confirmation_token(self, token: str) -> Account | None:
        return self._find(lambda account: account.confirmation_token == token)

    def _find(self, predicate) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if predicate(account):
                    return _copy(account)
        return None

    def create(self, account: Account) -> Account:
        with self._lock:
            if account.account_id in self._accounts:
                raise StorageFailure(f"account {account.account_id} already exists")
            self._check_unique(account)
            self._accounts[account.account_id] = _copy(account)
        return account

    def save(self, account: Account) -> None:
        with self._lock:
            stored = self._accounts.get(account.account_id)
            if stored is None or stored.version != account.version:
                raise StorageFailure(
                    f"account {account.account_id} was modified concurrently or no longer exists"
                )
            self._check_unique(account)
            account.version += 1
            self._accounts[account.account_id] = _copy(account)
            self.saves += 1

    def _check_unique(self, candidate: Account) -> None:
        username = self._key(candidate.username)
        email = self._key(candidate.email)
        for account in self._accounts.values():
            if account.account_id == candidate.account_id:
                continue
            if self._key(account.username) == username or self._key(account.email) == email:
                raise StorageFailure(
                    f"username or email already in use for account {candidate.account_id}"
                )
            if candidate.confirmation_token and account.confirmation_token == candidate.confirmation_token:
                raise StorageFailure("confirmation token already assigned to another account")

    def close(self) -> None:
        """Nothing to release for the in-process store."""
