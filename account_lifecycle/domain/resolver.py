"""Identifier to account resolution on top of an :class:`AccountStore`."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

from .account import Account
from ..errors import AccountNotFound, ConfigurationError
from ..security.locks import KeyedLock

if TYPE_CHECKING:
    from ..repository import AccountStore


class IdentityResolver:
    """Map a login identifier onto a stored account.

    ``mode`` selects which store lookups are attempted: ``username-only``,
    ``email-only`` or ``either``. In ``either`` mode the username lookup runs
    first and the email lookup only when it found nothing, so an identifier that
    matches one account's username and another's email resolves to the former.
    Case handling is left to the store.
    """

    def __init__(self, store: "AccountStore", mode: str = "either") -> None:
        lookups = {
            "username-only": (store.find_by_username,),
            "email-only": (store.find_by_email,),
            "either": (store.find_by_username, store.find_by_email),
        }
        if mode not in lookups:
            raise ConfigurationError(f"unknown identity resolution mode {mode!r}")
        self._lookups = lookups[mode]

    def resolve(self, identifier: str) -> Account | None:
        """Return the first account matched by the configured lookups, or ``None``.

        Storage errors raised by the store propagate unchanged.
        """
        if not identifier:
            return None
        for lookup in self._lookups:
            account = lookup(identifier)
            if account is not None:
                return account
        return None

    def resolve_or_raise(self, identifier: str) -> Account:
        account = self.resolve(identifier)
        if account is None:
            raise AccountNotFound(identifier)
        return account


@contextmanager
def locked_account(
    locks: KeyedLock, resolver: IdentityResolver, identifier: str
) -> Iterator[Account]:
    """Resolve ``identifier`` and hold the lock of the account it names.

    The lock is keyed by ``account_id`` so every identifier of one account
    (username, email, differently cased spellings) serialises on the same
    entry. The account is read again once the lock is held, so the caller
    mutates the latest stored version.
    """
    account_id = resolver.resolve_or_raise(identifier).account_id
    while True:
        with locks.hold(account_id):
            account = resolver.resolve_or_raise(identifier)
            if account.account_id == account_id:
                yield account
                return
        # identifier was reassigned while waiting
        account_id = account.account_id
