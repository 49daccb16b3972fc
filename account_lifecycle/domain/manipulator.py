"""Privilege and status mutations for stored accounts."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable

from . import contracts
from .account import Account, normalize_role
from .contracts import AccountEvent, AccountListener
from .resolver import IdentityResolver, locked_account
from ..security.locks import KeyedLock
from ..security.passwords import PasswordHasher

if TYPE_CHECKING:
    from ..repository import AccountStore

logger = logging.getLogger(__name__)


class RoleManipulator:
    """Idempotent role, super admin and status changes.

    Every boolean operation returns ``True`` when it changed and persisted the
    account and ``False`` when the account already had the requested state, in
    which case nothing is written.
    """

    def __init__(
        self,
        store: "AccountStore",
        resolver: IdentityResolver,
        hasher: PasswordHasher,
        *,
        role_prefix: str = "",
        listeners: list[AccountListener] | None = None,
        clock: Callable[[], datetime] | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._hasher = hasher
        self._role_prefix = role_prefix
        self._listeners = list(listeners or [])
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._locks = locks if locks is not None else KeyedLock()

    def promote_to_super(self, identifier: str) -> bool:
        return self._set_flag(identifier, "super_admin", True, contracts.SUPER_PROMOTED)

    def demote_from_super(self, identifier: str) -> bool:
        return self._set_flag(identifier, "super_admin", False, contracts.SUPER_DEMOTED)

    def activate(self, identifier: str) -> bool:
        return self._set_flag(identifier, "enabled", True, contracts.ACTIVATED)

    def deactivate(self, identifier: str) -> bool:
        return self._set_flag(identifier, "enabled", False, contracts.DEACTIVATED)

    def add_role(self, identifier: str, role: str) -> bool:
        """Grant ``role`` after normalising it; see :func:`normalize_role`."""
        normalized = normalize_role(role, self._role_prefix)
        with locked_account(self._locks, self._resolver, identifier) as account:
            if normalized in account.roles:
                return False
            account.roles.add(normalized)
            self._persist(account, contracts.ROLE_ADDED, {"role": normalized})
        return True

    def remove_role(self, identifier: str, role: str) -> bool:
        """Revoke ``role``. The super admin flag is left untouched."""
        normalized = normalize_role(role, self._role_prefix)
        with locked_account(self._locks, self._resolver, identifier) as account:
            if normalized not in account.roles:
                return False
            account.roles.discard(normalized)
            self._persist(account, contracts.ROLE_REMOVED, {"role": normalized})
        return True

    def change_password(self, identifier: str, new_password: str) -> Account:
        """Store a new password hash and drop any pending reset request."""
        password_hash = self._hasher.hash(new_password)
        with locked_account(self._locks, self._resolver, identifier) as account:
            account.password = password_hash
            reset_cleared = account.clear_reset()
            self._persist(account, contracts.PASSWORD_CHANGED, {"reset_cleared": reset_cleared})
        return account

    def _set_flag(self, identifier: str, attribute: str, value: bool, event_type: str) -> bool:
        with locked_account(self._locks, self._resolver, identifier) as account:
            if getattr(account, attribute) == value:
                return False
            setattr(account, attribute, value)
            self._persist(account, event_type, {})
        return True

    def _persist(self, account: Account, event_type: str, metadata: dict[str, Any]) -> None:
        self._store.save(account)
        logger.info("%s account_id=%s metadata=%s", event_type, account.account_id, metadata)
        contracts.dispatch(
            self._listeners,
            AccountEvent(
                event_type=event_type,
                account_id=account.account_id,
                occurred_at=self._clock(),
                metadata=metadata,
            ),
        )
