"""Password reset request and confirmation workflow."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Callable

from . import contracts
from .account import Account
from .contracts import AccountEvent, AccountListener
from .resolver import IdentityResolver, locked_account
from ..errors import ConfigurationError, InvalidToken, ThrottledTooSoon, TokenExpired
from ..security.locks import KeyedLock
from ..security.passwords import PasswordHasher
from ..security.tokens import generate_confirmation_token, tokens_match

if TYPE_CHECKING:
    from ..repository import AccountStore

logger = logging.getLogger(__name__)


class ResetTokenService:
    """Issue, validate and retire password reset tokens.

    Two windows govern a pending request. ``token_ttl_seconds`` is how long an
    issued token stays valid; ``retry_ttl_seconds`` is the minimum delay before
    the same account may request another token. The retry window must not be
    longer than the token window.
    """

    def __init__(
        self,
        store: "AccountStore",
        resolver: IdentityResolver,
        hasher: PasswordHasher,
        *,
        token_ttl_seconds: int = 86400,
        retry_ttl_seconds: int = 7200,
        listeners: list[AccountListener] | None = None,
        clock: Callable[[], datetime] | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        if retry_ttl_seconds > token_ttl_seconds:
            raise ConfigurationError(
                f"retry TTL ({retry_ttl_seconds}s) must not exceed token TTL ({token_ttl_seconds}s)"
            )
        self._store = store
        self._resolver = resolver
        self._hasher = hasher
        self._token_ttl_seconds = token_ttl_seconds
        self._retry_ttl = timedelta(seconds=retry_ttl_seconds)
        self._listeners = list(listeners or [])
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._locks = locks if locks is not None else KeyedLock()

    def request_reset(self, identifier: str) -> str:
        """Start a reset for the account and return the token to deliver.

        Raises
        ------
        AccountNotFound
            When ``identifier`` does not resolve to an account.
        ThrottledTooSoon
            When a pending request is younger than the retry window. The
            account is left untouched.
        """
        _, token = self.issue_reset(identifier)
        return token

    def issue_reset(self, identifier: str) -> tuple[Account, str]:
        """Like :meth:`request_reset`, also returning the updated account."""
        with locked_account(self._locks, self._resolver, identifier) as account:
            now = self._clock()
            if account.has_pending_reset and account.password_requested_at is not None:
                elapsed = now - account.password_requested_at
                if elapsed < self._retry_ttl:
                    retry_after = math.ceil((self._retry_ttl - elapsed).total_seconds())
                    logger.warning(
                        "reset request throttled account_id=%s retry_after=%ss",
                        account.account_id,
                        retry_after,
                    )
                    raise ThrottledTooSoon(retry_after)

            token = generate_confirmation_token()
            account.start_reset(token, now)
            self._persist(account, contracts.RESET_REQUESTED, {})
        return account, token

    def is_request_expired(self, account: Account) -> bool:
        """Return ``True`` once the last request is older than the token TTL.

        An account without a request timestamp cannot hold a valid token and is
        reported as expired.
        """
        return not account.is_password_request_non_expired(
            self._token_ttl_seconds, self._clock()
        )

    def confirm_reset(self, token: str, new_password: str) -> Account:
        """Consume ``token`` and set the account password to ``new_password``.

        An expired token is cleared from the account before
        :class:`TokenExpired` is raised, so it cannot be presented again.
        """
        account_id = self._find_by_token(token).account_id
        with self._locks.hold(account_id):
            # the token may have been consumed or replaced while waiting
            account = self._find_by_token(token)

            if self.is_request_expired(account):
                account.clear_reset()
                self._persist(account, contracts.RESET_EXPIRED, {})
                logger.warning("reset token expired account_id=%s", account.account_id)
                raise TokenExpired()

            account.password = self._hasher.hash(new_password)
            account.clear_reset()
            self._persist(account, contracts.RESET_COMPLETED, {})
        return account

    def cancel_reset(self, identifier: str) -> bool:
        """Drop a pending request; returns ``False`` when there was none."""
        with locked_account(self._locks, self._resolver, identifier) as account:
            if not account.clear_reset():
                return False
            self._persist(account, contracts.RESET_CANCELLED, {})
        return True

    def _find_by_token(self, token: str) -> Account:
        account = self._store.find_by_confirmation_token(token) if token else None
        if account is None or not tokens_match(account.confirmation_token, token):
            logger.warning("reset confirmation with unknown token")
            raise InvalidToken()
        return account

    def _persist(self, account: Account, event_type: str, metadata: dict[str, Any]) -> None:
        self._store.save(account)
        logger.info("%s account_id=%s", event_type, account.account_id)
        contracts.dispatch(
            self._listeners,
            AccountEvent(
                event_type=event_type,
                account_id=account.account_id,
                occurred_at=self._clock(),
                metadata=metadata,
            ),
        )
