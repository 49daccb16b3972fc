"""Exception taxonomy raised by the account lifecycle services."""

from __future__ import annotations


class AccountError(Exception):
    """Base class for every error signalled by this package."""


class AccountNotFound(AccountError):
    """No account matches the supplied identifier."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f'account "{identifier}" not found')
        self.identifier = identifier


class InvalidRole(AccountError, ValueError):
    """A role name failed validation after normalisation."""

    def __init__(self, role: str) -> None:
        super().__init__(f'invalid role name "{role}"')
        self.role = role


class InvalidPassword(AccountError, ValueError):
    """A new password was rejected before hashing."""


class InvalidToken(AccountError):
    """The reset token does not belong to any pending request."""

    def __init__(self) -> None:
        super().__init__("invalid reset token")


class TokenExpired(AccountError):
    """The reset token matched but its validity window has passed."""

    def __init__(self) -> None:
        super().__init__("reset token expired")


class ThrottledTooSoon(AccountError):
    """A reset was requested again before the retry window elapsed."""

    def __init__(self, retry_after: int) -> None:
        super().__init__(f"reset already requested, retry in {retry_after}s")
        self.retry_after = retry_after


class StorageFailure(AccountError):
    """The account store could not complete a read or write."""


class ConfigurationError(AccountError, ValueError):
    """Settings are inconsistent and the process must not start."""
