from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..errors import InvalidRole

ROLE_PATTERN = re.compile(r"^[A-Z][A-Z0-9]*(?:_[A-Z0-9]+)*$")


@dataclass(slots=True)
class Account:
    """Aggregate root for a login-capable user account."""

    account_id: str
    username: str
    email: str
    password: str
    enabled: bool = True
    locked: bool = False
    roles: set[str] = field(default_factory=set)
    super_admin: bool = False
    confirmation_token: str | None = None
    password_requested_at: datetime | None = None
    version: int = 0

    def has_role(self, role: str) -> bool:
        """Return ``True`` when the role is granted, always for super admins."""
        return self.super_admin or role in self.roles

    @property
    def has_pending_reset(self) -> bool:
        """Whether a reset token has been issued and not yet consumed."""
        return self.confirmation_token is not None

    def is_password_request_non_expired(self, ttl_seconds: int, now: datetime) -> bool:
        """Return ``True`` while the last reset request is younger than ``ttl_seconds``."""
        if self.password_requested_at is None:
            return False
        return now - self.password_requested_at <= timedelta(seconds=ttl_seconds)

    def start_reset(self, token: str, now: datetime) -> None:
        """Record a freshly issued reset token requested at ``now``."""
        self.confirmation_token = token
        self.password_requested_at = now

    def clear_reset(self) -> bool:
        """Drop the pending reset request; return ``False`` if none was pending."""
        if self.confirmation_token is None and self.password_requested_at is None:
            return False
        self.confirmation_token = None
        self.password_requested_at = None
        return True


def normalize_role(role: str, prefix: str = "") -> str:
    """Upper-case ``role`` and apply ``prefix``, raising :class:`InvalidRole` if invalid.

    Only case and prefix are changed; any other character that does not fit the
    upper snake case convention makes the role invalid.
    """
    candidate = role.strip().upper()
    prefix = prefix.upper()
    if candidate and prefix and not candidate.startswith(prefix):
        candidate = prefix + candidate
    if not ROLE_PATTERN.match(candidate):
        raise InvalidRole(role)
    return candidate


def canonicalize(value: str, case_sensitive: bool) -> str:
    """Return the lookup key a store uses for usernames and emails."""
    return value if case_sensitive else value.casefold()
