"""Domain-level contracts shared by the services and their listeners."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

SUPER_PROMOTED = "account.super_promoted"
SUPER_DEMOTED = "account.super_demoted"
ROLE_ADDED = "account.role_added"
ROLE_REMOVED = "account.role_removed"
ACTIVATED = "account.activated"
DEACTIVATED = "account.deactivated"
PASSWORD_CHANGED = "account.password_changed"
RESET_REQUESTED = "resetting.requested"
RESET_COMPLETED = "resetting.completed"
RESET_EXPIRED = "resetting.expired"
RESET_CANCELLED = "resetting.cancelled"


@dataclass(slots=True)
class AccountEvent:
    """Notification emitted after a mutation has been persisted."""

    event_type: str
    account_id: str
    occurred_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)


AccountListener = Callable[[AccountEvent], None]


def dispatch(listeners: list[AccountListener], event: AccountEvent) -> None:
    """Invoke listeners synchronously in registration order."""
    for listener in listeners:
        listener(event)
