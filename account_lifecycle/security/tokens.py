"""Generation and comparison of password reset tokens."""

from __future__ import annotations

import hmac
import secrets

TOKEN_BYTES = 32


def generate_confirmation_token() -> str:
    """Return a URL-safe token carrying ``TOKEN_BYTES`` bytes of entropy."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def tokens_match(expected: str | None, supplied: str) -> bool:
    """Compare tokens in constant time."""
    if expected is None:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))
