"""Salted one-way hashing for account passwords."""

from __future__ import annotations

import bcrypt

from ..errors import InvalidPassword


class PasswordHasher:
    """bcrypt hasher with a configurable cost factor."""

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    def hash(self, plain_password: str) -> str:
        """Return the bcrypt hash of ``plain_password``.

        bcrypt only reads the first 72 bytes of its input, so longer passwords
        are rejected instead of being silently truncated.
        """
        if not plain_password:
            raise InvalidPassword("password must not be empty")
        encoded = plain_password.encode("utf-8")
        if len(encoded) > 72:
            raise InvalidPassword("password must not exceed 72 bytes")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    def verify(self, plain_password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
        except (ValueError, TypeError):
            return False
