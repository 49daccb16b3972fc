"""Account persistence contract and its Postgres implementation."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Protocol

import psycopg
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from .domain.account import Account, canonicalize
from .errors import StorageFailure

_COLUMNS = """
    account_id, username, email, password, enabled, locked, roles, super_admin,
    confirmation_token, password_requested_at, version
"""


class AccountStore(Protocol):
    """Storage operations the account services rely on.

    Implementations raise :class:`StorageFailure` for any underlying fault and
    reject a ``save`` whose ``version`` no longer matches the stored one.
    """

    def find_by_username(self, username: str) -> Account | None: ...

    def find_by_email(self, email: str) -> Account | None: ...

    def find_by_confirmation_token(self, token: str) -> Account | None: ...

    def create(self, account: Account) -> Account: ...

    def save(self, account: Account) -> None: ...

    def close(self) -> None: ...


class PostgresAccountRepository:
    """Postgres-backed account persistence with optimistic concurrency.

    Lookups go through ``username_canonical``/``email_canonical`` columns, which
    hold the raw value or its casefolded form depending on ``case_sensitive``.
    """

    def __init__(self, pool: ConnectionPool, *, case_sensitive: bool = False) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool
        self._case_sensitive = case_sensitive

    @contextmanager
    def _cursor(self) -> Iterator[psycopg.Cursor]:
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    yield cur
                conn.commit()
        except psycopg.Error as exc:
            raise StorageFailure(f"account store unavailable: {exc}") from exc

    def find_by_username(self, username: str) -> Account | None:
        return self._find_one(
            "username_canonical = %s", canonicalize(username, self._case_sensitive)
        )

    def find_by_email(self, email: str) -> Account | None:
        return self._find_one("email_canonical = %s", canonicalize(email, self._case_sensitive))

    def find_by_confirmation_token(self, token: str) -> Account | None:
        return self._find_one("confirmation_token = %s", token)

    def _find_one(self, clause: str, value: str) -> Account | None:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_COLUMNS} FROM accounts WHERE {clause}", (value,))
            row = cur.fetchone()
        if not row:
            return None
        return self._map_record(row)

    def create(self, account: Account) -> Account:
        """Insert a new account; duplicate usernames or emails raise ``StorageFailure``."""
        with self._cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO accounts ({_COLUMNS}, username_canonical, email_canonical)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    *self._row_values(account),
                    account.version,
                    canonicalize(account.username, self._case_sensitive),
                    canonicalize(account.email, self._case_sensitive),
                ),
            )
        return account

    def save(self, account: Account) -> None:
        """Write the account back if nobody else saved it since it was read."""
        with self._cursor() as cur:
            cur.execute(
                """
                UPDATE accounts
                SET username = %s, email = %s, password = %s, enabled = %s, locked = %s,
                    roles = %s, super_admin = %s, confirmation_token = %s,
                    password_requested_at = %s, version = version + 1,
                    username_canonical = %s, email_canonical = %s
                WHERE account_id = %s AND version = %s
                """,
                (
                    *self._row_values(account)[1:],
                    canonicalize(account.username, self._case_sensitive),
                    canonicalize(account.email, self._case_sensitive),
                    account.account_id,
                    account.version,
                ),
            )
            updated = cur.rowcount
        if updated != 1:
            raise StorageFailure(
                f"account {account.account_id} was modified concurrently or no longer exists"
            )
        account.version += 1

    def close(self) -> None:
        self._pool.close()

    @staticmethod
    def _row_values(account: Account) -> tuple:
        return (
            account.account_id,
            account.username,
            account.email,
            account.password,
            account.enabled,
            account.locked,
            sorted(account.roles),
            account.super_admin,
            account.confirmation_token,
            account.password_requested_at,
        )

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=row[0],
            username=row[1],
            email=row[2],
            password=row[3],
            enabled=row[4],
            locked=row[5],
            roles=set(row[6] or ()),
            super_admin=row[7],
            confirmation_token=row[8],
            password_requested_at=row[9],
            version=row[10],
        )
