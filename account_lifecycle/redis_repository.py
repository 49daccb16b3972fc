"""Redis-backed document store for accounts."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from redis import Redis
from redis.exceptions import RedisError, WatchError

from .domain.account import Account, canonicalize
from .errors import StorageFailure


class RedisAccountRepository:
    """Stores each account as a JSON document with lookup index keys.

    Layout under ``key_prefix``::

        {prefix}:account:{account_id}   JSON document
        {prefix}:username:{canonical}   account_id
        {prefix}:email:{canonical}      account_id
        {prefix}:token:{token}          account_id

    Writes run inside ``WATCH``/``MULTI`` transactions; a save whose version is
    stale, or that races with another writer, fails with ``StorageFailure``.
    """

    def __init__(
        self,
        client: Redis,
        *,
        key_prefix: str = "accounts",
        case_sensitive: bool = False,
    ) -> None:
        self._client = client
        self._prefix = key_prefix
        self._case_sensitive = case_sensitive

    def _account_key(self, account_id: str) -> str:
        return f"{self._prefix}:account:{account_id}"

    def _index_key(self, kind: str, value: str) -> str:
        if kind != "token":
            value = canonicalize(value, self._case_sensitive)
        return f"{self._prefix}:{kind}:{value}"

    def find_by_username(self, username: str) -> Account | None:
        return self._find("username", username)

    def find_by_email(self, email: str) -> Account | None:
        return self._find("email", email)

    def find_by_confirmation_token(self, token: str) -> Account | None:
        return self._find("token", token)

    def _find(self, kind: str, value: str) -> Account | None:
        try:
            account_id = self._client.get(self._index_key(kind, value))
            if account_id is None:
                return None
            raw = self._client.get(self._account_key(_text(account_id)))
        except RedisError as exc:
            raise StorageFailure(f"account store unavailable: {exc}") from exc
        if raw is None:
            return None
        return _decode(raw)

    def create(self, account: Account) -> Account:
        account_key = self._account_key(account.account_id)
        username_key = self._index_key("username", account.username)
        email_key = self._index_key("email", account.email)
        claimed = [account_key, username_key, email_key]
        if account.confirmation_token:
            claimed.append(self._index_key("token", account.confirmation_token))
        try:
            with self._client.pipeline() as pipe:
                pipe.watch(*claimed)
                if pipe.exists(*claimed):
                    raise StorageFailure(
                        f"username, email or token already in use for account {account.account_id}"
                    )
                pipe.multi()
                pipe.set(account_key, _encode(account))
                for key in claimed[1:]:
                    pipe.set(key, account.account_id)
                pipe.execute()
        except WatchError as exc:
            raise StorageFailure(f"account {account.account_id} was created concurrently") from exc
        except RedisError as exc:
            raise StorageFailure(f"account store unavailable: {exc}") from exc
        return account

    def save(self, account: Account) -> None:
        account_key = self._account_key(account.account_id)
        try:
            with self._client.pipeline() as pipe:
                pipe.watch(account_key)
                raw = pipe.get(account_key)
                stored = _decode(raw) if raw is not None else None
                if stored is None or stored.version != account.version:
                    raise StorageFailure(
                        f"account {account.account_id} was modified concurrently or no longer exists"
                    )
                updated = _encode(account, version=account.version + 1)
                pipe.multi()
                pipe.set(account_key, updated)
                for kind, old, new in (
                    ("username", stored.username, account.username),
                    ("email", stored.email, account.email),
                    ("token", stored.confirmation_token, account.confirmation_token),
                ):
                    if old == new:
                        continue
                    if old:
                        pipe.delete(self._index_key(kind, old))
                    if new:
                        pipe.set(self._index_key(kind, new), account.account_id)
                pipe.execute()
        except WatchError as exc:
            raise StorageFailure(f"account {account.account_id} was modified concurrently") from exc
        except RedisError as exc:
            raise StorageFailure(f"account store unavailable: {exc}") from exc
        account.version += 1

    def close(self) -> None:
        self._client.close()


def _text(value: bytes | str) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


def _encode(account: Account, *, version: int | None = None) -> str:
    document: dict[str, Any] = {
        "account_id": account.account_id,
        "username": account.username,
        "email": account.email,
        "password": account.password,
        "enabled": account.enabled,
        "locked": account.locked,
        "roles": sorted(account.roles),
        "super_admin": account.super_admin,
        "confirmation_token": account.confirmation_token,
        "password_requested_at": (
            account.password_requested_at.isoformat() if account.password_requested_at else None
        ),
        "version": account.version if version is None else version,
    }
    return json.dumps(document)


def _decode(raw: bytes | str) -> Account:
    document = json.loads(_text(raw))
    requested_at = document.get("password_requested_at")
    return Account(
        account_id=document["account_id"],
        username=document["username"],
        email=document["email"],
        password=document["password"],
        enabled=document["enabled"],
        locked=document["locked"],
        roles=set(document.get("roles", [])),
        super_admin=document["super_admin"],
        confirmation_token=document.get("confirmation_token"),
        password_requested_at=datetime.fromisoformat(requested_at) if requested_at else None,
        version=document.get("version", 0),
    )
