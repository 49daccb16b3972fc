"""HTTP route definitions for account administration and password resets."""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from ..domain.account import Account
from ..errors import (
    AccountError,
    AccountNotFound,
    InvalidPassword,
    InvalidRole,
    InvalidToken,
    StorageFailure,
    ThrottledTooSoon,
    TokenExpired,
)
from ..factory import AccountServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")

ResetNotifier = Callable[[Account, str], None]


class AccountResponse(BaseModel):
    """Serialised representation of an `Account` without credentials."""

    account_id: str
    username: str
    email: str
    enabled: bool
    locked: bool
    roles: list[str]
    super_admin: bool
    reset_pending: bool

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        """Build a response model from the domain aggregate."""
        return cls(
            account_id=account.account_id,
            username=account.username,
            email=account.email,
            enabled=account.enabled,
            locked=account.locked,
            roles=sorted(account.roles),
            super_admin=account.super_admin,
            reset_pending=account.has_pending_reset,
        )


class ChangeResponse(BaseModel):
    """Outcome of an idempotent mutation; ``changed`` is false for no-ops."""

    changed: bool


class ResetRequest(BaseModel):
    identifier: str = Field(..., min_length=1)


class ResetConfirmRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str


class RoleRequest(BaseModel):
    role: str


class PasswordRequest(BaseModel):
    new_password: str


def get_services(request: Request) -> AccountServices:
    """Resolve the `AccountServices` stored on the FastAPI application state."""
    services: AccountServices = request.app.state.account_services
    return services


def get_notifier(request: Request) -> ResetNotifier:
    notifier: ResetNotifier = request.app.state.reset_notifier
    return notifier


@router.post("/resetting/request", status_code=status.HTTP_202_ACCEPTED)
def request_reset(
    payload: ResetRequest,
    services: AccountServices = Depends(get_services),
    notifier: ResetNotifier = Depends(get_notifier),
) -> dict[str, str]:
    """Start a password reset; the token is handed to the notifier, never returned."""
    try:
        account, token = services.resetting.issue_reset(payload.identifier)
    except AccountError as exc:
        raise _http_error(exc) from exc
    notifier(account, token)
    return {"status": "accepted"}


@router.post("/resetting/confirm", response_model=AccountResponse)
def confirm_reset(
    payload: ResetConfirmRequest,
    services: AccountServices = Depends(get_services),
) -> AccountResponse:
    try:
        account = services.resetting.confirm_reset(payload.token, payload.new_password)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return AccountResponse.from_domain(account)


@router.delete("/resetting/{identifier}", response_model=ChangeResponse)
def cancel_reset(
    identifier: str,
    services: AccountServices = Depends(get_services),
) -> ChangeResponse:
    return _change(lambda: services.resetting.cancel_reset(identifier))


@router.put("/accounts/{identifier}/super-admin", response_model=ChangeResponse)
def promote(identifier: str, services: AccountServices = Depends(get_services)) -> ChangeResponse:
    return _change(lambda: services.manipulator.promote_to_super(identifier))


@router.delete("/accounts/{identifier}/super-admin", response_model=ChangeResponse)
def demote(identifier: str, services: AccountServices = Depends(get_services)) -> ChangeResponse:
    return _change(lambda: services.manipulator.demote_from_super(identifier))


@router.post("/accounts/{identifier}/roles", response_model=ChangeResponse)
def add_role(
    identifier: str,
    payload: RoleRequest,
    services: AccountServices = Depends(get_services),
) -> ChangeResponse:
    return _change(lambda: services.manipulator.add_role(identifier, payload.role))


@router.delete("/accounts/{identifier}/roles/{role}", response_model=ChangeResponse)
def remove_role(
    identifier: str,
    role: str,
    services: AccountServices = Depends(get_services),
) -> ChangeResponse:
    return _change(lambda: services.manipulator.remove_role(identifier, role))


@router.put("/accounts/{identifier}/enabled", response_model=ChangeResponse)
def activate(identifier: str, services: AccountServices = Depends(get_services)) -> ChangeResponse:
    return _change(lambda: services.manipulator.activate(identifier))


@router.delete("/accounts/{identifier}/enabled", response_model=ChangeResponse)
def deactivate(identifier: str, services: AccountServices = Depends(get_services)) -> ChangeResponse:
    return _change(lambda: services.manipulator.deactivate(identifier))


@router.put("/accounts/{identifier}/password", response_model=AccountResponse)
def change_password(
    identifier: str,
    payload: PasswordRequest,
    services: AccountServices = Depends(get_services),
) -> AccountResponse:
    try:
        account = services.manipulator.change_password(identifier, payload.new_password)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return AccountResponse.from_domain(account)


def _change(operation: Callable[[], bool]) -> ChangeResponse:
    try:
        return ChangeResponse(changed=operation())
    except AccountError as exc:
        raise _http_error(exc) from exc


_STATUS_BY_ERROR: dict[type[AccountError], int] = {
    AccountNotFound: status.HTTP_404_NOT_FOUND,
    InvalidToken: status.HTTP_400_BAD_REQUEST,
    TokenExpired: status.HTTP_410_GONE,
    ThrottledTooSoon: status.HTTP_429_TOO_MANY_REQUESTS,
    InvalidRole: 422,
    InvalidPassword: 422,
    StorageFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _http_error(exc: AccountError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    headers = None
    if isinstance(exc, ThrottledTooSoon):
        headers = {"Retry-After": str(exc.retry_after)}
    if isinstance(exc, StorageFailure):
        logger.error("account store failure: %s", exc)
    return HTTPException(status_code=status_code, detail=str(exc), headers=headers)
