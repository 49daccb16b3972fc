"""Command-line front end for account administration.

Usage::

    account-lifecycle promote alice ROLE_EDITOR
    account-lifecycle promote alice --super
    account-lifecycle demote alice ROLE_EDITOR
    account-lifecycle deactivate alice@example.com
    account-lifecycle change-password alice
    account-lifecycle reset-request alice
    account-lifecycle reset-confirm TOKEN
    account-lifecycle reset-cancel alice

Missing positional arguments are asked for interactively unless
``--no-interaction`` is given.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys

from .config import get_settings
from .domain.account import normalize_role
from .errors import (
    AccountError,
    AccountNotFound,
    ConfigurationError,
    InvalidPassword,
    InvalidRole,
    InvalidToken,
    StorageFailure,
    ThrottledTooSoon,
    TokenExpired,
)
from .factory import AccountServices, build_services

log = logging.getLogger(__name__)

EXIT_CODES: dict[type[AccountError], int] = {
    AccountNotFound: 3,
    InvalidRole: 4,
    InvalidPassword: 4,
    ThrottledTooSoon: 5,
    StorageFailure: 6,
    ConfigurationError: 7,
    InvalidToken: 8,
    TokenExpired: 9,
}


class MissingArgument(Exception):
    """A required value was not supplied and prompting is disabled."""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="account-lifecycle",
        description="Manage account roles, status and password resets.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable verbose logging.",
    )
    parser.add_argument(
        "-n",
        "--no-interaction",
        action="store_false",
        dest="interactive",
        help="Fail instead of prompting for missing arguments.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in [
        ("promote", "Grant a role, or super administrator with --super"),
        ("demote", "Revoke a role, or super administrator with --super"),
    ]:
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("identifier", nargs="?", help="Username or email")
        p.add_argument("role", nargs="?", help="Role name")
        p.add_argument("--super", action="store_true", dest="super_admin", default=False)

    for name, help_text in [
        ("activate", "Enable an account"),
        ("deactivate", "Disable an account"),
        ("reset-request", "Issue a password reset token"),
        ("reset-cancel", "Cancel a pending password reset"),
    ]:
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("identifier", nargs="?", help="Username or email")

    p = subparsers.add_parser("change-password", help="Set a new password")
    p.add_argument("identifier", nargs="?", help="Username or email")
    p.add_argument("password", nargs="?", help="New password")

    p = subparsers.add_parser("reset-confirm", help="Consume a reset token")
    p.add_argument("token", nargs="?", help="Reset token")
    p.add_argument("password", nargs="?", help="New password")

    return parser


def _ask(args: argparse.Namespace, value: str | None, label: str, *, hidden: bool = False) -> str:
    if value:
        return value
    if not args.interactive:
        raise MissingArgument(f"missing required argument: {label}")
    prompt = f"Please choose a {label}: "
    answer = getpass.getpass(prompt) if hidden else input(prompt)
    if not answer.strip():
        raise MissingArgument(f"{label} can not be empty")
    return answer if hidden else answer.strip()


def _promote(services: AccountServices, args: argparse.Namespace, prefix: str) -> str:
    identifier = _ask(args, args.identifier, "username")
    if args.super_admin:
        if services.manipulator.promote_to_super(identifier):
            return f'User "{identifier}" has been promoted as a super administrator.'
        return f'User "{identifier}" does already have the super administrator role.'
    role = normalize_role(_ask(args, args.role, "role"), prefix)
    if services.manipulator.add_role(identifier, role):
        return f'Role "{role}" has been added to user "{identifier}".'
    return f'User "{identifier}" did already have "{role}" role.'


def _demote(services: AccountServices, args: argparse.Namespace, prefix: str) -> str:
    identifier = _ask(args, args.identifier, "username")
    if args.super_admin:
        if services.manipulator.demote_from_super(identifier):
            return f'User "{identifier}" has been demoted as a simple user.'
        return f'User "{identifier}" didn\'t have the super administrator role.'
    role = normalize_role(_ask(args, args.role, "role"), prefix)
    if services.manipulator.remove_role(identifier, role):
        return f'Role "{role}" has been removed from user "{identifier}".'
    return f'User "{identifier}" didn\'t have "{role}" role.'


def _run(services: AccountServices, args: argparse.Namespace, prefix: str) -> str:
    command = args.command
    if command == "promote":
        return _promote(services, args, prefix)
    if command == "demote":
        return _demote(services, args, prefix)
    if command == "activate":
        identifier = _ask(args, args.identifier, "username")
        if services.manipulator.activate(identifier):
            return f'User "{identifier}" has been activated.'
        return f'User "{identifier}" is already active.'
    if command == "deactivate":
        identifier = _ask(args, args.identifier, "username")
        if services.manipulator.deactivate(identifier):
            return f'User "{identifier}" has been deactivated.'
        return f'User "{identifier}" is already inactive.'
    if command == "change-password":
        identifier = _ask(args, args.identifier, "username")
        password = _ask(args, args.password, "password", hidden=True)
        services.manipulator.change_password(identifier, password)
        return f'Changed password for user "{identifier}".'
    if command == "reset-request":
        identifier = _ask(args, args.identifier, "username")
        token = services.resetting.request_reset(identifier)
        return f'Reset token for user "{identifier}": {token}'
    if command == "reset-confirm":
        token = _ask(args, args.token, "token")
        password = _ask(args, args.password, "password", hidden=True)
        account = services.resetting.confirm_reset(token, password)
        return f'Password has been reset for user "{account.username}".'
    identifier = _ask(args, args.identifier, "username")
    if services.resetting.cancel_reset(identifier):
        return f'Password reset cancelled for user "{identifier}".'
    return f'User "{identifier}" has no pending password reset.'


def main(argv: list[str] | None = None, services: AccountServices | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        settings = get_settings()
        if services is None:
            services = build_services(settings)
        print(_run(services, args, settings.role_prefix))
    except MissingArgument as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except AccountError as exc:
        if args.debug:
            log.exception("command %s failed", args.command)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_CODES.get(type(exc), 1)
    return 0


def run() -> None:
    sys.exit(main())
