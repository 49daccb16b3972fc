from __future__ import annotations

import pytest

from account_lifecycle import cli


@pytest.fixture
def run(services, account, capsys):
    def invoke(*argv: str) -> tuple[int, str, str]:
        code = cli.main(list(argv), services=services)
        captured = capsys.readouterr()
        return code, captured.out, captured.err

    return invoke


def test_promote_adds_role(run, store):
    code, out, _ = run("promote", "user", "role")

    assert code == 0
    assert 'Role "ROLE" has been added to user "user".' in out
    assert store.find_by_username("user").roles == {"ROLE"}

    code, out, _ = run("promote", "user", "role")
    assert code == 0
    assert 'User "user" did already have "ROLE" role.' in out


def test_promote_super(run, store):
    code, out, _ = run("promote", "user", "--super")

    assert code == 0
    assert "promoted as a super administrator" in out
    assert store.find_by_username("user").super_admin is True


def test_demote_super_and_role(run, store):
    run("promote", "user", "--super")
    run("promote", "user", "ROLE_EDITOR")

    code, out, _ = run("demote", "user", "--super")
    assert code == 0
    assert "demoted as a simple user" in out

    code, out, _ = run("demote", "user", "role_editor")
    assert 'Role "ROLE_EDITOR" has been removed from user "user".' in out
    assert store.find_by_username("user").roles == set()


def test_promote_prompts_for_missing_arguments(run, monkeypatch, store):
    answers = iter(["user", "role"])
    monkeypatch.setattr("builtins.input", lambda prompt: next(answers))

    code, out, _ = run("promote")

    assert code == 0
    assert 'Role "ROLE" has been added to user "user".' in out


def test_missing_argument_without_interaction(run):
    code, _, err = run("--no-interaction", "promote", "user")
    assert code == 1
    assert "missing required argument: role" in err


def test_errors_map_to_distinct_exit_codes(run):
    code, _, err = run("promote", "ghost", "ROLE_EDITOR")
    assert code == cli.EXIT_CODES[cli.AccountNotFound]
    assert "not found" in err

    code, _, _ = run("promote", "user", "bad role")
    assert code == cli.EXIT_CODES[cli.InvalidRole]

    run("reset-request", "user")
    code, _, _ = run("reset-request", "user")
    assert code == cli.EXIT_CODES[cli.ThrottledTooSoon]


def test_reset_request_and_confirm(run, hasher, store):
    code, out, _ = run("reset-request", "user")
    assert code == 0
    token = out.strip().rsplit(": ", 1)[1]

    code, out, _ = run("reset-confirm", token, "newpass")
    assert code == 0
    assert 'Password has been reset for user "user".' in out
    assert hasher.verify("newpass", store.find_by_username("user").password)

    code, _, _ = run("reset-confirm", token, "newpass")
    assert code == cli.EXIT_CODES[cli.InvalidToken]


def test_reset_cancel(run):
    run("reset-request", "user")

    code, out, _ = run("reset-cancel", "user")
    assert code == 0
    assert "cancelled" in out

    code, out, _ = run("reset-cancel", "user")
    assert "no pending password reset" in out


def test_activate_and_deactivate(run, store):
    code, out, _ = run("deactivate", "user@example.com")
    assert code == 0
    assert "has been deactivated" in out
    assert store.find_by_username("user").enabled is False

    code, out, _ = run("activate", "user")
    assert "has been activated" in out


def test_change_password_prompts_hidden(run, monkeypatch, hasher, store):
    monkeypatch.setattr("getpass.getpass", lambda prompt: "s3cret")

    code, out, _ = run("change-password", "user")

    assert code == 0
    assert hasher.verify("s3cret", store.find_by_username("user").password)
