"""Tests for first-run provisioning: api.main.bootstrap_admin and the main.py CLI.

The CLI tests use a SQLite file under tmp_path because main() disposes its
engine on exit, which would discard an in-memory database between calls.
"""

import pytest

import main as cli
from api.main import bootstrap_admin
from auth.errors import ValidationError
from auth.models import ROLE_SUPER_ADMIN, Permissions
from core.config import Settings

PASSWORD = "Str0ng!Pass"


def _settings(**overrides) -> Settings:
    values = dict(debug=True, bootstrap_admin_email="Owner@Example.com", bootstrap_admin_password=PASSWORD)
    values.update(overrides)
    return Settings(**values)


# ---------------------------------------------------------------------------
# bootstrap_admin
# ---------------------------------------------------------------------------


def test_bootstrap_seeds_super_admin_on_empty_store(store, notifier):
    account_id = bootstrap_admin(store, notifier, _settings())
    account = store.get_by_id(account_id)
    assert account.email == "owner@example.com"
    assert account.role == ROLE_SUPER_ADMIN
    assert account.permissions == Permissions.all_granted()
    assert notifier.sent == []


def test_bootstrap_is_noop_when_accounts_exist(store, notifier):
    bootstrap_admin(store, notifier, _settings())
    assert bootstrap_admin(store, notifier, _settings(bootstrap_admin_email="second@example.com")) is None
    assert len(store.list_accounts()) == 1


def test_bootstrap_is_noop_when_not_configured(store, notifier):
    assert bootstrap_admin(store, notifier, _settings(bootstrap_admin_email="")) is None
    assert store.has_accounts() is False


def test_bootstrap_rejects_weak_password(store, notifier):
    with pytest.raises(ValidationError):
        bootstrap_admin(store, notifier, _settings(bootstrap_admin_password="password"))


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'cli.db'}"


def test_cli_create_and_list(db_url, capsys):
    rc = cli.main(["--database-url", db_url, "create-admin", "--email", "cli@example.com", "--name", "CLI", "--password", PASSWORD])
    assert rc == 0
    assert "Created super_admin account cli@example.com" in capsys.readouterr().out

    assert cli.main(["--database-url", db_url, "list-accounts"]) == 0
    out = capsys.readouterr().out
    assert "cli@example.com" in out
    assert "1 account(s)." in out
    assert PASSWORD not in out


def test_cli_weak_password_fails(db_url, capsys):
    rc = cli.main(["--database-url", db_url, "create-admin", "--email", "cli@example.com", "--name", "CLI", "--password", "weak"])
    assert rc == 1
    assert "at least 8 characters" in capsys.readouterr().out


def test_cli_duplicate_fails(db_url, capsys):
    args = ["--database-url", db_url, "create-admin", "--email", "cli@example.com", "--name", "CLI", "--password", PASSWORD]
    assert cli.main(args) == 0
    assert cli.main(args) == 1


def test_cli_prompt_mismatch(db_url, monkeypatch, capsys):
    answers = iter([PASSWORD, "Different!1"])
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt="": next(answers))
    rc = cli.main(["--database-url", db_url, "create-admin", "--email", "cli@example.com", "--name", "CLI"])
    assert rc == 1
    assert "do not match" in capsys.readouterr().out


def test_cli_list_filters_by_status(db_url, capsys):
    cli.main(["--database-url", db_url, "create-admin", "--email", "cli@example.com", "--name", "CLI", "--password", PASSWORD])
    capsys.readouterr()
    assert cli.main(["--database-url", db_url, "list-accounts", "--status", "pending"]) == 0
    assert "No accounts found." in capsys.readouterr().out


def test_cli_without_command_prints_help(capsys):
    assert cli.main([]) == 2
    assert "create-admin" in capsys.readouterr().out
