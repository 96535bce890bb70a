"""Unit tests for auth/store.py.

Covers:
- Email normalization on insert and lookup; UNIQUE email
- Permissions persisted as JSON and mapped back to the dataclass
- super_admin always holds every permission, on insert and on update
- update_account field whitelist, timestamps, and not-found handling
- Status counts used by the dashboard
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import (
    ROLE_ADMIN,
    ROLE_SUPER_ADMIN,
    STATUS_ACTIVE,
    STATUS_PENDING,
    STATUS_SUSPENDED,
    Account,
    Permissions,
)


def _account(email="alice@example.com", **overrides) -> Account:
    fields = dict(email=email, password_hash="$2b$04$hash", name="Alice")
    fields.update(overrides)
    return Account(**fields)


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------


def test_create_and_get_by_id(store):
    account_id = store.create_account(_account())
    account = store.get_by_id(account_id)
    assert account is not None
    assert account.id == account_id
    assert account.role == ROLE_ADMIN
    assert account.status == STATUS_PENDING
    assert account.email_verified is False
    assert account.permissions == Permissions.default()
    assert account.created_at is not None and account.created_at.tzinfo is not None


def test_email_is_normalized(store):
    store.create_account(_account(email="  Alice@Example.COM "))
    account = store.get_by_email("ALICE@example.com")
    assert account is not None
    assert account.email == "alice@example.com"


def test_duplicate_email_raises_integrity_error(store):
    store.create_account(_account(email="alice@example.com"))
    with pytest.raises(IntegrityError):
        store.create_account(_account(email="ALICE@example.com"))


def test_unknown_lookups_return_none(store):
    assert store.get_by_id("missing") is None
    assert store.get_by_email("nobody@example.com") is None
    assert store.get_by_reset_token("0" * 64) is None
    assert store.get_by_reset_token("") is None


def test_datetimes_round_trip_as_aware_utc(store):
    expires = datetime(2030, 5, 1, 8, 30, tzinfo=timezone.utc)
    account_id = store.create_account(_account(email_verify_code="123456", email_verify_expires_at=expires))
    account = store.get_by_id(account_id)
    assert account.email_verify_code == "123456"
    assert account.email_verify_expires_at == expires


def test_reset_token_lookup(store):
    account_id = store.create_account(_account())
    store.update_account(
        account_id,
        password_reset_token="ab" * 32,
        password_reset_expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )
    found = store.get_by_reset_token("ab" * 32)
    assert found is not None and found.id == account_id


def test_list_accounts_newest_first(store):
    first = store.create_account(_account(email="first@example.com"))
    second = store.create_account(_account(email="second@example.com"))
    ids = [a.id for a in store.list_accounts()]
    assert ids.index(second) < ids.index(first)


def test_has_accounts(store):
    assert store.has_accounts() is False
    store.create_account(_account())
    assert store.has_accounts() is True


# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------


def test_permissions_round_trip(store):
    perms = Permissions(dashboard=True, projects=True, media=True)
    account_id = store.create_account(_account(permissions=perms))
    assert store.get_by_id(account_id).permissions == perms


def test_super_admin_gets_all_permissions_on_create(store):
    account_id = store.create_account(_account(role=ROLE_SUPER_ADMIN, permissions=Permissions()))
    assert store.get_by_id(account_id).permissions == Permissions.all_granted()


def test_promotion_forces_all_permissions(store):
    account_id = store.create_account(_account())
    store.update_account(account_id, role=ROLE_SUPER_ADMIN, permissions=Permissions())
    account = store.get_by_id(account_id)
    assert account.role == ROLE_SUPER_ADMIN
    assert account.permissions == Permissions.all_granted()


def test_super_admin_permissions_cannot_be_reduced(store):
    account_id = store.create_account(_account(role=ROLE_SUPER_ADMIN))
    store.update_account(account_id, permissions=Permissions(dashboard=True))
    assert store.get_by_id(account_id).permissions == Permissions.all_granted()


def test_demotion_keeps_supplied_permissions(store):
    account_id = store.create_account(_account(role=ROLE_SUPER_ADMIN))
    store.update_account(account_id, role=ROLE_ADMIN, permissions=Permissions(dashboard=True, inbox=True))
    account = store.get_by_id(account_id)
    assert account.role == ROLE_ADMIN
    assert account.permissions == Permissions(dashboard=True, inbox=True)


def test_unknown_permission_keys_are_dropped():
    perms = Permissions.from_dict({"dashboard": True, "billing": True})
    assert perms.dashboard is True
    assert "billing" not in perms.to_dict()
    assert perms.has("billing") is False


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------


def test_update_account_returns_false_for_missing(store):
    assert store.update_account("missing", name="Nobody") is False


def test_update_account_rejects_unknown_fields(store):
    account_id = store.create_account(_account())
    with pytest.raises(ValueError):
        store.update_account(account_id, is_admin=True)


def test_update_account_clears_nullable_fields(store):
    account_id = store.create_account(
        _account(email_verify_code="123456", email_verify_expires_at=datetime.now(timezone.utc))
    )
    store.update_account(account_id, email_verified=True, email_verify_code=None, email_verify_expires_at=None)
    account = store.get_by_id(account_id)
    assert account.email_verified is True
    assert account.email_verify_code is None
    assert account.email_verify_expires_at is None


def test_update_last_login(store):
    account_id = store.create_account(_account())
    when = datetime(2030, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    store.update_last_login(account_id, when)
    assert store.get_by_id(account_id).last_login_at == when


def test_delete_account(store):
    account_id = store.create_account(_account())
    assert store.delete_account(account_id) is True
    assert store.get_by_id(account_id) is None
    assert store.delete_account(account_id) is False


# ---------------------------------------------------------------------------
# Counts and health
# ---------------------------------------------------------------------------


def test_count_by_status_and_awaiting_approval(store):
    store.create_account(_account(email="p1@example.com"))
    store.create_account(_account(email="p2@example.com", email_verified=True))
    store.create_account(_account(email="a1@example.com", status=STATUS_ACTIVE, email_verified=True))
    store.create_account(_account(email="s1@example.com", status=STATUS_SUSPENDED, email_verified=True))

    assert store.count_by_status() == {STATUS_PENDING: 2, STATUS_ACTIVE: 1, STATUS_SUSPENDED: 1}
    assert store.count_awaiting_approval() == 1


def test_ping(store):
    assert store.ping() is True
