"""Unit tests for auth/gate.py -- the authorization pipeline without HTTP.

Covers:
- Missing / malformed / expired tokens reject with 401 before any role check
- role_check and permission_check outcomes
- Permissions are read from the store at check time, not from the token
- super_admin bypasses permission checks without a lookup
- resolve_optional_token never rejects
"""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from auth.errors import ExpiredToken, Forbidden, InvalidToken, Unauthorized
from auth.gate import (
    Gate,
    GateContext,
    Proceed,
    Reject,
    permission_check,
    resolve_optional_token,
    resolve_token,
    role_check,
)
from auth.models import ROLE_ADMIN, ROLE_SUPER_ADMIN, STATUS_ACTIVE, Account, Permissions
from auth.tokens import issue_token


def _seed(store, *, role=ROLE_ADMIN, permissions=None) -> tuple[str, str]:
    account_id = store.create_account(
        Account(
            email=f"{uuid.uuid4().hex[:8]}@example.com",
            password_hash="$2b$04$hash",
            name="Gate",
            role=role,
            status=STATUS_ACTIVE,
            permissions=permissions or Permissions.default(),
            email_verified=True,
        )
    )
    return account_id, issue_token(account_id, f"{role}@example.com", role)


def _ctx(store, token=None, header=None) -> GateContext:
    if header is None and token:
        header = f"Bearer {token}"
    return GateContext(authorization=header, store=store)


# ---------------------------------------------------------------------------
# Token resolution
# ---------------------------------------------------------------------------


def test_no_token_rejects_401(store):
    decision = Gate(resolve_token).evaluate(_ctx(store))
    assert isinstance(decision, Reject)
    assert isinstance(decision.error, Unauthorized)
    assert decision.error.message == "No token provided."


def test_non_bearer_scheme_is_treated_as_missing(store):
    decision = Gate(resolve_token).evaluate(_ctx(store, header="Basic dXNlcjpwYXNz"))
    assert isinstance(decision, Reject)
    assert decision.error.message == "No token provided."


def test_invalid_token_rejects(store):
    decision = Gate(resolve_token).evaluate(_ctx(store, token="garbage"))
    assert isinstance(decision, Reject)
    assert isinstance(decision.error, InvalidToken)


def test_expired_token_rejects(store):
    old = datetime.now(timezone.utc) - timedelta(days=2)
    token = issue_token("acc", "a@example.com", ROLE_SUPER_ADMIN, now=old)
    decision = Gate(resolve_token, role_check(ROLE_SUPER_ADMIN)).evaluate(_ctx(store, token=token))
    assert isinstance(decision, Reject)
    assert isinstance(decision.error, ExpiredToken)


def test_valid_token_proceeds_with_identity(store):
    account_id, token = _seed(store)
    decision = Gate(resolve_token).evaluate(_ctx(store, token=token))
    assert isinstance(decision, Proceed)
    assert decision.identity.account_id == account_id


def test_optional_token_never_rejects(store):
    gate = Gate(resolve_optional_token)
    assert gate.evaluate(_ctx(store)) == Proceed(None)
    assert gate.evaluate(_ctx(store, token="garbage")) == Proceed(None)
    _, token = _seed(store)
    assert gate.evaluate(_ctx(store, token=token)).identity is not None


# ---------------------------------------------------------------------------
# Role checks
# ---------------------------------------------------------------------------


def test_role_check_rejects_other_roles(store):
    _, token = _seed(store)
    decision = Gate(resolve_token, role_check(ROLE_SUPER_ADMIN)).evaluate(_ctx(store, token=token))
    assert isinstance(decision, Reject)
    assert isinstance(decision.error, Forbidden)
    assert decision.error.status_code == 403


def test_role_check_accepts_listed_role(store):
    _, token = _seed(store, role=ROLE_SUPER_ADMIN)
    decision = Gate(resolve_token, role_check(ROLE_ADMIN, ROLE_SUPER_ADMIN)).evaluate(_ctx(store, token=token))
    assert isinstance(decision, Proceed)


def test_role_check_without_identity_is_unauthorized(store):
    decision = Gate(role_check(ROLE_ADMIN)).evaluate(_ctx(store))
    assert isinstance(decision, Reject)
    assert isinstance(decision.error, Unauthorized)


# ---------------------------------------------------------------------------
# Permission checks
# ---------------------------------------------------------------------------


def test_permission_granted(store):
    _, token = _seed(store, permissions=Permissions(dashboard=True, projects=True))
    decision = Gate(resolve_token, permission_check("projects")).evaluate(_ctx(store, token=token))
    assert isinstance(decision, Proceed)


def test_permission_missing(store):
    _, token = _seed(store)
    decision = Gate(resolve_token, permission_check("projects")).evaluate(_ctx(store, token=token))
    assert isinstance(decision, Reject)
    assert decision.error.message == "Missing required permission: projects"


def test_unknown_permission_name_is_never_granted(store):
    _, token = _seed(store, permissions=Permissions.all_granted())
    decision = Gate(resolve_token, permission_check("billing")).evaluate(_ctx(store, token=token))
    assert isinstance(decision, Reject)


def test_permission_change_applies_to_existing_token(store):
    account_id, token = _seed(store)
    gate = Gate(resolve_token, permission_check("media"))
    assert isinstance(gate.evaluate(_ctx(store, token=token)), Reject)

    store.update_account(account_id, permissions=Permissions(dashboard=True, media=True))
    assert isinstance(gate.evaluate(_ctx(store, token=token)), Proceed)


def test_deleted_account_has_no_permissions(store):
    account_id, token = _seed(store)
    store.delete_account(account_id)
    decision = Gate(resolve_token, permission_check("dashboard")).evaluate(_ctx(store, token=token))
    assert isinstance(decision, Reject)
    assert decision.error.message == "No permissions found for user."


def test_super_admin_bypasses_permission_lookup():
    token = issue_token("ghost", "root@example.com", ROLE_SUPER_ADMIN)
    store = MagicMock()
    decision = Gate(resolve_token, permission_check("inbox")).evaluate(GateContext(f"Bearer {token}", store))
    assert isinstance(decision, Proceed)
    store.get_by_id.assert_not_called()


def test_then_appends_without_mutating():
    base = Gate(resolve_token)
    extended = base.then(role_check(ROLE_ADMIN))
    assert len(base.checks) == 1
    assert len(extended.checks) == 2
