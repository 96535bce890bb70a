"""
auth/gate.py -- Authorization gate as an ordered pipeline of checks.

Pattern: Chain of Responsibility with explicit results. A check is a plain
callable GateContext -> Decision, where Decision is either Proceed (carrying
the identity resolved so far) or Reject (carrying the AuthError to report).
Gate.evaluate() runs the checks in order and stops at the first Reject, so
role and permission checks never see an unresolved identity.

This module knows nothing about FastAPI. auth/dependencies.py adapts gates to
Depends(); the CLI and unit tests call them directly.

Typical pipelines:
    Gate(resolve_token)                                     -- any signed-in account
    Gate(resolve_token, role_check("super_admin"))          -- user management
    Gate(resolve_token, permission_check("projects"))       -- a content area
    Gate(resolve_optional_token)                            -- anonymous allowed

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional, Union

from auth.errors import AuthError, Forbidden, Unauthorized
from auth.models import ROLE_SUPER_ADMIN, TokenClaims
from auth.tokens import extract_bearer_token, verify_token

if TYPE_CHECKING:
    from auth.store import AccountStore


@dataclass
class GateContext:
    """Per-request input to a gate. identity is filled in as checks pass."""

    authorization: Optional[str]
    store: AccountStore
    identity: Optional[TokenClaims] = None


@dataclass(frozen=True)
class Proceed:
    identity: Optional[TokenClaims]


@dataclass(frozen=True)
class Reject:
    error: AuthError


Decision = Union[Proceed, Reject]
Check = Callable[[GateContext], Decision]


# ---------------------------------------------------------------------------
# Token resolution
# ---------------------------------------------------------------------------


def resolve_token(ctx: GateContext) -> Decision:
    """Require a valid Bearer token. Missing, expired and invalid all reject with 401."""
    token = extract_bearer_token(ctx.authorization)
    if token is None:
        return Reject(Unauthorized("No token provided."))
    try:
        return Proceed(verify_token(token))
    except AuthError as exc:
        return Reject(exc)


def resolve_optional_token(ctx: GateContext) -> Decision:
    """Resolve a token if one is usable; otherwise continue as anonymous."""
    token = extract_bearer_token(ctx.authorization)
    if token is None:
        return Proceed(None)
    try:
        return Proceed(verify_token(token))
    except AuthError:
        return Proceed(None)


# ---------------------------------------------------------------------------
# Role and permission checks
# ---------------------------------------------------------------------------


def role_check(*allowed_roles: str) -> Check:
    """Build a check that passes only when the caller's role is in allowed_roles."""

    def check(ctx: GateContext) -> Decision:
        if ctx.identity is None:
            return Reject(Unauthorized())
        if ctx.identity.role not in allowed_roles:
            return Reject(Forbidden())
        return Proceed(ctx.identity)

    return check


def permission_check(permission: str) -> Check:
    """Build a check that requires one permission flag.

    super_admin passes without a lookup. Everyone else is checked against the
    permissions stored right now -- the token carries none.
    """

    def check(ctx: GateContext) -> Decision:
        if ctx.identity is None:
            return Reject(Unauthorized())
        if ctx.identity.role == ROLE_SUPER_ADMIN:
            return Proceed(ctx.identity)
        account = ctx.store.get_by_id(ctx.identity.account_id)
        if account is None:
            return Reject(Forbidden("No permissions found for user."))
        if not account.permissions.has(permission):
            return Reject(Forbidden(f"Missing required permission: {permission}"))
        return Proceed(ctx.identity)

    return check


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class Gate:
    """An ordered, immutable sequence of checks."""

    def __init__(self, *checks: Check) -> None:
        self.checks: tuple[Check, ...] = checks

    def then(self, *checks: Check) -> Gate:
        """Return a new gate with extra checks appended."""
        return Gate(*self.checks, *checks)

    def evaluate(self, ctx: GateContext) -> Decision:
        decision: Decision = Proceed(ctx.identity)
        for check in self.checks:
            decision = check(ctx)
            if isinstance(decision, Reject):
                return decision
            ctx.identity = decision.identity
        return decision
