"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Each helper wraps a Gate from auth/gate.py. The gate decides; this module
only pulls the Authorization header and the account store off the request
and raises the carried AuthError on Reject. api/main.py renders AuthError
into the standard error envelope.

get_optional_identity() is the soft variant (returns None for anonymous or
unusable tokens). get_current_identity() raises 401. require_role() and
require_permission() add 403 on top.

Usage:
    @router.get("/projects", dependencies=[Depends(require_permission("projects"))])
    @router.get("/users")
    def list_users(identity: TokenClaims = Depends(require_super_admin)): ...

Layer rule: may import fastapi (Request) because this module is part of the
FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from typing import Callable, Optional

from fastapi import Request

from auth.gate import Gate, GateContext, Reject, permission_check, resolve_optional_token, resolve_token, role_check
from auth.models import ROLE_SUPER_ADMIN, TokenClaims

_AUTHENTICATED = Gate(resolve_token)
_OPTIONAL = Gate(resolve_optional_token)


def _context(request: Request) -> GateContext:
    return GateContext(
        authorization=request.headers.get("Authorization"),
        store=request.app.state.account_store,
    )


def run_gate(gate: Gate, request: Request) -> Optional[TokenClaims]:
    """Evaluate a gate against a request. Raises the AuthError on Reject."""
    decision = gate.evaluate(_context(request))
    if isinstance(decision, Reject):
        raise decision.error
    return decision.identity


def authorize(gate: Gate) -> Callable[[Request], TokenClaims]:
    """Turn a gate into a FastAPI dependency that returns the caller's claims."""

    def dependency(request: Request) -> TokenClaims:
        return run_gate(gate, request)

    return dependency


def get_current_identity(request: Request) -> TokenClaims:
    """Require a valid session token. Raises 401 otherwise."""
    return run_gate(_AUTHENTICATED, request)


def get_optional_identity(request: Request) -> Optional[TokenClaims]:
    """Return the caller's claims, or None for anonymous / bad tokens. Never raises."""
    return run_gate(_OPTIONAL, request)


def require_role(*roles: str) -> Callable[[Request], TokenClaims]:
    return authorize(_AUTHENTICATED.then(role_check(*roles)))


def require_permission(permission: str) -> Callable[[Request], TokenClaims]:
    return authorize(_AUTHENTICATED.then(permission_check(permission)))


require_super_admin = require_role(ROLE_SUPER_ADMIN)
