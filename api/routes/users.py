"""
api/routes/users.py -- Admin user directory (super_admin only).

Routes (prefix /api/admin):
  GET    /users                -- all accounts, newest first
  GET    /users/{id}           -- one account
  PUT    /users/{id}           -- edit name / status / role / permissions
  DELETE /users/{id}           -- hard delete
  PATCH  /users/{id}/activate  -- status -> active
  PATCH  /users/{id}/suspend   -- status -> suspended

Self-targeting guards (400): a caller cannot change their own status,
activate or suspend themselves, or delete themselves. Promotion to
super_admin always grants every permission, whatever the body says.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import get_account_service
from api.models import MessageResponse, UserActionResponse, UserResponse, UserUpdate
from auth.dependencies import require_super_admin
from auth.lifecycle import AccountService
from auth.models import TokenClaims

# Auth policy: every route requires role super_admin (require_super_admin).
router = APIRouter(prefix="/users")


@router.get("", response_model=list[UserResponse])
def list_users(
    identity: TokenClaims = Depends(require_super_admin),
    service: AccountService = Depends(get_account_service),
) -> list[UserResponse]:
    return [UserResponse.from_account(a) for a in service.list_accounts()]


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: str,
    identity: TokenClaims = Depends(require_super_admin),
    service: AccountService = Depends(get_account_service),
) -> UserResponse:
    return UserResponse.from_account(service.get_account(user_id))


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    body: UserUpdate,
    identity: TokenClaims = Depends(require_super_admin),
    service: AccountService = Depends(get_account_service),
) -> UserResponse:
    updated = service.update_account(
        identity.account_id,
        user_id,
        name=body.name,
        status=body.status.value if body.status is not None else None,
        role=body.role.value if body.role is not None else None,
        permissions=body.permissions.to_domain() if body.permissions is not None else None,
    )
    return UserResponse.from_account(updated)


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    identity: TokenClaims = Depends(require_super_admin),
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    service.delete_account(identity.account_id, user_id)
    return MessageResponse(message="User deleted successfully.")


@router.patch("/{user_id}/activate", response_model=UserActionResponse)
def activate_user(
    user_id: str,
    identity: TokenClaims = Depends(require_super_admin),
    service: AccountService = Depends(get_account_service),
) -> UserActionResponse:
    account = service.activate(identity.account_id, user_id)
    return UserActionResponse(message="User activated successfully.", user=UserResponse.from_account(account))


@router.patch("/{user_id}/suspend", response_model=UserActionResponse)
def suspend_user(
    user_id: str,
    identity: TokenClaims = Depends(require_super_admin),
    service: AccountService = Depends(get_account_service),
) -> UserActionResponse:
    account = service.suspend(identity.account_id, user_id)
    return UserActionResponse(message="User suspended successfully.", user=UserResponse.from_account(account))
