"""
api/routes/auth.py -- Account authentication REST endpoints.

Routes (prefix /api/admin):
  POST /auth/register             -- self-registration; account starts pending + unverified
  POST /auth/login                -- email/password login; returns bearer token
  POST /auth/logout               -- advisory; tokens are stateless (requires auth)
  GET  /auth/verify               -- fresh identity + permissions (requires auth)
  POST /auth/change-password      -- requires auth and the current password
  POST /auth/verify-email         -- confirm the 6-digit code
  POST /auth/resend-verification  -- new code; generic answer for unknown emails
  POST /auth/forgot-password      -- reset link; generic answer for unknown emails
  POST /auth/reset-password       -- consume a reset token
  POST /auth/check-status         -- status polling after verification

Security:
  Every failure is raised as an auth.errors.AuthError and rendered by the
  handler in api/main.py -- no handler builds an error body itself.
  Login, registration and password responses carry Cache-Control: no-store.
  Rate limits (api.limiter) sit in front of every public endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.deps import get_account_service
from api.limiter import AUTH_LIMIT, EMAIL_LIMIT, PASSWORD_LIMIT, limiter
from api.models import (
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    SessionUser,
    StatusResponse,
    UserSummary,
    VerifiedUser,
    VerifyEmailRequest,
    VerifyResponse,
)
from auth.dependencies import get_current_identity
from auth.lifecycle import AccountService
from auth.models import TokenClaims

# Auth policy:
# - register, login, verify-email, resend-verification, forgot-password,
#   reset-password, check-status: public (rate limited)
# - logout, verify, change-password: require a valid bearer token
router = APIRouter(prefix="/auth")


def _no_store(content: dict, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=content)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Registration and verification
# ---------------------------------------------------------------------------


@limiter.limit(AUTH_LIMIT)
@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(
    request: Request,
    body: RegisterRequest,
    service: AccountService = Depends(get_account_service),
) -> JSONResponse:
    """Create a pending account and email its verification code.

    409 if the email is taken, 400 if the password fails the strength policy.
    """
    account = service.register(body.email, body.password, body.name)
    payload = RegisterResponse(
        message="Registration successful! Check your email for the verification code.",
        email=account.email,
        user=UserSummary(id=account.id, email=account.email, name=account.name),
    )
    return _no_store(payload.model_dump(by_alias=True), status_code=201)


@limiter.limit(AUTH_LIMIT)
@router.post("/verify-email", response_model=MessageResponse)
def verify_email(
    request: Request,
    body: VerifyEmailRequest,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    service.verify_email(body.email, body.code)
    return MessageResponse(message="Email verified successfully.")


@limiter.limit(EMAIL_LIMIT)
@router.post("/resend-verification", response_model=MessageResponse)
def resend_verification(
    request: Request,
    body: EmailRequest,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    """Always answers with the same message for unknown and known emails.

    The one exception is a known, already-verified account (400), which
    the admin panel needs to redirect the user to the login screen.
    """
    return MessageResponse(message=service.resend_verification(body.email))


@limiter.limit(AUTH_LIMIT)
@router.post("/check-status", response_model=StatusResponse)
def check_status(
    request: Request,
    body: EmailRequest,
    service: AccountService = Depends(get_account_service),
) -> StatusResponse:
    account = service.check_status(body.email)
    return StatusResponse(status=account.status, is_email_verified=account.email_verified)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@limiter.limit(AUTH_LIMIT)
@router.post("/login", response_model=LoginResponse)
def login(
    request: Request,
    body: LoginRequest,
    service: AccountService = Depends(get_account_service),
) -> JSONResponse:
    """Authenticate with email and password; return a 24h bearer token.

    Wrong email and wrong password produce the same 401. An unverified,
    pending or suspended account gets a 403 naming the reason.
    """
    token, account = service.login(body.email, body.password)
    payload = LoginResponse(token=token, user=SessionUser.from_account(account))
    return _no_store(payload.model_dump(by_alias=True))


@router.post("/logout", response_model=MessageResponse)
def logout(identity: TokenClaims = Depends(get_current_identity)) -> MessageResponse:
    """Stateless tokens: the client discards its token. Nothing to revoke here."""
    return MessageResponse(message="Logged out successfully.")


@router.get("/verify", response_model=VerifyResponse)
def verify(
    identity: TokenClaims = Depends(get_current_identity),
    service: AccountService = Depends(get_account_service),
) -> VerifyResponse:
    """Return the caller's account with permissions read fresh from the store."""
    account = service.current_account(identity.account_id)
    return VerifyResponse(user=VerifiedUser.from_account(account))


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


@limiter.limit(PASSWORD_LIMIT)
@router.post("/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    identity: TokenClaims = Depends(get_current_identity),
    service: AccountService = Depends(get_account_service),
) -> JSONResponse:
    service.change_password(identity.account_id, body.current_password, body.new_password)
    return _no_store({"message": "Password changed successfully."})


@limiter.limit(EMAIL_LIMIT)
@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    request: Request,
    body: EmailRequest,
    service: AccountService = Depends(get_account_service),
) -> MessageResponse:
    """Identical response whether or not the email is registered."""
    return MessageResponse(message=service.forgot_password(body.email))


@limiter.limit(PASSWORD_LIMIT)
@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    service: AccountService = Depends(get_account_service),
) -> JSONResponse:
    service.reset_password(body.token, body.password)
    return _no_store({"message": "Password reset successfully. You can now log in with your new password."})
