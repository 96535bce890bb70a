"""
auth/errors.py -- Error taxonomy for the account core.

Every failure the lifecycle service or the authorization gate can report is a
subclass of AuthError carrying its HTTP status and a machine-readable code.
The API layer registers a single exception handler for AuthError, so route
handlers never build error responses by hand.

Messages are safe to show to clients: they never contain passwords, codes,
or tokens.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class. Subclasses override status_code, code and default_message."""

    status_code: int = 400
    code: str = "bad_request"
    default_message: str = "Bad request."

    def __init__(self, message: str | None = None, detail: str | None = None) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# 400
# ---------------------------------------------------------------------------


class ValidationError(AuthError):
    status_code = 400
    code = "validation_error"
    default_message = "Validation failed."


class AlreadyVerified(ValidationError):
    code = "already_verified"
    default_message = "Email is already verified."


class InvalidCode(ValidationError):
    code = "invalid_code"
    default_message = "Verification code is invalid."


class ExpiredCode(ValidationError):
    code = "expired_code"
    default_message = "Verification code has expired. Please request a new one."


class InvalidResetToken(ValidationError):
    code = "invalid_token"
    default_message = "Password reset token is invalid or has already been used."


class ExpiredResetToken(ValidationError):
    code = "expired_token"
    default_message = "Password reset token has expired. Please request a new one."


# ---------------------------------------------------------------------------
# 401
# ---------------------------------------------------------------------------


class Unauthorized(AuthError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class InvalidToken(Unauthorized):
    code = "invalid_token"
    default_message = "Invalid token."


class ExpiredToken(Unauthorized):
    code = "token_expired"
    default_message = "Token has expired."


class InvalidCredentials(Unauthorized):
    code = "bad_credentials"
    default_message = "Email or password is incorrect."


# ---------------------------------------------------------------------------
# 403
# ---------------------------------------------------------------------------


class Forbidden(AuthError):
    status_code = 403
    code = "forbidden"
    default_message = "Insufficient permissions."


class EmailNotVerified(Forbidden):
    code = "email_not_verified"
    default_message = "Please verify your email before logging in."


class PendingApproval(Forbidden):
    code = "account_pending"
    default_message = "Your account is pending admin approval. Please wait for activation."


class AccountSuspended(Forbidden):
    code = "account_suspended"
    default_message = "Your account has been suspended. Please contact the administrator."


# ---------------------------------------------------------------------------
# 404 / 409
# ---------------------------------------------------------------------------


class NotFound(AuthError):
    status_code = 404
    code = "not_found"
    default_message = "User not found."


class Conflict(AuthError):
    status_code = 409
    code = "conflict"
    default_message = "An account with this email already exists."
