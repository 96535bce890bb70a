"""
auth/lifecycle.py -- Account lifecycle: registration through suspension.

State machine (status, email_verified):

    (pending, False) --verify_email--> (pending, True) --activate--> (active, True)
                                                                        ^    |
                                                              activate  |    | suspend
                                                                        |    v
                                                                   (suspended, True)

Login is allowed only in (active, True). The rejection reason is reported in
a fixed order: bad credentials, then unverified email, then pending, then
suspended.

Every transition touches exactly one row, and one-time secrets (verification
code, reset token) are cleared in the same UPDATE that consumes them, so a
replayed code or token finds nothing to match.

Emails are handed to `dispatch`, which in the API is BackgroundTasks.add_task:
the response goes out first and a delivery failure never undoes the change.
Notifier methods log and swallow their own failures.

Enumeration resistance: resend_verification() and forgot_password() return
the same message object whether or not the email is registered.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from sqlalchemy.exc import IntegrityError

from auth.errors import (
    AccountSuspended,
    AlreadyVerified,
    Conflict,
    EmailNotVerified,
    ExpiredCode,
    ExpiredResetToken,
    InvalidCode,
    InvalidCredentials,
    InvalidResetToken,
    NotFound,
    PendingApproval,
    Unauthorized,
    ValidationError,
)
from auth.models import (
    ROLE_ADMIN,
    ROLE_SUPER_ADMIN,
    STATUS_ACTIVE,
    STATUS_PENDING,
    STATUS_SUSPENDED,
    Account,
    Permissions,
)
from auth.notifications import Notifier
from auth.passwords import (
    DUMMY_HASH,
    generate_reset_token,
    generate_verification_code,
    hash_password,
    validate_password_strength,
    verify_password,
)
from auth.store import AccountStore, normalize_email
from auth.tokens import issue_token
from core.config import Settings, get_settings

logger = logging.getLogger("marketing_admin.lifecycle")

RESEND_VERIFICATION_MESSAGE = "If the email exists, a verification code has been sent."
FORGOT_PASSWORD_MESSAGE = "If the email exists, a password reset link has been sent."

Dispatch = Callable[..., Any]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _call_now(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    fn(*args, **kwargs)


def _is_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    return expires_at is None or now > expires_at


class AccountService:
    """Orchestrates every account state change.

    Args:
        store:    AccountStore for reads and single-row writes.
        notifier: Notifier for lifecycle emails.
        settings: Settings (TTLs, admin email). Defaults to get_settings().
        dispatch: Callable(fn, *args) that schedules a notification. Defaults
                  to calling it immediately.
        clock:    Returns the current aware UTC datetime. Injected by tests
                  that need to step past an expiry.
    """

    def __init__(
        self,
        store: AccountStore,
        notifier: Notifier,
        *,
        settings: Optional[Settings] = None,
        dispatch: Optional[Dispatch] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.settings = settings or get_settings()
        self._dispatch = dispatch or _call_now
        self._clock = clock or _utcnow

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _code_expiry(self) -> datetime:
        return self._clock() + timedelta(minutes=self.settings.verification_code_ttl_minutes)

    def _reset_expiry(self) -> datetime:
        return self._clock() + timedelta(minutes=self.settings.reset_token_ttl_minutes)

    @staticmethod
    def _require_strong(password: str) -> None:
        result = validate_password_strength(password)
        if not result.valid:
            raise ValidationError(result.reason, detail="password")

    def _require_account(self, account_id: str) -> Account:
        account = self.store.get_by_id(account_id)
        if account is None:
            raise NotFound()
        return account

    @staticmethod
    def _reject_self(caller_id: str, target_id: str, action: str) -> None:
        if caller_id == target_id:
            raise ValidationError(f"Cannot {action} your own account.")

    # ------------------------------------------------------------------
    # Registration and email verification
    # ------------------------------------------------------------------

    def register(self, email: str, password: str, name: str) -> Account:
        """Create a pending, unverified account and send out its verification code."""
        self._require_strong(password)
        email = normalize_email(email)
        if self.store.get_by_email(email) is not None:
            raise Conflict()

        code = generate_verification_code()
        account = Account(
            email=email,
            password_hash=hash_password(password),
            name=name,
            role=ROLE_ADMIN,
            status=STATUS_PENDING,
            permissions=Permissions.default(),
            email_verified=False,
            email_verify_code=code,
            email_verify_expires_at=self._code_expiry(),
        )
        try:
            account.id = self.store.create_account(account)
        except IntegrityError as exc:
            raise Conflict() from exc
        logger.info("Registered account %s (pending verification)", account.id)

        self._dispatch(self.notifier.send_admin_notification, self.settings.admin_email, name, email, code)
        self._dispatch(self.notifier.send_verification_email, email, name, code)
        return account

    def verify_email(self, email: str, code: str) -> Account:
        account = self.store.get_by_email(email)
        if account is None:
            raise NotFound()
        if account.email_verified:
            raise AlreadyVerified()
        stored = account.email_verify_code
        if not stored or not hmac.compare_digest(stored.encode("utf-8"), code.encode("utf-8")):
            raise InvalidCode()
        if _is_expired(account.email_verify_expires_at, self._clock()):
            raise ExpiredCode()

        self.store.update_account(
            account.id,
            email_verified=True,
            email_verify_code=None,
            email_verify_expires_at=None,
        )
        logger.info("Account %s verified its email", account.id)
        self._dispatch(self.notifier.send_welcome_email, account.email, account.name)
        return self._require_account(account.id)

    def resend_verification(self, email: str) -> str:
        """Issue a fresh code. Unknown emails get the same answer as known ones."""
        account = self.store.get_by_email(email)
        if account is None:
            return RESEND_VERIFICATION_MESSAGE
        if account.email_verified:
            raise AlreadyVerified()

        code = generate_verification_code()
        self.store.update_account(account.id, email_verify_code=code, email_verify_expires_at=self._code_expiry())
        self._dispatch(self.notifier.send_verification_email, account.email, account.name, code)
        return RESEND_VERIFICATION_MESSAGE

    def check_status(self, email: str) -> Account:
        account = self.store.get_by_email(email)
        if account is None:
            raise NotFound()
        return account

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> tuple[str, Account]:
        """Check credentials and account state; return (token, account).

        Runs bcrypt even for unknown emails so response time does not reveal
        which addresses are registered.
        """
        account = self.store.get_by_email(email)
        if account is None:
            verify_password(password, DUMMY_HASH)
            raise InvalidCredentials()
        if not verify_password(password, account.password_hash):
            logger.info("Login rejected for account %s: bad password", account.id)
            raise InvalidCredentials()
        if not account.email_verified:
            logger.info("Login rejected for account %s: email not verified", account.id)
            raise EmailNotVerified()
        if account.status == STATUS_PENDING:
            logger.info("Login rejected for account %s: pending approval", account.id)
            raise PendingApproval()
        if account.status != STATUS_ACTIVE:
            logger.info("Login rejected for account %s: %s", account.id, account.status)
            raise AccountSuspended()

        now = self._clock()
        self.store.update_last_login(account.id, now)
        account.last_login_at = now
        token = issue_token(account.id, account.email, account.role, now=now)
        logger.info("Account %s logged in", account.id)
        return token, account

    def current_account(self, account_id: str) -> Account:
        """Fresh copy of the caller's account; a vanished account is a 401."""
        account = self.store.get_by_id(account_id)
        if account is None:
            raise Unauthorized("User not found.")
        return account

    # ------------------------------------------------------------------
    # Passwords
    # ------------------------------------------------------------------

    def change_password(self, account_id: str, current_password: str, new_password: str) -> None:
        self._require_strong(new_password)
        account = self._require_account(account_id)
        if not verify_password(current_password, account.password_hash):
            raise Unauthorized("Current password is incorrect.")
        self.store.update_account(account.id, password_hash=hash_password(new_password))
        logger.info("Account %s changed its password", account.id)

    def forgot_password(self, email: str) -> str:
        """Issue a reset token if the account exists. Always returns the same message."""
        account = self.store.get_by_email(email)
        if account is None:
            return FORGOT_PASSWORD_MESSAGE

        token = generate_reset_token()
        self.store.update_account(account.id, password_reset_token=token, password_reset_expires_at=self._reset_expiry())
        self._dispatch(self.notifier.send_password_reset_email, account.email, account.name, token)
        return FORGOT_PASSWORD_MESSAGE

    def reset_password(self, token: str, new_password: str) -> None:
        """Consume a reset token. A weak password is rejected before the token is touched."""
        self._require_strong(new_password)
        account = self.store.get_by_reset_token(token)
        if account is None:
            raise InvalidResetToken()
        if _is_expired(account.password_reset_expires_at, self._clock()):
            raise ExpiredResetToken()

        self.store.update_account(
            account.id,
            password_hash=hash_password(new_password),
            password_reset_token=None,
            password_reset_expires_at=None,
        )
        logger.info("Account %s reset its password", account.id)

    # ------------------------------------------------------------------
    # Administration (super_admin only -- enforced by the gate)
    # ------------------------------------------------------------------

    def list_accounts(self) -> list[Account]:
        return self.store.list_accounts()

    def get_account(self, account_id: str) -> Account:
        return self._require_account(account_id)

    def update_account(
        self,
        caller_id: str,
        account_id: str,
        *,
        name: Optional[str] = None,
        status: Optional[str] = None,
        role: Optional[str] = None,
        permissions: Optional[Permissions] = None,
    ) -> Account:
        """Apply an admin edit. Promoting to super_admin grants every permission."""
        if status is not None and caller_id == account_id:
            raise ValidationError("Cannot modify your own account status.")
        self._require_account(account_id)

        fields: dict[str, Any] = {}
        if name is not None:
            fields["name"] = name
        if status is not None:
            fields["status"] = status
        if role is not None:
            fields["role"] = role
        if role == ROLE_SUPER_ADMIN:
            fields["permissions"] = Permissions.all_granted()
        elif permissions is not None:
            fields["permissions"] = permissions

        if fields:
            self.store.update_account(account_id, **fields)
            logger.info("Account %s updated by %s (%s)", account_id, caller_id, ", ".join(sorted(fields)))
        return self._require_account(account_id)

    def activate(self, caller_id: str, account_id: str) -> Account:
        return self._set_status(caller_id, account_id, STATUS_ACTIVE, action="activate")

    def suspend(self, caller_id: str, account_id: str) -> Account:
        return self._set_status(caller_id, account_id, STATUS_SUSPENDED, action="suspend")

    def _set_status(self, caller_id: str, account_id: str, status: str, *, action: str) -> Account:
        self._reject_self(caller_id, account_id, action)
        if not self.store.update_account(account_id, status=status):
            raise NotFound()
        logger.info("Account %s set to %s by %s", account_id, status, caller_id)
        return self._require_account(account_id)

    def delete_account(self, caller_id: str, account_id: str) -> None:
        self._reject_self(caller_id, account_id, "delete")
        if not self.store.delete_account(account_id):
            raise NotFound()
        logger.info("Account %s deleted by %s", account_id, caller_id)

    # ------------------------------------------------------------------
    # Provisioning
    # ------------------------------------------------------------------

    def create_admin(self, email: str, password: str, name: str, role: str = ROLE_SUPER_ADMIN) -> Account:
        """Seed an active, verified account (CLI and first-run bootstrap).

        The strength policy still applies; no emails are sent.
        """
        self._require_strong(password)
        email = normalize_email(email)
        if self.store.get_by_email(email) is not None:
            raise Conflict()
        account = Account(
            email=email,
            password_hash=hash_password(password),
            name=name,
            role=role,
            status=STATUS_ACTIVE,
            permissions=Permissions.all_granted() if role == ROLE_SUPER_ADMIN else Permissions.default(),
            email_verified=True,
        )
        try:
            account.id = self.store.create_account(account)
        except IntegrityError as exc:
            raise Conflict() from exc
        logger.info("Provisioned %s account %s", role, account.id)
        return self._require_account(account.id)
