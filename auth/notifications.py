"""
auth/notifications.py -- Transactional email for account lifecycle events.

Delivery goes through the Resend REST API with a module-level requests
Session (connection pooling, bounded redirects). Every public method returns
True on delivery and False otherwise; none of them raise. Lifecycle code
schedules these calls after the response is sent, so a failed email is
logged and otherwise ignored -- the account change it announces stands.

Without RESEND_API_KEY the notifier runs in log-only mode: it records that a
message would have been sent and returns False.

Log lines name the recipient and the message kind. They never contain the
verification code, the reset token, or the reset URL.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import html
import logging
from typing import Optional

import requests

from core.config import Settings, get_settings

logger = logging.getLogger("marketing_admin.notifications")

RESEND_API_URL = "https://api.resend.com/emails"

_session = requests.Session()
_session.max_redirects = 3

_FOOTER = '<hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;"><p style="color: #666; font-size: 12px;">Admin Panel</p>'


def _wrap(title: str, body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h2 style="color: #1a1a2e;">{title}</h2>{body}{_FOOTER}</div>'
    )


def _code_block(code: str) -> str:
    return (
        '<div style="background: #f4f4f4; padding: 20px; text-align: center; margin: 20px 0;">'
        f'<span style="font-size: 32px; font-weight: bold; letter-spacing: 8px; color: #6366f1;">{code}</span>'
        "</div>"
    )


class Notifier:
    """Sends the four lifecycle emails: verification, reset, welcome, admin notice."""

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None) -> None:
        self._settings = settings or get_settings()
        self._session = session or _session

    # ------------------------------------------------------------------
    # Lifecycle messages
    # ------------------------------------------------------------------

    def send_verification_email(self, to: str, name: str, code: str) -> bool:
        minutes = self._settings.verification_code_ttl_minutes
        body = (
            f"<p>Hello {html.escape(name)},</p>"
            "<p>Your verification code is:</p>"
            f"{_code_block(code)}"
            f"<p>This code expires in <strong>{minutes} minutes</strong>.</p>"
            "<p>If you didn't request this, please ignore this email.</p>"
        )
        return self._send(to, "Verify your admin account", _wrap("Email Verification", body), kind="verification")

    def send_password_reset_email(self, to: str, name: str, reset_token: str) -> bool:
        reset_url = f"{self._settings.admin_panel_url.rstrip('/')}/reset-password?token={reset_token}"
        minutes = self._settings.reset_token_ttl_minutes
        body = (
            f"<p>Hello {html.escape(name)},</p>"
            "<p>We received a request to reset your password. Click the button below to proceed:</p>"
            '<div style="text-align: center; margin: 30px 0;">'
            f'<a href="{html.escape(reset_url, quote=True)}" style="background: #6366f1; color: white; '
            'padding: 14px 28px; text-decoration: none; border-radius: 6px; font-weight: bold;">Reset Password</a>'
            "</div>"
            f"<p>This link expires in <strong>{minutes} minutes</strong>.</p>"
            "<p>If you didn't request a password reset, you can safely ignore this email.</p>"
        )
        return self._send(to, "Reset your admin password", _wrap("Password Reset Request", body), kind="password_reset")

    def send_welcome_email(self, to: str, name: str) -> bool:
        body = (
            f"<p>Hello {html.escape(name)},</p>"
            "<p>Your email has been verified.</p>"
            "<p>An administrator will review your account shortly. "
            "You will be able to log in once it has been activated.</p>"
        )
        return self._send(to, "Welcome to the admin panel", _wrap("Email Verified", body), kind="welcome")

    def send_admin_notification(self, admin_email: str, name: str, email: str, code: str) -> bool:
        """Tell the site owner about a new registration, including its code.

        The code is included so the owner can verify an account on the
        registrant's behalf when the registrant's mailbox is unreachable.
        """
        if not admin_email:
            logger.warning("ADMIN_EMAIL not configured -- skipping new-registration notice for %s", email)
            return False
        panel = html.escape(self._settings.admin_panel_url, quote=True)
        body = (
            "<p>A new user has registered and is waiting for approval.</p>"
            f"<p><strong>Name:</strong> {html.escape(name)}<br><strong>Email:</strong> {html.escape(email)}</p>"
            "<p>Verification code:</p>"
            f"{_code_block(code)}"
            f'<p>Review pending accounts in the <a href="{panel}">admin panel</a>.</p>'
        )
        return self._send(admin_email, "New admin registration", _wrap("New Registration", body), kind="admin_notice")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _send(self, to: str, subject: str, html_body: str, *, kind: str) -> bool:
        api_key = self._settings.resend_api_key
        if not api_key:
            logger.info("Email delivery disabled (no RESEND_API_KEY) -- %s email to %s not sent", kind, to)
            return False

        try:
            resp = self._session.post(
                RESEND_API_URL,
                json={"from": self._settings.from_email, "to": [to], "subject": subject, "html": html_body},
                headers={"Authorization": f"Bearer {api_key}"},
                timeout=10,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Failed to send %s email to %s: %s", kind, to, _redact(str(exc), api_key))
            return False

        logger.info("Sent %s email to %s", kind, to)
        return True


def _redact(message: str, secret: str) -> str:
    return message.replace(secret, "***REDACTED***") if secret else message
