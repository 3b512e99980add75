"""
Email service: delivers one-time passcodes via SMTP.

In development (no SMTP configured), the code is written to the log
so you can finish a signup without configuring a mail server.
"""

from __future__ import annotations

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

import aiosmtplib

from waitlist.config import (
    PRODUCT_NAME,
    SMTP_FROM_EMAIL,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USE_TLS,
    SMTP_USERNAME,
    smtp_enabled,
)
from waitlist.errors import SendFailed

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    """Anything that can deliver an OTP to an address. Raises ``SendFailed``."""

    async def send(self, to: str, code: str) -> None:
        ...


def _build_plain_body(code: str, ttl_minutes: int) -> str:
    return (
        f"Your {PRODUCT_NAME} verification code is: {code}\n\n"
        f"This code expires in {ttl_minutes} minutes.\n\n"
        "If you did not request this, please ignore this email."
    )


def _build_html_body(code: str, ttl_minutes: int) -> str:
    return f"""
    <html>
    <body style="font-family:sans-serif;color:#333">
      <p>Your {PRODUCT_NAME} verification code is:</p>
      <h2 style="letter-spacing:4px">{code}</h2>
      <p>This code expires in <strong>{ttl_minutes} minutes</strong>.</p>
      <p style="font-size:0.9em;color:#888">
        If you did not request this, you can safely ignore this email.
      </p>
    </body>
    </html>
    """


class SmtpEmailSender:
    """
    Sends the OTP email through aiosmtplib.

    If SMTP is not configured, falls back to logging the code.
    """

    def __init__(self, *, ttl_seconds: int, enabled: bool | None = None) -> None:
        self._ttl_minutes = max(1, ttl_seconds // 60)
        self._enabled = smtp_enabled() if enabled is None else enabled

    async def send(self, to: str, code: str) -> None:
        subject = f"Your {PRODUCT_NAME} verification code"

        # ── Console fallback (dev mode) ───────────────────────────────
        if not self._enabled:
            logger.info(
                "📧 [DEV] Would send OTP email to %s:\n  Subject: %s\n  Code: %s",
                to,
                subject,
                code,
            )
            return

        # ── Real SMTP send ────────────────────────────────────────────
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = SMTP_FROM_EMAIL
        msg["To"] = to
        msg.attach(MIMEText(_build_plain_body(code, self._ttl_minutes), "plain"))
        msg.attach(MIMEText(_build_html_body(code, self._ttl_minutes), "html"))

        try:
            await aiosmtplib.send(
                msg,
                hostname=SMTP_HOST,
                port=SMTP_PORT,
                username=SMTP_USERNAME,
                password=SMTP_PASSWORD,
                start_tls=SMTP_USE_TLS,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.exception("Failed to send OTP email to %s", to)
            raise SendFailed(f"SMTP delivery to {to} failed") from exc

        logger.info("OTP email sent to %s", to)
