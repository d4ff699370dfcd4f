"""Transactional email delivery for account verification and recovery."""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from app.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Send account emails over SMTP.

    When no SMTP host is configured (local development) messages are logged
    instead of sent. Delivery failures are logged and reported as ``False``;
    callers persist their state before sending, so a failed send never
    undoes a token that was already stored.
    """

    def __init__(
        self,
        *,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        smtp_use_tls: bool = True,
        from_email: Optional[str] = None,
        from_name: str = "Account Management",
    ) -> None:
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.from_email = from_email or smtp_user
        self.from_name = from_name

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    @staticmethod
    def _redact_email(email: str) -> str:
        if "@" not in email:
            return "redacted"
        local, domain = email.split("@", 1)
        return f"{local[:2]}***@{domain}"

    def send(self, to_email: str, subject: str, html_body: str) -> bool:
        """Send an HTML email. Returns True if delivered (or logged in dev mode)."""
        if not self.is_configured:
            logger.info(
                "Email not sent (SMTP not configured): to=%s subject=%s",
                self._redact_email(to_email),
                subject,
            )
            return True

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email
        msg.attach(MIMEText(html_body, "html"))

        context = ssl.create_default_context()
        try:
            if self.smtp_use_tls:
                with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                    server.starttls(context=context)
                    if self.smtp_user and self.smtp_password:
                        server.login(self.smtp_user, self.smtp_password)
                    server.sendmail(self.from_email, to_email, msg.as_string())
            else:
                with smtplib.SMTP_SSL(
                    self.smtp_host, self.smtp_port, context=context, timeout=30
                ) as server:
                    if self.smtp_user and self.smtp_password:
                        server.login(self.smtp_user, self.smtp_password)
                    server.sendmail(self.from_email, to_email, msg.as_string())
        except smtplib.SMTPAuthenticationError as e:
            logger.error("SMTP authentication failed for %s: %s", self.smtp_host, e)
            return False
        except smtplib.SMTPRecipientsRefused as e:
            logger.error("Recipient refused %s: %s", self._redact_email(to_email), e)
            return False
        except (smtplib.SMTPException, ssl.SSLError, OSError) as e:
            logger.error(
                "Email send failed to %s via %s:%s (%s): %s",
                self._redact_email(to_email),
                self.smtp_host,
                self.smtp_port,
                type(e).__name__,
                e,
            )
            return False

        logger.info("Email sent: to=%s subject=%s", self._redact_email(to_email), subject)
        return True

    def send_verification_email(self, to_email: str, token: str, origin: str = "") -> bool:
        if origin:
            verify_url = f"{origin}/account/verify-email?token={token}"
            body = (
                "<p>Please click the below link to verify your email address:</p>"
                f'<p><a href="{verify_url}">{verify_url}</a></p>'
            )
        else:
            body = (
                "<p>Please use the below token to verify your email address with the "
                "<code>/accounts/verify-email</code> API route:</p>"
                f"<p><code>{token}</code></p>"
            )
        return self.send(to_email, "Verify Email", f"<h4>Verify Email</h4>{body}")

    def send_already_registered_email(self, to_email: str, origin: str = "") -> bool:
        if origin:
            hint = (
                "<p>If you don't know your password please visit the "
                f'<a href="{origin}/account/forgot-password">forgot password</a> page.</p>'
            )
        else:
            hint = (
                "<p>If you don't know your password you can reset it via the "
                "<code>/accounts/forgot-password</code> API route.</p>"
            )
        return self.send(
            to_email,
            "Email Already Registered",
            f"<h4>Email Already Registered</h4><p>Your email <strong>{to_email}</strong> "
            f"is already registered.</p>{hint}",
        )

    def send_password_reset_email(self, to_email: str, token: str, origin: str = "") -> bool:
        hours = settings.RESET_TOKEN_EXPIRE_HOURS
        if origin:
            reset_url = f"{origin}/account/reset-password?token={token}"
            body = (
                "<p>Please click the below link to reset your password, "
                f"the link will be valid for {hours} hours:</p>"
                f'<p><a href="{reset_url}">{reset_url}</a></p>'
            )
        else:
            body = (
                "<p>Please use the below token to reset your password with the "
                "<code>/accounts/reset-password</code> API route, "
                f"the token will be valid for {hours} hours:</p>"
                f"<p><code>{token}</code></p>"
            )
        return self.send(to_email, "Reset Password", f"<h4>Reset Password</h4>{body}")


email_service = EmailService(
    smtp_host=settings.SMTP_HOST or None,
    smtp_port=settings.SMTP_PORT,
    smtp_user=settings.SMTP_USER or None,
    smtp_password=settings.SMTP_PASSWORD or None,
    smtp_use_tls=settings.SMTP_USE_TLS,
    from_email=settings.EMAIL_FROM or None,
    from_name=settings.EMAIL_FROM_NAME,
)
