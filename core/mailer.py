"""
Outbound mail for verification codes.

MAIL_BACKEND selects the transport:
    "console" -> log that a code was sent (development, default)
    "smtp"    -> smtplib with STARTTLS
    "http"    -> JSON POST to a transactional mail API

Every transport applies MAIL_TIMEOUT_SECONDS and raises MailDeliveryError
on failure. Callers never retry a send.
"""

import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage

import requests

from core.config import Settings
from core.security import hash_email

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    pass


def render_code_email(code: str, from_name: str, expiry_minutes: int) -> tuple[str, str, str]:
    subject = f"Your {from_name} verification code: {code}"
    text = (
        f"{from_name} - Email Verification\n\n"
        "Hello,\n\n"
        f"You requested to verify your email address on {from_name}.\n\n"
        f"Your verification code is: {code}\n\n"
        f"This code will expire in {expiry_minutes} minutes.\n\n"
        "If you didn't request this verification code, please ignore this email.\n\n"
        f"This is an automated message from {from_name}. Please do not reply.\n"
    )
    html = f"""<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #333;">
  <h1>{from_name}</h1>
  <h2>Email Verification</h2>
  <p>Please use the verification code below:</p>
  <div style="font-size: 32px; font-weight: bold; letter-spacing: 5px; font-family: 'Courier New', monospace;">{code}</div>
  <p>This code will expire in <strong>{expiry_minutes} minutes</strong>.</p>
  <p><strong>Security Notice:</strong> If you didn't request this verification code, please ignore this email.</p>
  <p style="color: #666; font-size: 14px;">This is an automated message from {from_name}. Please do not reply.</p>
</body>
</html>
"""
    return subject, text, html


class Mailer(ABC):
    name = "base"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def send_code(self, to_email: str, code: str) -> None:
        subject, text, html = render_code_email(
            code, self.settings.MAIL_FROM_NAME, self.settings.CODE_EXPIRY_MINUTES
        )
        self.send(to_email, subject, text, html)

    @abstractmethod
    def send(self, to_email: str, subject: str, text: str, html: str) -> None:
        ...

    def is_healthy(self) -> bool:
        return True


class ConsoleMailer(Mailer):
    name = "console"

    def send(self, to_email: str, subject: str, text: str, html: str) -> None:
        logger.info("Console mail backend: verification email prepared for %s...", hash_email(to_email)[:12])


class SmtpMailer(Mailer):
    name = "smtp"

    def send(self, to_email: str, subject: str, text: str, html: str) -> None:
        s = self.settings
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{s.MAIL_FROM_NAME} <{s.MAIL_FROM}>"
        msg["To"] = to_email
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(s.SMTP_HOST, s.SMTP_PORT, timeout=s.MAIL_TIMEOUT_SECONDS) as server:
                if s.SMTP_USE_TLS:
                    server.starttls()
                if s.SMTP_USER:
                    server.login(s.SMTP_USER, s.SMTP_PASSWORD)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP delivery failed: %s", exc)
            raise MailDeliveryError("Failed to send verification email") from exc

    def is_healthy(self) -> bool:
        return bool(self.settings.SMTP_HOST)


class HttpMailer(Mailer):
    name = "http"

    def send(self, to_email: str, subject: str, text: str, html: str) -> None:
        s = self.settings
        headers = {"Content-Type": "application/json"}
        if s.MAIL_API_KEY:
            headers["Authorization"] = f"Bearer {s.MAIL_API_KEY}"
        payload = {
            "from": {"email": s.MAIL_FROM, "name": s.MAIL_FROM_NAME},
            "to": [{"email": to_email}],
            "subject": subject,
            "text": text,
            "html": html,
        }
        try:
            resp = requests.post(
                s.MAIL_API_URL, json=payload, headers=headers, timeout=s.MAIL_TIMEOUT_SECONDS
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Mail API delivery failed: %s", exc)
            raise MailDeliveryError("Failed to send verification email") from exc

    def is_healthy(self) -> bool:
        return bool(self.settings.MAIL_API_URL)


_BACKENDS = {
    "console": ConsoleMailer,
    "smtp": SmtpMailer,
    "http": HttpMailer,
}


def build_mailer(settings: Settings) -> Mailer:
    try:
        cls = _BACKENDS[settings.MAIL_BACKEND.lower()]
    except KeyError:
        raise ValueError(f"Unknown MAIL_BACKEND: {settings.MAIL_BACKEND}") from None
    return cls(settings)
