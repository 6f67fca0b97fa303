"""Outbound email transport with encrypted SMTP credentials.

SMTP password may be stored encrypted using Fernet (AES-128-CBC) derived from
SECRET_KEY. A send retries a short transient failure in place (smtp_send_attempts);
longer outages are left to the outbox, which retries the row on later sweeps.
"""

import base64
import hashlib
import logging
import smtplib
import time
from collections.abc import Callable
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from typing import Protocol

from cryptography.fernet import Fernet

from ..config import Settings, settings

logger = logging.getLogger(__name__)

_FERNET_PREFIX = "gAAAAA"
_PERMANENT_ERRORS = (smtplib.SMTPAuthenticationError, smtplib.SMTPRecipientsRefused)


class EmailDeliveryError(Exception):
    """Raised when an email could not be handed to the provider."""


# ── Credential encryption ─────────────────────────────────────────────


def _derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet key from the app SECRET_KEY using SHA-256."""
    digest = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(digest)


def encrypt_value(plaintext: str, secret: str | None = None) -> str:
    f = Fernet(_derive_fernet_key(secret or settings.secret_key))
    return f.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str, secret: str | None = None) -> str:
    f = Fernet(_derive_fernet_key(secret or settings.secret_key))
    return f.decrypt(ciphertext.encode()).decode()


# ── Transports ────────────────────────────────────────────────────────


class EmailTransport(Protocol):
    """Provider-agnostic send. Raises EmailDeliveryError on failure."""

    def send(self, to: str, subject: str, html: str, text: str) -> None: ...


class SmtpEmailTransport:
    """SMTP with STARTTLS, tried up to ``smtp_send_attempts`` times with linear backoff."""

    def __init__(self, config: Settings, sleep: Callable[[float], None] = time.sleep) -> None:
        self._config = config
        self._sleep = sleep

    def build_message(self, to: str, subject: str, html: str, text: str) -> MIMEMultipart:
        """multipart/alternative with anti-spam headers."""
        user = self._config.smtp_user
        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((self._config.sender_name, user))
        msg["To"] = to
        msg["Reply-To"] = user
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = make_msgid(domain=user.split("@")[-1] if "@" in user else "local")
        msg["X-Mailer"] = "RecLetters/1.0"
        msg["Subject"] = subject
        # Plain text first: clients render the last alternative they support
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def _password(self) -> str:
        password = self._config.smtp_password
        if password.startswith(_FERNET_PREFIX):
            password = decrypt_value(password, self._config.secret_key)
        return password

    def send(self, to: str, subject: str, html: str, text: str) -> None:
        if not self._config.smtp_configured:
            raise EmailDeliveryError("SMTP not configured")

        msg = self.build_message(to, subject, html, text)
        attempts = max(1, self._config.smtp_send_attempts)
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                with smtplib.SMTP(
                    self._config.smtp_host, self._config.smtp_port, timeout=self._config.smtp_timeout_seconds
                ) as server:
                    server.ehlo()
                    server.starttls()
                    server.ehlo()
                    server.login(self._config.smtp_user, self._password())
                    server.send_message(msg)
                logger.info("Email sent to %s: %s", to, subject)
                return
            except _PERMANENT_ERRORS as exc:
                # Bad credentials or a refused recipient; another try fails the same way
                raise EmailDeliveryError(f"SMTP rejected email to {to}: {exc}") from exc
            except (smtplib.SMTPException, OSError) as exc:
                last_error = exc
                logger.warning("SMTP attempt %d/%d to %s failed: %s", attempt, attempts, to, exc)
                if attempt < attempts:
                    self._sleep(self._config.smtp_retry_backoff_seconds * attempt)

        raise EmailDeliveryError(f"Failed to send email to {to} after {attempts} attempts: {last_error}")


class NullEmailTransport:
    """Used when SMTP is not configured. Never reports a send as delivered."""

    def send(self, to: str, subject: str, html: str, text: str) -> None:
        logger.debug("SMTP not configured, not sending %r to %s", subject, to)
        raise EmailDeliveryError("Email transport not configured")


def create_email_transport(config: Settings | None = None) -> EmailTransport:
    config = config or settings
    if config.smtp_configured:
        logger.info("Email transport: SMTP via %s:%d", config.smtp_host, config.smtp_port)
        return SmtpEmailTransport(config)
    logger.warning("SMTP credentials missing, outbound email disabled")
    return NullEmailTransport()
