import smtplib
import ssl
import logging
from email.message import EmailMessage
from typing import Optional

from config import SMTPConfig

logger = logging.getLogger(__name__)


def _send_via_config(config: SMTPConfig, to_email: str, subject: str, html: str, text: str) -> None:
    message = EmailMessage()
    message["From"] = config.sender
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(text)
    message.add_alternative(html, subtype="html")

    if config.use_ssl:
        context = ssl.create_default_context()
        with smtplib.SMTP_SSL(config.host, config.port, context=context, timeout=20) as server:
            if config.user and config.password:
                server.login(config.user, config.password)
            server.send_message(message)
        return

    with smtplib.SMTP(config.host, config.port, timeout=20) as server:
        server.ehlo()
        if config.use_tls:
            context = ssl.create_default_context()
            server.starttls(context=context)
            server.ehlo()
        if config.user and config.password:
            server.login(config.user, config.password)
        server.send_message(message)


class Mailer:
    """SMTP sender that falls back to the secondary relay when the primary fails."""

    def __init__(self, primary: Optional[SMTPConfig], secondary: Optional[SMTPConfig] = None):
        self.primary = primary
        self.secondary = secondary

    def send(self, to_email: str, subject: str, html: str, text: str) -> None:
        if not self.primary:
            raise RuntimeError("SMTP_PRIMARY configuration missing")

        try:
            _send_via_config(self.primary, to_email, subject, html, text)
            return
        except Exception as exc:
            logger.warning("Primary SMTP failed, attempting secondary: %s", exc)

        if not self.secondary:
            raise RuntimeError("Primary SMTP failed and SMTP_SECONDARY configuration missing")

        _send_via_config(self.secondary, to_email, subject, html, text)
        logger.info("Email sent via secondary SMTP")


def send_quietly(mailer, to_email: str, subject: str, html: str, text: str) -> bool:
    """Send and log instead of raising; used where email delivery is best-effort."""
    try:
        mailer.send(to_email, subject, html, text)
        return True
    except Exception as exc:
        logger.warning("Failed to send '%s' to %s: %s", subject, to_email, exc)
        return False
