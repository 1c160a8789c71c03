"""
Outbound email over SMTP.

Messages are plain text and sent through an SMTP server over SSL using
the credentials from the settings.  ``smtplib`` is blocking, so the
actual delivery runs in a worker thread to keep the event loop free.
When no ``EMAIL_HOST`` is configured the message is only logged, which
is convenient for local development.
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from ..core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Send transactional emails (verification and password reset links)."""

    @classmethod
    def enabled(cls) -> bool:
        return bool(settings.email_host)

    @classmethod
    def _deliver(cls, message: EmailMessage) -> None:
        with smtplib.SMTP_SSL(settings.email_host, settings.email_port) as smtp:
            if settings.email_username:
                smtp.login(settings.email_username, settings.email_password)
            smtp.send_message(message)

    @classmethod
    async def send(cls, to: str, subject: str, text: str) -> None:
        """Send a plain-text email.

        Raises ``smtplib.SMTPException`` or ``OSError`` when the SMTP
        server cannot be reached or rejects the message.
        """
        if not cls.enabled():
            logger.info("Email delivery disabled; not sending '%s' to %s", subject, to)
            return
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = settings.email_from
        message["To"] = to
        message.set_content(text)
        await asyncio.to_thread(cls._deliver, message)
        logger.info("Sent email '%s' to %s", subject, to)
