"""Outbound email.

Learn: Services only know the EmailSender protocol: send(OutgoingEmail).
SmtpEmailSender delivers over SMTP with implicit TLS (port 465). smtplib
is blocking, so each delivery runs in a worker thread via
asyncio.to_thread() and never stalls the event loop.

With no SMTP host configured (local development), LogEmailSender logs
the message instead of sending it.
"""

import asyncio
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr
from typing import Protocol

import structlog

from portal_accounts.config import Settings
from portal_accounts.errors import EmailDeliveryFailed

logger = structlog.get_logger()


@dataclass
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    html_body: str
    attachments: list[Attachment] = field(default_factory=list)


class EmailSender(Protocol):
    async def send(self, email: OutgoingEmail) -> None: ...


class SmtpEmailSender:
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_name: str,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self._password = password
        self.from_name = from_name
        self.timeout = timeout

    def build_message(self, email: OutgoingEmail) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.username))
        message["To"] = email.to
        message["Subject"] = email.subject
        message.set_content("This message requires an HTML-capable email client.")
        message.add_alternative(email.html_body, subtype="html")
        for attachment in email.attachments:
            maintype, _, subtype = attachment.content_type.partition("/")
            message.add_attachment(
                attachment.content,
                maintype=maintype,
                subtype=subtype or "octet-stream",
                filename=attachment.filename,
            )
        return message

    async def send(self, email: OutgoingEmail) -> None:
        message = self.build_message(email)
        logger.info("mail.sending", to=email.to, subject=email.subject)
        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("mail.failed", to=email.to, error=str(e))
            raise EmailDeliveryFailed() from e
        logger.info("mail.sent", to=email.to)

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout) as smtp:
            if self.username:
                smtp.login(self.username, self._password)
            smtp.send_message(message)


class LogEmailSender:
    """Development sender: logs the email instead of delivering it."""

    async def send(self, email: OutgoingEmail) -> None:
        logger.info(
            "mail.logged",
            to=email.to,
            subject=email.subject,
            attachments=[a.filename for a in email.attachments],
        )


def build_email_sender(settings: Settings) -> EmailSender:
    if not settings.smtp_host:
        logger.warning("mail.smtp_not_configured", environment=settings.environment)
        return LogEmailSender()
    return SmtpEmailSender(
        settings.smtp_host,
        settings.smtp_port,
        settings.smtp_username,
        settings.smtp_password,
        settings.mail_from_name,
        timeout=settings.smtp_timeout_seconds,
    )
