"""Outbound email tests — SMTP is replaced by a recording stand-in for smtplib.SMTP_SSL."""

import smtplib

import pytest
import structlog
from structlog.testing import capture_logs

from portal_accounts.errors import EmailDeliveryFailed
from portal_accounts.mail import sender as sender_module
from portal_accounts.mail.sender import (
    Attachment,
    LogEmailSender,
    OutgoingEmail,
    SmtpEmailSender,
    build_email_sender,
)
from portal_accounts.mail.templates import verification_email


class RecordingSMTP:
    instances: list["RecordingSMTP"] = []
    fail_with = None

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.logins = []
        self.messages = []
        RecordingSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def login(self, username, password):
        self.logins.append((username, password))

    def send_message(self, message):
        if RecordingSMTP.fail_with is not None:
            raise RecordingSMTP.fail_with
        self.messages.append(message)


@pytest.fixture()
def smtp(monkeypatch):
    RecordingSMTP.instances = []
    RecordingSMTP.fail_with = None
    monkeypatch.setattr(sender_module.smtplib, "SMTP_SSL", RecordingSMTP)
    return RecordingSMTP


@pytest.fixture()
def smtp_sender():
    return SmtpEmailSender(
        "smtp.test", 465, "noreply@portal.test", "smtp-password", "Portal PM", timeout=5
    )


def _email(**extra):
    return OutgoingEmail(
        to="ana@example.com", subject="Hello", html_body="<p>Hi</p>", **extra
    )


@pytest.mark.asyncio
async def test_smtp_send(smtp, smtp_sender):
    await smtp_sender.send(_email())

    (conn,) = smtp.instances
    assert (conn.host, conn.port, conn.timeout) == ("smtp.test", 465, 5)
    assert conn.logins == [("noreply@portal.test", "smtp-password")]
    (message,) = conn.messages
    assert message["To"] == "ana@example.com"
    assert message["Subject"] == "Hello"
    assert message["From"] == "Portal PM <noreply@portal.test>"
    assert "<p>Hi</p>" in message.get_body(("html",)).get_content()


@pytest.mark.asyncio
async def test_smtp_send_failure(smtp, smtp_sender):
    smtp.fail_with = smtplib.SMTPServerDisconnected("gone")

    with pytest.raises(EmailDeliveryFailed):
        await smtp_sender.send(_email())


def test_attachments(smtp_sender):
    message = smtp_sender.build_message(
        _email(attachments=[Attachment("report.pdf", b"%PDF-1.4", "application/pdf")])
    )

    (attachment,) = list(message.iter_attachments())
    assert attachment.get_filename() == "report.pdf"
    assert attachment.get_content_type() == "application/pdf"
    assert attachment.get_content() == b"%PDF-1.4"


def test_build_email_sender(settings_factory):
    assert isinstance(build_email_sender(settings_factory()), LogEmailSender)

    smtp_sender = build_email_sender(settings_factory(smtp_host="smtp.test"))
    assert isinstance(smtp_sender, SmtpEmailSender)
    assert smtp_sender.port == 465


def test_verification_email():
    email = verification_email(
        to="ana@example.com",
        full_name="Ana <script>",
        token="abc.def.ghi",
        frontend_url="https://portal.test/",
        product="Portal PM",
    )

    assert email.to == "ana@example.com"
    assert email.subject == "Verify your email - Portal PM"
    assert "https://portal.test/profile/verification?token=abc.def.ghi" in email.html_body
    assert "Ana &lt;script&gt;" in email.html_body
    assert "<script>" not in email.html_body


@pytest.mark.asyncio
async def test_log_sender_keeps_token_out_of_logs(monkeypatch):
    email = verification_email(
        to="ana@example.com",
        full_name="Ana",
        token="SECRET-TOKEN-123",
        frontend_url="https://portal.test",
        product="Portal PM",
    )

    with capture_logs() as logs:
        monkeypatch.setattr(sender_module, "logger", structlog.get_logger())
        await LogEmailSender().send(email)

    (entry,) = [e for e in logs if e["event"] == "mail.logged"]
    assert entry["to"] == "ana@example.com"
    assert entry["subject"] == email.subject
    assert all("SECRET-TOKEN-123" not in repr(e) for e in logs)
