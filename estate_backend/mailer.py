"""
Outgoing mail: contact-form rendering and SMTP delivery.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Optional, Protocol

import aiosmtplib
from jinja2 import Environment, PackageLoader, select_autoescape

logger = logging.getLogger(__name__)

CONTACT_SUBJECT = "New Contact Form Submission"
OTP_SUBJECT = "OTP for Real Estate Management"

CONTACT_FIELDS = (
    "name",
    "telephone",
    "email",
    "travelDate",
    "city",
    "guests",
    "rooms",
    "houseType",
)

_templates = Environment(
    loader=PackageLoader("estate_backend", "templates"),
    autoescape=select_autoescape(["html"]),
)


class MailDeliveryError(RuntimeError):
    """Raised when the mail transport does not accept a message."""


@dataclass
class OutgoingMessage:
    sender: str
    recipients: list[str]
    subject: str
    text: Optional[str] = None
    html: Optional[str] = None

    def to_email_message(self) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = ", ".join(self.recipients)
        message["Subject"] = self.subject
        message.set_content(self.text or "")
        if self.html is not None:
            message.add_alternative(self.html, subtype="html")
        return message


class MailTransport(Protocol):
    async def send(self, message: OutgoingMessage) -> None:
        ...


@dataclass
class InMemoryMailTransport:
    """Collects messages instead of sending them."""

    outbox: list[OutgoingMessage] = field(default_factory=list)
    fail: bool = False

    async def send(self, message: OutgoingMessage) -> None:
        if self.fail:
            raise MailDeliveryError("delivery disabled")
        self.outbox.append(message)


@dataclass
class SmtpMailTransport:
    """Authenticated SMTP delivery through aiosmtplib."""

    hostname: str
    port: int
    username: Optional[str]
    password: Optional[str]
    use_tls: bool = True

    async def send(self, message: OutgoingMessage) -> None:
        if not message.sender or not message.recipients:
            raise MailDeliveryError("message has no sender or recipients")
        try:
            await aiosmtplib.send(
                message.to_email_message(),
                hostname=self.hostname,
                port=self.port,
                username=self.username,
                password=self.password,
                use_tls=self.use_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(
                f"SMTP delivery via {self.hostname} failed"
            ) from exc


def render_contact_email(fields: dict) -> str:
    """Render the contact notification; every field is HTML-escaped."""
    values = {}
    for name in CONTACT_FIELDS:
        value = fields.get(name)
        values[name] = "" if value is None else value
    return _templates.get_template("contact_email.html").render(**values)


def contact_message(fields: dict, sender: str, recipients: list[str]) -> OutgoingMessage:
    return OutgoingMessage(
        sender=sender,
        recipients=recipients,
        subject=CONTACT_SUBJECT,
        html=render_contact_email(fields),
    )


def otp_message(code: str, sender: str, recipient: str) -> OutgoingMessage:
    return OutgoingMessage(
        sender=sender,
        recipients=[recipient],
        subject=OTP_SUBJECT,
        text=f"Your OTP for Real Estate Management is: {code}",
    )
