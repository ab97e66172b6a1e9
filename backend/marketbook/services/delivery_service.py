# Overview: Outbound email delivery over the SMTP relay configured with MAIL_*.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from flask_mail import Message

from ..errors import DeliveryFailure
from ..extensions import mail
from .invoice_renderer import template_env


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    filename: str
    content_type: str
    data: bytes


class DeliveryGateway(Protocol):
    def send(self, to: str, subject: str, html: str, attachments: Sequence[Attachment] = ()) -> None:
        ...


def render_invoice_email(
    *,
    owner_name: str,
    customer_name: str | None,
    title: str,
    amount: str,
    status_label: str,
    customer_address: str | None,
) -> str:
    return template_env.get_template("invoice_email.html").render(
        owner_name=owner_name,
        customer_name=customer_name or "Customer",
        title=title,
        amount=amount,
        status_label=status_label,
        customer_address=customer_address or "N/A",
    )


class MailDeliveryGateway:
    """
    Flask-Mail backed gateway.

    Must be called inside an application context. Any transport error is
    reported as DeliveryFailure; nothing is retried.
    """

    def __init__(self, sender: str | None = None):
        self.sender = sender

    def send(self, to: str, subject: str, html: str, attachments: Sequence[Attachment] = ()) -> None:
        msg = Message(subject=subject, recipients=[to], html=html, sender=self.sender)
        for att in attachments:
            msg.attach(att.filename, att.content_type, att.data)

        try:
            mail.send(msg)
        except Exception as e:
            logger.exception("Email sending error (to=%s subject=%r)", to, subject)
            raise DeliveryFailure() from e
        logger.info("Email sent successfully (to=%s subject=%r)", to, subject)
