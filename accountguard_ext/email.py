"""Security notification mail: Jinja templates rendered into SMTP messages.

Each notification has a plain-text and an HTML template under
``templates/emails/``; both are rendered with the same context. Setting
``MAIL_SUPPRESS_SEND`` builds the message without talking to a server.
"""
from __future__ import annotations

import smtplib
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Any, Iterable, Mapping

from flask import current_app, render_template

SMTP_TIMEOUT_SECONDS = 15


class EmailDeliveryError(RuntimeError):
    """The message could not be built or the SMTP server refused it."""


def build_message(
    *,
    subject: str,
    recipients: Iterable[str],
    template: str,
    context: Mapping[str, Any] | None = None,
) -> EmailMessage:
    sender = current_app.config.get("EMAIL_FROM")
    if not sender:
        raise EmailDeliveryError("EMAIL_FROM is not configured")
    addresses = [address for address in recipients if address]
    if not addresses:
        raise EmailDeliveryError("No recipients supplied")

    values = dict(context or {})
    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = sender
    message["To"] = ", ".join(addresses)
    message["Date"] = formatdate()
    message["Message-ID"] = make_msgid(domain=sender.rpartition("@")[2] or None)
    message.set_content(render_template(f"emails/{template}.txt", **values))
    message.add_alternative(render_template(f"emails/{template}.html", **values), subtype="html")
    return message


def _deliver(message: EmailMessage) -> None:
    config = current_app.config
    host, port = config.get("SMTP_HOST"), int(config.get("SMTP_PORT", 587))
    implicit_tls = bool(config.get("SMTP_USE_SSL"))
    client_cls = smtplib.SMTP_SSL if implicit_tls else smtplib.SMTP

    with client_cls(host, port, timeout=SMTP_TIMEOUT_SECONDS) as server:
        if not implicit_tls and config.get("SMTP_USE_TLS", True):
            server.starttls()
        if config.get("SMTP_USER") and config.get("SMTP_PASS"):
            server.login(config["SMTP_USER"], config["SMTP_PASS"])
        server.send_message(message)


def send_email(
    *,
    subject: str,
    recipients: Iterable[str],
    template: str,
    context: Mapping[str, Any] | None = None,
) -> EmailMessage:
    """Render ``template`` and hand the message to the configured SMTP server.

    Raises :class:`EmailDeliveryError` for configuration, connection and
    protocol failures alike.
    """
    message = build_message(subject=subject, recipients=list(recipients), template=template, context=context)
    log_context = {"subject": subject, "template": template}

    if current_app.config.get("MAIL_SUPPRESS_SEND"):
        current_app.logger.info("email suppressed", extra={"component": "email", "context": log_context})
        return message
    try:
        _deliver(message)
    except (smtplib.SMTPException, OSError) as exc:
        raise EmailDeliveryError(f"SMTP delivery failed: {exc}") from exc
    current_app.logger.info("email sent", extra={"component": "email", "context": log_context})
    return message
