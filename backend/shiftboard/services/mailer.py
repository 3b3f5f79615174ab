"""Outgoing email over SMTP (fastapi-mail)."""
from __future__ import annotations

import logging

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType
from pydantic import SecretStr

from shiftboard.core.config import settings

log = logging.getLogger("shiftboard.mailer")


class EmailSendError(Exception):
    pass


def _connection_config() -> ConnectionConfig:
    return ConnectionConfig(
        MAIL_USERNAME=settings.MAIL_USERNAME,
        MAIL_PASSWORD=SecretStr(settings.MAIL_PASSWORD),
        MAIL_FROM=settings.MAIL_FROM,
        MAIL_FROM_NAME=settings.MAIL_FROM_NAME,
        MAIL_PORT=settings.MAIL_PORT,
        MAIL_SERVER=settings.MAIL_SERVER,
        MAIL_STARTTLS=settings.MAIL_STARTTLS,
        MAIL_SSL_TLS=settings.MAIL_SSL_TLS,
        USE_CREDENTIALS=bool(settings.MAIL_PASSWORD),
        VALIDATE_CERTS=True,
        SUPPRESS_SEND=1 if settings.MAIL_SUPPRESS_SEND else 0,
    )


async def send_email(to: str | list[str], subject: str, html: str) -> None:
    """Send one HTML message to one or more recipients.

    Raises EmailSendError on any transport failure; callers decide whether
    that is fatal.
    """
    recipients = [to] if isinstance(to, str) else list(to)
    if not recipients:
        raise EmailSendError("No recipients")

    message = MessageSchema(
        subject=subject,
        recipients=recipients,
        body=html,
        subtype=MessageType.html,
    )
    try:
        await FastMail(_connection_config()).send_message(message)
    except Exception as e:
        log.warning("email to %s failed: %s", ", ".join(recipients), e)
        raise EmailSendError(str(e)) from e

    log.info("email sent to %s: %s", ", ".join(recipients), subject)
