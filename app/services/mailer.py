from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Optional, Protocol

from app.core.config import settings

logger = logging.getLogger(__name__)


class MessageSender(Protocol):
    def send(self, to: str, subject: str, html: str) -> None:
        ...


class Mailer:
    """
    SMTP sender. Without SMTP_HOST it only logs what would have been sent.
    send() raises on delivery failure; callers decide whether that matters.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        from_address: Optional[str] = None,
        starttls: Optional[bool] = None,
    ):
        self.host = host if host is not None else settings.SMTP_HOST
        self.port = port if port is not None else settings.SMTP_PORT
        self.username = username if username is not None else settings.SMTP_USER
        self.password = password if password is not None else settings.SMTP_PASSWORD
        self.from_address = from_address or settings.SMTP_FROM
        self.starttls = settings.SMTP_STARTTLS if starttls is None else starttls

    @property
    def configured(self) -> bool:
        return bool(self.host)

    def send(self, to: str, subject: str, html: str) -> None:
        if not self.configured:
            logger.info("[Email Mock] To: %s | Subject: %s", to, subject)
            return

        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")

        with smtplib.SMTP(self.host, self.port, timeout=15) as server:
            if self.starttls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(message)
        logger.info("Email sent to %s: %s", to, subject)


_default_mailer: Optional[Mailer] = None


def get_mailer() -> Mailer:
    global _default_mailer
    if _default_mailer is None:
        _default_mailer = Mailer()
    return _default_mailer
