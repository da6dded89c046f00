"""Mail transports used to deliver finished newsletters."""

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup

from newsletter_agent.core.exceptions import DeliveryError
from newsletter_agent.models.settings import Settings

logger = logging.getLogger(__name__)


class MailTransport(ABC):
    """Sends one HTML message to one recipient."""

    name = "transport"

    @abstractmethod
    async def send(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        """Deliver the message and return a provider-specific receipt.

        Raises:
            DeliveryError: If the message could not be delivered
        """


class MockTransport(MailTransport):
    """Accepts every message without sending anything."""

    name = "mock"

    async def send(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        logger.info(f"Mock delivery to {to}: {subject!r} ({len(html)} chars)")
        return {"ok": True, "provider": self.name, "to": to, "subject": subject}


def build_message(sender: str, to: str, subject: str, html: str) -> MIMEMultipart:
    """Multipart message with a plain-text alternative derived from the HTML."""
    plain = BeautifulSoup(html, "html.parser").get_text(separator="\n")

    msg = MIMEMultipart("alternative")
    msg["From"] = sender
    msg["To"] = to
    msg["Subject"] = subject
    msg.attach(MIMEText(plain, "plain", _charset="utf-8"))
    msg.attach(MIMEText(html, "html", _charset="utf-8"))
    return msg


class SmtpTransport(MailTransport):
    """Delivers over SMTP; the blocking client runs in a worker thread."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int = 25,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: str = "no-reply",
        use_tls: bool = False,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.use_tls = use_tls
        self.timeout = timeout

    async def send(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        msg = build_message(self.sender, to, subject, html)
        try:
            await asyncio.to_thread(self._send_blocking, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP delivery to {to} failed: {e}")
            raise DeliveryError(f"SMTP delivery failed: {e}") from e
        logger.info(f"Email sent via {self.host}:{self.port} to {to}")
        return {"ok": True, "provider": self.name, "to": to, "subject": subject}

    def _send_blocking(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)


def get_transport(settings: Settings) -> MailTransport:
    """Transport selected by ``mail_transport``."""
    if settings.mail_transport == "smtp":
        if not settings.smtp_host:
            raise DeliveryError("mail_transport is smtp but smtp_host is not set")
        return SmtpTransport(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.smtp_from,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout,
        )
    return MockTransport()
