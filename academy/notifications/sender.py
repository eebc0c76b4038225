"""
Outbound notification transport.

``NotificationSender`` is the boundary the lifecycle code talks to:

    send(to_address, subject, body_text, body_html) -> SendResult

Implementations must not raise; failures come back as
``SendResult(success=False, error=...)`` and callers treat them as advisory.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel

from academy.config import Settings


logger = logging.getLogger(__name__)


class SendResult(BaseModel):
    """Outcome of one delivery attempt."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class NotificationSender(Protocol):
    @property
    def enabled(self) -> bool: ...

    def send(
        self,
        to_address: str,
        subject: str,
        body_text: str,
        body_html: str,
    ) -> SendResult: ...

    def status(self) -> Dict[str, Any]: ...


class SmtpSender:
    """
    Email delivery over SMTP.

    Every connection uses a bounded timeout so a slow mail server cannot
    hold a request open. Delivery is attempted once; there are no retries.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        from_email: str = "",
        from_name: str = "",
        use_ssl: bool = False,
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email or username
        self.from_name = from_name
        self.use_ssl = use_ssl
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpSender":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            from_email=settings.SMTP_FROM_EMAIL,
            from_name=settings.SMTP_FROM_NAME,
            use_ssl=settings.SMTP_USE_SSL,
            use_tls=settings.SMTP_USE_TLS,
            timeout=settings.SMTP_TIMEOUT_SECONDS,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.host and self.from_email)

    def status(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "transport": "smtp",
            "host": self.host or None,
            "from_address": self.from_email or None,
        }

    def _build_message(
        self, to_address: str, subject: str, body_text: str, body_html: str
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = to_address
        msg["Message-ID"] = make_msgid()
        msg.attach(MIMEText(body_text, "plain", "utf-8"))
        msg.attach(MIMEText(body_html, "html", "utf-8"))
        return msg

    def send(
        self,
        to_address: str,
        subject: str,
        body_text: str,
        body_html: str,
    ) -> SendResult:
        if not self.enabled:
            return SendResult(success=False, error="Email service not configured")

        msg = self._build_message(to_address, subject, body_text, body_html)

        try:
            if self.use_ssl:
                server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            try:
                if self.use_tls and not self.use_ssl:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
            finally:
                server.quit()
        except Exception as e:
            # send() never raises
            logger.error("Failed to send email to %s: %s", to_address, e, exc_info=True)
            return SendResult(success=False, error=str(e))

        logger.info("Email sent to %s (%s)", to_address, msg["Message-ID"])
        return SendResult(success=True, message_id=msg["Message-ID"])
