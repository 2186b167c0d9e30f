# services/email_transport.py
"""
Email transport used by the plan notifier

The notifier only depends on the EmailTransport protocol: send() takes an
EmailMessage and returns a SendOutcome. SMTPEmailTransport implements it over
SMTP with aiosmtplib, which covers any managed relay that accepts SMTP
submission (port 587 STARTTLS or port 465 implicit TLS).
"""

import asyncio
import uuid
import logging
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate
from typing import Optional, Protocol

import aiosmtplib

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    """Transport-neutral email"""
    from_address: str
    to: str
    subject: str
    html: str
    text: Optional[str] = None


@dataclass
class SendOutcome:
    """Result reported by a transport for one send call"""
    success: bool
    message_id: Optional[str] = None
    response: Optional[str] = None
    error: Optional[str] = None


class EmailTransport(Protocol):
    def send(self, message: EmailMessage) -> SendOutcome:
        ...


class SMTPEmailTransport:
    """
    SMTP submission through aiosmtplib

    Rejections from the server come back as a failed SendOutcome; connection and
    protocol errors propagate to the caller, which treats them as a failed
    attempt.
    """

    def __init__(self, host: str, port: int = 587, username: Optional[str] = None,
                 password: Optional[str] = None, timeout: float = 10.0,
                 validate_certs: bool = True, from_name: str = 'Date Planner'):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout
        self.validate_certs = validate_certs
        self.from_name = from_name

    def send(self, message: EmailMessage) -> SendOutcome:
        mime_message = self._build_mime(message)
        return asyncio.run(self._send_async(mime_message))

    def _build_mime(self, message: EmailMessage) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = message.subject
        msg['From'] = formataddr((self.from_name, message.from_address))
        msg['To'] = message.to
        msg['Date'] = formatdate(localtime=True)
        domain = message.from_address.rpartition('@')[2] or 'localhost'
        msg['Message-ID'] = f"<{uuid.uuid4()}@{domain}>"
        msg['X-Mailer'] = 'Date Planner Notifier'

        if message.text:
            msg.attach(MIMEText(message.text, 'plain', 'utf-8'))
        msg.attach(MIMEText(message.html, 'html', 'utf-8'))
        return msg

    async def _send_async(self, msg: MIMEMultipart) -> SendOutcome:
        smtp = aiosmtplib.SMTP(
            hostname=self.host,
            port=self.port,
            timeout=self.timeout,
            use_tls=self.port == 465,  # implicit TLS
            start_tls=True if self.port == 587 else None,
            validate_certs=self.validate_certs
        )

        async with smtp:
            if self.username and self.password:
                await smtp.login(self.username, self.password)

            try:
                errors, response = await smtp.send_message(msg)
            except aiosmtplib.SMTPResponseException as e:
                logger.warning(f"SMTP server rejected message: {e.code} {e.message}")
                return SendOutcome(
                    success=False,
                    response=f"{e.code} {e.message}",
                    error=str(e)
                )

        if errors:
            refused = ', '.join(sorted(errors))
            return SendOutcome(
                success=False,
                response=response,
                error=f"Recipients refused: {refused}"
            )

        return SendOutcome(success=True, message_id=msg['Message-ID'], response=response)
