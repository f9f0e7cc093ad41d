from __future__ import annotations

import asyncio
import smtplib
import ssl
from email.message import EmailMessage

import structlog

from content_checks.config import MailSettings


logger = structlog.get_logger(__name__)

SMTP_SSL_PORT = 465


class NotifierAuthError(RuntimeError):
    pass


class EmailNotifier:
    """
    Sends plain-text alerts from the configured account to itself.

    smtplib is blocking, so each SMTP session runs in a worker thread and other
    sites keep checking while a send is in progress. A new session is opened per
    message; alerts are rare and Gmail drops idle connections anyway.
    """

    def __init__(self, settings: MailSettings, *, timeout_seconds: float = 30.0):
        self.settings = settings
        self.timeout_seconds = float(timeout_seconds)

    def _open(self) -> smtplib.SMTP:
        host, port = self.settings.smtp_host, self.settings.smtp_port
        if port == SMTP_SSL_PORT:
            context = ssl.create_default_context()
            return smtplib.SMTP_SSL(host, port, context=context, timeout=self.timeout_seconds)
        return smtplib.SMTP(host, port, timeout=self.timeout_seconds)

    def _login(self, server: smtplib.SMTP) -> None:
        if self.settings.smtp_port != SMTP_SSL_PORT:
            server.starttls(context=ssl.create_default_context())
        server.login(self.settings.username, self.settings.app_password)

    def _verify_sync(self) -> None:
        with self._open() as server:
            self._login(server)

    def _send_sync(self, message: EmailMessage) -> None:
        with self._open() as server:
            self._login(server)
            server.send_message(message)

    def build_message(self, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.address
        message["To"] = self.settings.address
        message["Subject"] = subject
        message.set_content(body)
        return message

    async def verify(self) -> None:
        logger.info(
            "Verifying that email transport is authorized to send",
            host=self.settings.smtp_host,
            port=self.settings.smtp_port,
        )
        try:
            await asyncio.to_thread(self._verify_sync)
        except (smtplib.SMTPException, OSError) as e:
            raise NotifierAuthError(f"Email transport authorization failed: {type(e).__name__}: {e}") from e
        logger.info("Email transport is authorized, ready to send emails")

    async def send(self, subject: str, body: str) -> bool:
        logger.debug("Sending alert", subject=subject)
        message = self.build_message(subject, body)
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send alert", subject=subject, error=f"{type(e).__name__}: {e}")
            return False
        logger.debug("Alert sent", subject=subject)
        return True
