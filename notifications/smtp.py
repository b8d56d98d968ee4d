"""
SMTP dispatcher.

``smtplib`` is blocking, so every send is offloaded to a thread via
``asyncio.to_thread()`` and never stalls the event loop.  Timeouts are
enforced by the caller (``AuthService``) as well as on the socket.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from config.settings import Settings
from notifications.base import DispatchError, NotificationDispatcher

logger = logging.getLogger(__name__)


class SmtpDispatcher(NotificationDispatcher):
    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @property
    def sender(self) -> str:
        return self._settings.smtp_from or self._settings.smtp_user

    def _build_message(self, to: str, subject: str, html_body: str) -> MIMEMultipart:
        mime = MIMEMultipart("alternative")
        mime["Subject"] = subject
        mime["From"] = self.sender
        mime["To"] = to
        mime.attach(MIMEText(html_body, "html"))
        return mime

    def _send_sync(self, to: str, mime: MIMEMultipart) -> None:
        s = self._settings
        with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=s.email_dispatch_timeout_seconds) as server:
            if s.smtp_use_tls:
                server.starttls()
            if s.smtp_user:
                server.login(s.smtp_user, s.smtp_password)
            server.sendmail(self.sender, [to], mime.as_string())

    async def send(self, to: str, subject: str, html_body: str) -> None:
        if not self._settings.smtp_configured:
            logger.warning("SMTP not configured — cannot send %r to %s", subject, to)
            raise DispatchError("Email is not configured")

        mime = self._build_message(to, subject, html_body)
        try:
            await asyncio.to_thread(self._send_sync, to, mime)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send %r to %s: %s", subject, to, exc)
            raise DispatchError(str(exc)) from exc

        logger.info("Email sent to %s: %s", to, subject)
