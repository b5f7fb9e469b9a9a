# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Notifiers - Deliver run outcomes to people.

Notifications are best-effort: a notifier raises NotifyError and the
orchestrator logs it without changing the run's outcome.
"""

import asyncio
import smtplib
from concurrent.futures import ThreadPoolExecutor
from email.message import EmailMessage
from typing import List

import structlog

from pgtier.config import BackupConfig
from pgtier.exceptions import NotifyError

logger = structlog.get_logger()

# smtplib is blocking
_executor = ThreadPoolExecutor(max_workers=1)


class EmailNotifier:
    """Send notifications through an SMTP-over-SSL server (Gmail by default)."""

    def __init__(
        self,
        user: str,
        password: str,
        recipients: List[str],
        smtp_host: str = "smtp.gmail.com",
        smtp_port: int = 465,
        sender_name: str = "Backup system",
        timeout: float = 30.0,
    ):
        self.user = user
        self.password = password
        self.recipients = list(recipients)
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.sender_name = sender_name
        self.timeout = timeout

    def build_message(self, message: str) -> EmailMessage:
        email = EmailMessage()
        email["From"] = f'"{self.sender_name}" <{self.user}>'
        email["To"] = ", ".join(self.recipients)
        email["Subject"] = f"{self.sender_name} notification"
        email.set_content(message)
        return email

    def _send_sync(self, email: EmailMessage) -> None:
        with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=self.timeout) as smtp:
            smtp.login(self.user, self.password)
            smtp.send_message(email)

    async def notify(self, message: str) -> None:
        email = self.build_message(message)
        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(_executor, self._send_sync, email)
        except (smtplib.SMTPException, OSError) as e:
            raise NotifyError(
                f"Failed to send notification email: {e}",
                details={"smtp_host": self.smtp_host, "recipients": len(self.recipients)},
            )

        logger.info("notification_sent", recipients=len(self.recipients))


class LogNotifier:
    """Write notifications to the structured log."""

    async def notify(self, message: str) -> None:
        logger.info("notification", message=message)


def create_notifier(config: BackupConfig) -> EmailNotifier | LogNotifier:
    """
    Create the notifier selected by the configuration.

    Email is used when recipients are configured; otherwise notifications
    only go to the log.
    """
    if config.email_enabled and config.smtp_user and config.smtp_password:
        return EmailNotifier(
            user=config.smtp_user,
            password=config.smtp_password,
            recipients=config.recipients,
            smtp_host=config.smtp_host,
            smtp_port=config.smtp_port,
            sender_name=config.sender_name,
        )
    return LogNotifier()
