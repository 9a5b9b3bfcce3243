"""Outgoing auth emails.

Delivery is owned by whatever sender the app is wired with; the default one
writes the link to the server log, which is enough for local development.
"""

import logging
from abc import ABC, abstractmethod

from nivaro.config import get_settings

logger = logging.getLogger("nivaro")


class EmailSender(ABC):
    """Builds auth links and hands them to ``send_email``."""

    def __init__(self, frontend_url: str | None = None) -> None:
        self.frontend_url = frontend_url or get_settings().FRONTEND_URL

    @abstractmethod
    def send_email(self, address: str, subject: str, link: str) -> None:
        """Deliver one message containing ``link``."""

    def send_verification_email(self, address: str, token: str) -> None:
        self.send_email(address, "Verify your email address", f"{self.frontend_url}/verify-email?token={token}")

    def send_password_reset_email(self, address: str, token: str) -> None:
        self.send_email(address, "Reset your password", f"{self.frontend_url}/reset-password?token={token}")


class LoggingEmailSender(EmailSender):
    """Logs the link instead of sending mail."""

    def send_email(self, address: str, subject: str, link: str) -> None:
        logger.info("EMAIL to %s [%s]: %s", address, subject, link)


_email_sender: EmailSender | None = None


def get_email_sender() -> EmailSender:
    """Get singleton email sender instance."""
    global _email_sender
    if _email_sender is None:
        _email_sender = LoggingEmailSender()
    return _email_sender
