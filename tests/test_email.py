"""Tests for outgoing auth emails."""

import logging

import pytest

from nivaro.services.email import EmailSender, LoggingEmailSender


class TestEmailSender:
    """Tests for link building and the logging sender."""

    def test_base_sender_is_abstract(self):
        """A sender must implement delivery."""
        with pytest.raises(TypeError):
            EmailSender(frontend_url="http://frontend.test")

    def test_logging_sender_logs_reset_link(self, caplog):
        """The default sender writes the reset link to the log."""
        sender = LoggingEmailSender(frontend_url="http://frontend.test")
        with caplog.at_level(logging.INFO, logger="nivaro"):
            sender.send_password_reset_email("a@example.com", "abc123")
        assert "http://frontend.test/reset-password?token=abc123" in caplog.text
        assert "a@example.com" in caplog.text

    def test_verification_link(self, mailer):
        """Verification links point at the frontend's verify page."""
        mailer.send_verification_email("a@example.com", "tok")
        assert mailer.sent[-1]["link"] == "http://frontend.test/verify-email?token=tok"
