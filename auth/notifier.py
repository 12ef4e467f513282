"""Delivery of password reset tokens.

The auth core never returns a reset token to the requester; it hands the
token to a ResetNotifier. Production wires EmailNotifier. Development and
tests wire LoggingNotifier, which writes the reset link to the log and keeps
the last token per address so it can be read back.
"""

import logging
from typing import Protocol

from auth.config import AuthConfig
from auth.reset_token import build_reset_url
from clients.email_client import EmailGatewayClient

logger = logging.getLogger(__name__)


class ResetNotifier(Protocol):
    """Sends a password reset token to the account owner."""

    def send(self, email: str, token: str) -> None: ...


class EmailNotifier:
    """Sends reset links through the email gateway."""

    def __init__(self, email_client: EmailGatewayClient, config: AuthConfig):
        self._email_client = email_client
        self._config = config

    def send(self, email: str, token: str) -> None:
        """Raises EmailGatewayError on delivery failure."""
        self._email_client.send_password_reset(
            email=email,
            reset_url=build_reset_url(token, self._config),
            expires_minutes=self._config.reset_token_expiry_minutes,
        )


class LoggingNotifier:
    """Development notifier. Never use in production: it logs live tokens."""

    def __init__(self, config: AuthConfig):
        self._config = config
        self.sent: dict[str, str] = {}

    def send(self, email: str, token: str) -> None:
        self.sent[email] = token
        logger.warning(
            f"[dev] Password reset link for {email}: {build_reset_url(token, self._config)}"
        )

    def last_token_for(self, email: str) -> str | None:
        return self.sent.get(email.lower())
