"""Email transport contract and the development console transport."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

VERIFICATION_SUBJECT = "Your SmartWill verification code"


@dataclass(frozen=True)
class EmailMessage:
    subject: str
    text_body: str
    html_body: str


class EmailTransport(Protocol):
    """Delivers mail on behalf of the core, which never talks SMTP itself."""

    def send(
        self,
        to: str,
        subject: str,
        text_body: str,
        html_body: str | None = None,
    ) -> bool: ...


class ConsoleEmailTransport:
    """Development transport that logs the envelope instead of sending."""

    def __init__(self, sender: str = "no-reply@smartwill.app") -> None:
        self.sender = sender

    def send(
        self,
        to: str,
        subject: str,
        text_body: str,
        html_body: str | None = None,
    ) -> bool:
        logger.info("[Email][Console] From: %s To: %s Subject: %s", self.sender, to, subject)
        return True


def build_verification_email(code: str, ttl_minutes: int) -> EmailMessage:
    """Render the message that carries a verification code."""
    text_body = (
        "Welcome to SmartWill!\n\n"
        f"Your verification code is: {code}\n\n"
        f"This code expires in {ttl_minutes} minutes. "
        "If you did not request it, you can ignore this email."
    )
    html_body = (
        "<h2>Welcome to SmartWill!</h2>"
        "<p>Your verification code is:</p>"
        f'<p style="font-size:28px;letter-spacing:6px;font-weight:bold">{code}</p>'
        f"<p>This code expires in {ttl_minutes} minutes. "
        "If you did not request it, you can ignore this email.</p>"
    )
    return EmailMessage(subject=VERIFICATION_SUBJECT, text_body=text_body, html_body=html_body)
