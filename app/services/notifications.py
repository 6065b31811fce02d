"""
Outgoing account e-mails (setup links, password-reset OTPs and profile confirmations).

Delivery is an external collaborator; EmailSender is the seam. The default
implementation only logs the message metadata so local runs work without an
SMTP relay.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    text: str


class EmailDeliveryError(Exception):
    """Raised by an EmailSender when the message could not be handed off."""


class EmailSender:
    """Base sender. Subclasses deliver; this one records the send in the log."""

    def send(self, message: EmailMessage) -> None:
        logger.info("E-mail queued", extra={"to": message.to, "subject": message.subject})


def setup_link(token: str) -> str:
    return f"{settings.FRONTEND_URL}/initial-setup?token={token}"


def welcome_email(to: str, first_name: str | None, username: str, token: str, *, resent: bool = False) -> EmailMessage:
    subject = f"Welcome to {settings.COMPANY_NAME}!"
    if resent:
        subject += " Here is Your New Setup Link"
    greeting = f"Hello {first_name}," if first_name else "Hello,"
    text = (
        f"{greeting}\n\n"
        f"An account has been created for you with the username {username}.\n"
        f"Set your password within {settings.SETUP_TOKEN_EXPIRE_HOURS} hours using this link:\n"
        f"{setup_link(token)}\n"
    )
    return EmailMessage(to=to, subject=subject, text=text)


def otp_email(to: str, first_name: str | None, otp: str, *, resent: bool = False) -> EmailMessage:
    subject = "Your New Password Reset OTP" if resent else "Your Password Reset OTP"
    greeting = f"Hello {first_name}," if first_name else "Hello,"
    text = (
        f"{greeting}\n\n"
        f"Your OTP for password reset is: {otp}. "
        f"It is valid for {settings.OTP_EXPIRE_MINUTES} minutes.\n"
    )
    return EmailMessage(to=to, subject=subject, text=text)


def profile_completed_email(to: str, first_name: str | None) -> EmailMessage:
    greeting = f"Hello {first_name}," if first_name else "Hello,"
    text = (
        f"{greeting}\n\n"
        f"This is a confirmation that your profile on {settings.COMPANY_NAME} has been successfully completed.\n"
    )
    return EmailMessage(to=to, subject="Your Profile Has Been Completed", text=text)
