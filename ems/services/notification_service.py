"""
Notification service - out-of-band delivery to account holders

Secrets such as reset tokens go to the account holder through a sender and
never back to the requester.
"""
import logging
from typing import Callable

from ems.core.config import settings

logger = logging.getLogger(__name__)

PasswordResetSender = Callable[[str, str, int], None]


def log_password_reset(email: str, token: str, expires_in_minutes: int) -> None:
    """
    Default sender when no mail transport is wired in.

    Local runs write the token to the server log; other environments only
    record that nothing was delivered.
    """
    if settings.APP_ENV == "local":
        logger.info("Password reset token for %s (valid %d min): %s", email, expires_in_minutes, token)
    else:
        logger.warning("No password reset transport configured; reset for %s was not delivered", email)


# Replaced at startup by a real transport (mail, chat) where one exists
password_reset_sender: PasswordResetSender = log_password_reset


def send_password_reset(email: str, token: str, expires_in_minutes: int) -> None:
    password_reset_sender(email, token, expires_in_minutes)
    logger.info("Password reset issued for %s", email)
