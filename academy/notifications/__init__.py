"""
Academy Admin - Notifications

Best-effort email delivery for the invitation and password-reset
workflows. Delivery never rolls back the record mutation it follows
unless the caller decides so.
"""

import logging

from fastapi import Request
from starlette.concurrency import run_in_threadpool

from academy.notifications.sender import NotificationSender, SendResult, SmtpSender
from academy.notifications.templates import EmailContent


logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Email service not configured"
DELIVERY_FAILED = "Email could not be delivered"


def get_notifier(request: Request) -> NotificationSender:
    """Notification sender configured on app state."""
    return request.app.state.notifier


async def deliver(
    notifier: NotificationSender,
    to_address: str,
    content: EmailContent,
) -> SendResult:
    """
    Attempt one delivery without blocking the event loop.

    The transport's own error text is logged but never returned; callers
    get a generic ``error`` suitable for API responses.
    """
    if not notifier.enabled:
        logger.info("Email service not configured - skipping mail to %s", to_address)
        return SendResult(success=False, error=NOT_CONFIGURED)

    result = await run_in_threadpool(
        notifier.send, to_address, content.subject, content.text, content.html
    )

    if not result.success:
        logger.warning("Delivery to %s failed: %s", to_address, result.error)
        return SendResult(success=False, error=DELIVERY_FAILED)

    return result


__all__ = [
    "NotificationSender",
    "SendResult",
    "SmtpSender",
    "EmailContent",
    "deliver",
    "get_notifier",
]
