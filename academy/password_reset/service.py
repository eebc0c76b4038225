"""
Academy Admin - Password Reset Lifecycle

Request, verify and consume one-time password reset tokens.

Only the SHA-256 hash of a token is ever persisted. A user has at most one
active token: issuing a new one supersedes the previous, and a successful
reset marks every remaining token of the user as used.

Anti-enumeration:
    request_password_reset returns normally whether or not the address
    belongs to an active user. The one deliberate exception is the resend
    cool-down, which raises RateLimitError while RESET_RATE_LIMIT_SURFACED
    is enabled.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session as DBSession, select

from academy.auth import sessions
from academy.auth.clock import utcnow
from academy.auth.models import PasswordResetToken, User
from academy.auth.tokens import hash_token
from academy.auth.validation import check_password, normalize_email
from academy.config import settings
from academy.errors import DependencyError, RateLimitError, ValidationError
from academy.notifications import NotificationSender, deliver
from academy.notifications.templates import password_reset_email


logger = logging.getLogger(__name__)

GENERIC_RESPONSE = (
    "If an account with that email exists, you will receive a password reset link shortly"
)
INVALID_TOKEN = "Invalid or expired reset token"
INACTIVE_ACCOUNT = "User account not found or inactive"

# Used tokens are kept this long before reclamation
USED_RETENTION_HOURS = 24


def reset_link(raw_token: str) -> str:
    return f"{settings.FRONTEND_URL}/reset-password?token={raw_token}"


def _active_filter(now: datetime):
    return (
        PasswordResetToken.is_used == False,  # noqa: E712
        PasswordResetToken.expires_at > now,
    )


def _find_active_token(db: DBSession, raw_token: str, now: datetime) -> Optional[PasswordResetToken]:
    statement = select(PasswordResetToken).where(
        PasswordResetToken.token_hash == hash_token(raw_token),
        *_active_filter(now),
    )
    return db.exec(statement).first()


async def request_password_reset(
    db: DBSession,
    notifier: NotificationSender,
    email: Optional[str],
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """
    Issue a reset token for an active user and email the link.

    Returns normally for unknown or inactive addresses without writing
    anything.

    Raises:
        ValidationError: Missing or malformed email
        RateLimitError: A token was issued less than the resend interval ago
        DependencyError: The link could not be delivered (the new token is
            deleted again)
    """
    email = normalize_email(email)
    now = now or utcnow()

    user = db.exec(select(User).where(User.email == email)).first()
    if not user or not user.is_active:
        logger.info("password_reset.requested matched no active account")
        return

    existing = db.exec(
        select(PasswordResetToken)
        .where(PasswordResetToken.user_id == user.id, *_active_filter(now))
        .order_by(PasswordResetToken.created_at.desc())
    ).first()

    cooldown = timedelta(seconds=settings.PASSWORD_RESET_RESEND_SECONDS)
    if existing and now - existing.created_at < cooldown:
        logger.info("password_reset.rate_limited user=%s", user.id)
        if settings.RESET_RATE_LIMIT_SURFACED:
            raise RateLimitError(
                "Please wait before requesting another password reset",
                message="You can request a new password reset in a few minutes",
            )
        return

    # At most one active token per user
    db.exec(
        update(PasswordResetToken)
        .where(
            PasswordResetToken.user_id == user.id,
            PasswordResetToken.is_used == False,  # noqa: E712
        )
        .values(is_used=True, used_at=now)
    )

    record, raw_token = PasswordResetToken.issue(user, now=now)
    db.add(record)
    db.commit()
    db.refresh(record)

    content = password_reset_email(
        name=user.name,
        reset_link=reset_link(raw_token),
        expires_at=record.expires_at,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    result = await deliver(notifier, user.email, content)

    if not result.success:
        db.delete(record)
        db.commit()
        logger.error("password_reset.delivery_failed user=%s", user.id)
        raise DependencyError(
            "Failed to send password reset email",
            message="Please try again later or contact support",
        )

    logger.info("password_reset.requested user=%s ip=%s", user.id, ip_address)


async def verify_reset_token(
    db: DBSession,
    token: str,
    now: Optional[datetime] = None,
) -> PasswordResetToken:
    """
    Check a raw token without consuming it.

    Raises:
        ValidationError: Unknown, used or expired token, or inactive owner
    """
    if not token:
        raise ValidationError("Token is required", valid=False)

    record = _find_active_token(db, token, now or utcnow())
    if not record:
        raise ValidationError(INVALID_TOKEN, valid=False)

    user = db.get(User, record.user_id)
    if not user or not user.is_active:
        raise ValidationError(INACTIVE_ACCOUNT, valid=False)

    return record


def _burn_token(db: DBSession, record_id: UUID, now: datetime) -> None:
    """Mark a token used after a failed reset so it cannot be retried."""
    try:
        db.exec(
            update(PasswordResetToken)
            .where(PasswordResetToken.id == record_id)
            .values(is_used=True, used_at=now)
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error("Could not invalidate reset token %s", record_id, exc_info=True)


async def reset_password(
    db: DBSession,
    token: Optional[str],
    password: Optional[str],
    now: Optional[datetime] = None,
) -> User:
    """
    Consume a reset token and set the user's new password.

    The token claim, the password update and the invalidation of the
    user's other tokens commit together. If that transaction fails the
    token is burned anyway. All server-side sessions of the user are
    revoked afterwards.

    Raises:
        ValidationError: Missing input, weak password, or unusable token
        DependencyError: The store failed while applying the reset
    """
    if not token or not password:
        raise ValidationError("Token and password are required")

    check_password(password, settings.RESET_PASSWORD_MIN_LENGTH)
    now = now or utcnow()

    record = _find_active_token(db, token, now)
    if not record:
        raise ValidationError(INVALID_TOKEN, message="Please request a new password reset")

    user = db.get(User, record.user_id)
    if not user or not user.is_active:
        raise ValidationError(INACTIVE_ACCOUNT)

    record_id = record.id
    user_id = user.id

    try:
        claimed = db.exec(
            update(PasswordResetToken)
            .where(PasswordResetToken.id == record_id, *_active_filter(now))
            .values(is_used=True, used_at=now)
        ).rowcount == 1

        if not claimed:
            db.rollback()
            raise ValidationError(INVALID_TOKEN, message="Please request a new password reset")

        user.set_password(password)
        db.add(user)

        db.exec(
            update(PasswordResetToken)
            .where(
                PasswordResetToken.user_id == user_id,
                PasswordResetToken.is_used == False,  # noqa: E712
            )
            .values(is_used=True, used_at=now)
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error("password_reset.failed user=%s", user_id, exc_info=True)
        _burn_token(db, record_id, now)
        raise DependencyError("Internal server error", message="Please try again later")

    revoked = await sessions.invalidate_all_user_sessions(db, user_id)
    logger.info("password_reset.completed user=%s sessions_revoked=%s", user_id, revoked)

    db.refresh(user)
    return user


def reclaim_password_reset_tokens(db: DBSession, now: Optional[datetime] = None) -> int:
    """
    Physically delete expired tokens and used tokens older than
    USED_RETENTION_HOURS.

    Returns:
        Number of rows deleted
    """
    now = now or utcnow()
    result = db.exec(
        delete(PasswordResetToken).where(
            or_(
                PasswordResetToken.expires_at <= now,
                PasswordResetToken.used_at < now - timedelta(hours=USED_RETENTION_HOURS),
            )
        )
    )
    db.commit()
    return result.rowcount
