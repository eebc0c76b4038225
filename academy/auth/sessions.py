"""
Academy Admin - Server-Side Sessions

Every access token names a session row (``sid`` claim). A token is only
honoured while its row is valid and unexpired, so flipping ``is_valid``
revokes it at once. Sign-out flips one row; password reset and account
deactivation flip every row of the user.
"""

from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlmodel import Session as DBSession, select

from academy.auth.clock import utcnow
from academy.auth.models import Session
from academy.config import settings


async def create_session(
    db: DBSession,
    user_id: UUID,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Session:
    """Open a session lasting ``SESSION_EXPIRE_HOURS``."""
    now = utcnow()

    session = Session(
        user_id=user_id,
        issued_at=now,
        expires_at=now + timedelta(hours=settings.SESSION_EXPIRE_HOURS),
        last_seen=now,
        is_valid=True,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    db.add(session)
    db.commit()
    db.refresh(session)

    return session


async def validate_session(
    db: DBSession,
    session_id: UUID,
    user_id: UUID,
) -> Optional[Session]:
    """
    Return the live session ``session_id`` of ``user_id``, or None.

    An expired row is marked invalid on the way out; a live one gets its
    ``last_seen`` bumped.
    """
    statement = select(Session).where(
        Session.session_id == session_id,
        Session.user_id == user_id,
        Session.is_valid == True,  # noqa: E712
    )

    session = db.exec(statement).first()

    if not session:
        return None

    now = utcnow()
    if now > session.expires_at:
        session.is_valid = False
        db.add(session)
        db.commit()
        return None

    session.last_seen = now
    db.add(session)
    db.commit()

    return session


async def invalidate_session(db: DBSession, session_id: UUID) -> bool:
    session = db.get(Session, session_id)

    if not session:
        return False

    session.is_valid = False
    db.add(session)
    db.commit()

    return True


async def invalidate_all_user_sessions(db: DBSession, user_id: UUID) -> int:
    """Revoke every live session of a user. Returns how many were revoked."""
    statement = select(Session).where(
        Session.user_id == user_id,
        Session.is_valid == True,  # noqa: E712
    )

    sessions = db.exec(statement).all()

    for session in sessions:
        session.is_valid = False
        db.add(session)

    db.commit()

    return len(sessions)


async def cleanup_expired_sessions(db: DBSession) -> int:
    """Mark sessions past expiry invalid (reclamation job)."""
    statement = select(Session).where(
        Session.is_valid == True,  # noqa: E712
        Session.expires_at < utcnow(),
    )

    sessions = db.exec(statement).all()

    for session in sessions:
        session.is_valid = False
        db.add(session)

    db.commit()

    return len(sessions)
