"""
Academy Admin - Invitation Lifecycle

Create, list, resolve, accept, cancel and count invitations.

Lifecycle:
    ISSUED (unused, unexpired)
      -> CONSUMED  accept_invitation sets is_used/used_at (terminal)
      -> CANCELLED cancel_invitation hard-deletes the row
      -> EXPIRED   expires_at passes; ignored by every validity check

Concurrency:
    - (email, role) is unique among unused rows at the store level, so two
      simultaneous creates cannot both commit.
    - Acceptance claims the invitation with a conditional UPDATE inside the
      same transaction that inserts the user; only one writer can move
      is_used from false to true.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, delete, func, or_, true, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session as DBSession, select

from academy.auth.clock import utcnow
from academy.auth.dependencies import AuthenticatedUser, ensure_permission
from academy.auth.models import Invitation, User
from academy.auth.roles import (
    Permission,
    Role,
    can_invite_role,
    invitable_roles,
    sorted_roles,
)
from academy.auth.validation import (
    check_password,
    normalize_email,
    normalize_name,
    normalize_username,
    parse_role,
)
from academy.config import settings
from academy.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from academy.notifications import NotificationSender, SendResult, deliver
from academy.notifications.templates import invitation_email, welcome_email


logger = logging.getLogger(__name__)

INVALID_INVITATION = "Invalid or expired invitation"
INVALID_INVITATION_MESSAGE = "This invitation link is no longer valid"
DUPLICATE_INVITATION = "An invitation for this email and role already exists"

# Used invitations are kept this long before reclamation
USED_RETENTION_DAYS = 30


def invitation_link(token: str) -> str:
    return f"{settings.FRONTEND_URL}/invite/{token}"


def _visible_to(viewer: AuthenticatedUser):
    """Super admins see every invitation; others only their own."""
    if viewer.role == Role.SUPER_ADMIN:
        return true()
    return Invitation.invited_by_id == viewer.user_id


def _pending_filter(now: datetime):
    return and_(
        Invitation.is_used == False,  # noqa: E712
        Invitation.expires_at > now,
    )


def _expired_filter(now: datetime):
    return and_(
        Invitation.is_used == False,  # noqa: E712
        Invitation.expires_at <= now,
    )


async def create_invitation(
    db: DBSession,
    notifier: NotificationSender,
    inviter: AuthenticatedUser,
    email: Optional[str],
    role: Optional[str],
    now: Optional[datetime] = None,
) -> Tuple[Invitation, SendResult]:
    """
    Create an invitation and try to email the acceptance link.

    Returns:
        Tuple of (persisted invitation, delivery result). A failed delivery
        does not undo the invitation.

    Raises:
        AuthorizationError: Inviter lacks invite_users or may not assign the role
        ValidationError: Missing or malformed email/role
        ConflictError: Email already registered, or a pending invitation exists
    """
    ensure_permission(inviter, Permission.INVITE_USERS)

    if not email or not role:
        raise ValidationError("Email and role are required")

    email = normalize_email(email)
    target_role = parse_role(role)

    if not can_invite_role(inviter.role, target_role):
        allowed = [r.value for r in sorted_roles(invitable_roles(inviter.role))]
        raise AuthorizationError(
            "You don't have permission to assign this role",
            message=(
                f"You can only invite users with the following roles: {', '.join(allowed)}"
                if allowed else "Your role cannot invite users"
            ),
            invitable_roles=allowed,
        )

    now = now or utcnow()

    existing_user = db.exec(select(User).where(User.email == email)).first()
    if existing_user:
        raise ConflictError("A user with this email already exists")

    pending = db.exec(
        select(Invitation).where(
            Invitation.email == email,
            Invitation.role == target_role,
            _pending_filter(now),
        )
    ).first()
    if pending:
        raise ConflictError(
            DUPLICATE_INVITATION,
            existing_invitation={
                "id": str(pending.id),
                "email": pending.email,
                "role": pending.role.value,
                "expires_at": pending.expires_at,
            },
        )

    # Dead rows for the same pair would otherwise trip the partial unique index
    db.exec(
        delete(Invitation).where(
            Invitation.email == email,
            Invitation.role == target_role,
            _expired_filter(now),
        )
    )

    invitation = Invitation.issue(email, target_role, inviter, now=now)
    db.add(invitation)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(DUPLICATE_INVITATION)
    db.refresh(invitation)

    logger.info(
        "invitation.created id=%s role=%s by=%s",
        invitation.id, invitation.role.value, inviter.user_id,
    )

    content = invitation_email(
        role=invitation.role,
        invited_by=invitation.invited_by,
        invitation_link=invitation_link(invitation.token),
        expires_at=invitation.expires_at,
    )
    result = await deliver(notifier, invitation.email, content)

    return invitation, result


async def list_invitations(
    db: DBSession,
    viewer: AuthenticatedUser,
    now: Optional[datetime] = None,
) -> List[Invitation]:
    """Pending invitations visible to ``viewer``, newest first."""
    ensure_permission(viewer, Permission.READ_USER)
    now = now or utcnow()

    statement = (
        select(Invitation)
        .where(_pending_filter(now), _visible_to(viewer))
        .order_by(Invitation.created_at.desc())
    )
    return list(db.exec(statement).all())


async def get_invitation_by_token(
    db: DBSession,
    token: str,
    now: Optional[datetime] = None,
) -> Invitation:
    """
    Resolve a token to a pending invitation.

    Raises:
        NotFoundError: Unknown, used or expired token
    """
    if not token:
        raise ValidationError("Invitation token is required")

    invitation = db.exec(
        select(Invitation).where(
            Invitation.token == token,
            _pending_filter(now or utcnow()),
        )
    ).first()

    if not invitation:
        raise NotFoundError(INVALID_INVITATION, message=INVALID_INVITATION_MESSAGE)

    return invitation


async def ensure_identity_available(db: DBSession, email: str, username: str) -> None:
    """
    Raises:
        ConflictError: Email or username already belongs to a user
    """
    if db.exec(select(User).where(User.email == email)).first():
        raise ConflictError("A user with this email already exists")
    if db.exec(select(User).where(User.username == username)).first():
        raise ConflictError("Username is already taken")


def claim_invitation(db: DBSession, invitation_id: UUID, now: datetime) -> bool:
    """
    Mark an invitation used if it is still pending. Does not commit.

    Returns:
        True if this caller moved the invitation from unused to used
    """
    result = db.exec(
        update(Invitation)
        .where(Invitation.id == invitation_id, _pending_filter(now))
        .values(is_used=True, used_at=now)
    )
    return result.rowcount == 1


async def accept_invitation(
    db: DBSession,
    notifier: NotificationSender,
    token: str,
    username: Optional[str],
    password: Optional[str],
    name: Optional[str],
    now: Optional[datetime] = None,
) -> User:
    """
    Create the invited user and consume the invitation in one transaction.

    Raises:
        ValidationError: Missing fields or short password
        NotFoundError: Token unknown, used, expired, or lost a concurrent race
        ConflictError: Email or username already taken (invitation stays usable)
    """
    if not username or not username.strip() or not password or not name or not name.strip():
        raise ValidationError("Username, password, and name are required")

    username = normalize_username(username)
    name = normalize_name(name)
    check_password(password, settings.INVITE_PASSWORD_MIN_LENGTH)

    now = now or utcnow()
    invitation = await get_invitation_by_token(db, token, now)

    await ensure_identity_available(db, invitation.email, username)

    invitation_id = invitation.id
    if not claim_invitation(db, invitation_id, now):
        db.rollback()
        raise NotFoundError(INVALID_INVITATION, message=INVALID_INVITATION_MESSAGE)

    user = User(
        username=username,
        email=invitation.email,
        name=name,
        password_hash="",
        role=invitation.role,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    user.set_password(password)
    db.add(user)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("A user with this email or username already exists")
    db.refresh(user)

    logger.info(
        "invitation.accepted id=%s user=%s role=%s",
        invitation_id, user.id, user.role.value,
    )

    result = await deliver(
        notifier, user.email, welcome_email(user.name, user.username, user.role)
    )
    if not result.success:
        logger.info("Welcome email not sent to user %s", user.id)

    return user


async def cancel_invitation(
    db: DBSession,
    actor: AuthenticatedUser,
    invitation_id: UUID,
) -> None:
    """
    Hard-delete an invitation.

    Only the issuer may cancel, unless the actor is a super admin.
    """
    ensure_permission(actor, Permission.DELETE_USER)

    invitation = db.get(Invitation, invitation_id)
    if not invitation:
        raise NotFoundError("Invitation not found")

    if actor.role != Role.SUPER_ADMIN and invitation.invited_by_id != actor.user_id:
        raise AuthorizationError("You can only cancel invitations you created")

    db.delete(invitation)
    db.commit()

    logger.info("invitation.cancelled id=%s by=%s", invitation_id, actor.user_id)


async def invitation_stats(
    db: DBSession,
    viewer: AuthenticatedUser,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """Counts over the invitations visible to ``viewer``, computed now."""
    ensure_permission(viewer, Permission.READ_USER)
    now = now or utcnow()
    scope = _visible_to(viewer)

    def count(*criteria) -> int:
        statement = select(func.count()).select_from(Invitation).where(scope, *criteria)
        return db.exec(statement).one()

    return {
        "total": count(),
        "pending": count(_pending_filter(now)),
        "used": count(Invitation.is_used == True),  # noqa: E712
        "expired": count(_expired_filter(now)),
    }


def reclaim_expired_invitations(db: DBSession, now: Optional[datetime] = None) -> int:
    """
    Physically delete dead invitations.

    Removes unused invitations past expiry and used invitations older than
    USED_RETENTION_DAYS. Validity never depends on this having run.

    Returns:
        Number of rows deleted
    """
    now = now or utcnow()
    result = db.exec(
        delete(Invitation).where(
            or_(
                _expired_filter(now),
                and_(
                    Invitation.is_used == True,  # noqa: E712
                    Invitation.used_at < now - timedelta(days=USED_RETENTION_DAYS),
                ),
            )
        )
    )
    db.commit()
    return result.rowcount
