"""
Academy Admin - Admin API Routes

User management endpoints:
- GET  /api/admin/users                     - List all users
- POST /api/admin/users                     - Create a user directly
- POST /api/admin/users/{user_id}/activate   - Reactivate a user
- POST /api/admin/users/{user_id}/deactivate - Deactivate a user and revoke sessions

Actors may only touch users whose role they are allowed to modify:
super admins modify anyone, admins modify anyone below admin.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, status
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session as DBSession, select

from academy.auth import sessions as session_service
from academy.auth.clock import utcnow
from academy.auth.dependencies import (
    AuthenticatedUser,
    get_db,
    require_admin,
    require_permission,
)
from academy.auth.models import Session, User
from academy.auth.roles import Permission, Role, can_modify_user
from academy.auth.validation import (
    check_password,
    normalize_email,
    normalize_name,
    normalize_username,
    parse_role,
)
from academy.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

ADMIN_PASSWORD_MIN_LENGTH = 8


# =============================================================================
# Request/Response Models
# =============================================================================

class UserListItem(BaseModel):
    """User item for admin list."""
    id: UUID
    username: str
    email: str
    name: str
    role: str
    is_active: bool
    created_at: str
    last_login: Optional[str] = None


class UserListResponse(BaseModel):
    users: List[UserListItem]
    total: int


class CreateUserRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class UserStatusResponse(BaseModel):
    message: str
    user: UserListItem
    sessions_revoked: int = 0


def _list_item(user: User, last_login: Optional[str] = None) -> UserListItem:
    return UserListItem(
        id=user.id,
        username=user.username,
        email=user.email,
        name=user.name,
        role=user.role.value,
        is_active=user.is_active,
        created_at=user.created_at.isoformat(),
        last_login=last_login,
    )


def _modifiable_target(db: DBSession, actor: AuthenticatedUser, user_id: UUID) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")

    if not can_modify_user(actor.role, user.role):
        raise AuthorizationError(
            "Insufficient role",
            message=f"A {actor.role.value} cannot modify a {user.role.value}",
            required="can_modify_user",
            user_role=actor.role.value,
        )
    return user


# =============================================================================
# User Management Endpoints
# =============================================================================

@router.get("/users", response_model=UserListResponse, summary="List All Users")
async def list_users(
    admin: AuthenticatedUser = Depends(require_admin),
    db: DBSession = Depends(get_db),
):
    """
    List all users in the system.

    Admin or super admin only. Password hashes are never returned.
    """
    users = db.exec(select(User).order_by(User.created_at)).all()

    user_list = []
    for user in users:
        # Last login from most recent session
        last_session = db.exec(
            select(Session)
            .where(Session.user_id == user.id)
            .order_by(Session.issued_at.desc())
            .limit(1)
        ).first()
        user_list.append(
            _list_item(user, last_session.issued_at.isoformat() if last_session else None)
        )

    return UserListResponse(users=user_list, total=len(user_list))


@router.post(
    "/users",
    response_model=UserListItem,
    status_code=status.HTTP_201_CREATED,
    summary="Create User",
)
async def create_user(
    body: CreateUserRequest,
    admin: AuthenticatedUser = Depends(require_permission(Permission.CREATE_USER)),
    db: DBSession = Depends(get_db),
):
    """
    Create an account without an invitation.

    The target role must be one the actor is allowed to modify.
    """
    if not body.username or not body.email or not body.name or not body.password or not body.role:
        raise ValidationError("Username, email, name, password, and role are required")

    email = normalize_email(body.email)
    username = normalize_username(body.username)
    name = normalize_name(body.name)
    role = parse_role(body.role)
    check_password(body.password, ADMIN_PASSWORD_MIN_LENGTH)

    if not can_modify_user(admin.role, role):
        raise AuthorizationError(
            "You don't have permission to assign this role",
            message=f"A {admin.role.value} cannot create a {role.value}",
            required="can_modify_user",
            user_role=admin.role.value,
        )

    if db.exec(select(User).where(User.email == email)).first():
        raise ConflictError("A user with this email already exists")
    if db.exec(select(User).where(User.username == username)).first():
        raise ConflictError("Username is already taken")

    now = utcnow()
    user = User(
        username=username,
        email=email,
        name=name,
        password_hash="",
        role=role,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    user.set_password(body.password)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("A user with this email or username already exists")
    db.refresh(user)

    logger.info("admin.user.created user=%s role=%s by=%s", user.id, role.value, admin.user_id)
    return _list_item(user)


@router.post(
    "/users/{user_id}/activate",
    response_model=UserStatusResponse,
    summary="Activate User",
)
async def activate_user(
    user_id: UUID = Path(..., description="User ID to activate"),
    admin: AuthenticatedUser = Depends(require_permission(Permission.UPDATE_USER)),
    db: DBSession = Depends(get_db),
):
    user = _modifiable_target(db, admin, user_id)

    user.is_active = True
    user.updated_at = utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("admin.user.activated user=%s by=%s", user.id, admin.user_id)
    return UserStatusResponse(message="User activated", user=_list_item(user))


@router.post(
    "/users/{user_id}/deactivate",
    response_model=UserStatusResponse,
    summary="Deactivate User",
)
async def deactivate_user(
    user_id: UUID = Path(..., description="User ID to deactivate"),
    admin: AuthenticatedUser = Depends(require_permission(Permission.UPDATE_USER)),
    db: DBSession = Depends(get_db),
):
    """
    Deactivate an account and revoke all of its sessions.

    Actors cannot deactivate themselves.
    """
    if user_id == admin.user_id:
        raise ValidationError("Cannot deactivate your own account")

    user = _modifiable_target(db, admin, user_id)

    user.is_active = False
    user.updated_at = utcnow()
    db.add(user)
    db.commit()

    revoked = await session_service.invalidate_all_user_sessions(db, user.id)
    db.refresh(user)

    logger.info(
        "admin.user.deactivated user=%s by=%s sessions_revoked=%s",
        user.id, admin.user_id, revoked,
    )
    return UserStatusResponse(
        message="User deactivated", user=_list_item(user), sessions_revoked=revoked
    )
