"""
Academy Admin - Security Dependencies

FastAPI dependencies for authentication and authorization.
Every protected operation runs the same skeleton:

    1. authenticated?   no  -> 401 "Authentication required"
    2. account active?  no  -> 403 "Account is inactive"
    3. predicate holds? no  -> 403 naming the unmet requirement

Usage:
    @router.get("/protected")
    async def protected_route(user: AuthenticatedUser = Depends(get_current_user)):
        ...

    @router.post("/invitations")
    async def invite(
        user: AuthenticatedUser = Depends(require_permission(Permission.INVITE_USERS)),
    ):
        ...

Requests authenticate with ``Authorization: Bearer <jwt>`` plus the
``X-Session-ID`` header; both must match an active server-side session.
"""

import logging
from typing import Callable, Generator, Optional
from uuid import UUID

from fastapi import Depends, Header, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session as DBSession

from academy.auth import sessions
from academy.auth.models import User
from academy.auth.roles import Permission, Role, has_permission, sorted_roles
from academy.auth.tokens import verify_access_token, InvalidTokenError
from academy.errors import AuthenticationError, AuthorizationError


logger = logging.getLogger(__name__)

# HTTP Bearer scheme for JWT extraction
security = HTTPBearer(auto_error=False)

AUTH_REQUIRED = "Authentication required"


class AuthenticatedUser(BaseModel):
    """
    Session-bound identity.

    Available in route handlers via Depends(get_current_user).
    """
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    username: str
    name: str
    email: str
    role: Role
    is_active: bool
    session_id: UUID
    token_id: str  # jti for log correlation

    def public_view(self) -> dict:
        return {
            "id": str(self.user_id),
            "username": self.username,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "is_active": self.is_active,
        }


def get_db(request: Request) -> Generator[DBSession, None, None]:
    """Yield a database session from app state (closed after the request)."""
    db = request.app.state.db_session_factory()
    try:
        yield db
    finally:
        db.close()


def get_client_ip(request: Request) -> str:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_user_agent(request: Request) -> str:
    """Extract user agent from request."""
    return request.headers.get("User-Agent", "unknown")[:512]


async def _resolve_identity(
    db: DBSession,
    credentials: Optional[HTTPAuthorizationCredentials],
    session_id: Optional[str],
) -> AuthenticatedUser:
    """
    Resolve the session-bound identity without checking the active flag.

    Raises:
        AuthenticationError: Missing, invalid or revoked credentials
    """
    if not credentials or not session_id:
        raise AuthenticationError(AUTH_REQUIRED)

    try:
        token_payload = verify_access_token(credentials.credentials)
    except InvalidTokenError:
        raise AuthenticationError(AUTH_REQUIRED, message="Invalid or expired token")

    if token_payload.sid != session_id:
        raise AuthenticationError(AUTH_REQUIRED, message="Session mismatch")

    try:
        session_uuid = UUID(session_id)
        user_uuid = UUID(token_payload.sub)
    except ValueError:
        raise AuthenticationError(AUTH_REQUIRED, message="Invalid session format")

    session = await sessions.validate_session(db, session_uuid, user_uuid)
    if not session:
        raise AuthenticationError(AUTH_REQUIRED, message="Session expired or invalid")

    user = db.get(User, user_uuid)
    if not user:
        raise AuthenticationError(AUTH_REQUIRED, message="Session expired or invalid")

    return AuthenticatedUser(
        user_id=user.id,
        username=user.username,
        name=user.name,
        email=user.email,
        role=user.role,
        is_active=user.is_active,
        session_id=session_uuid,
        token_id=token_payload.jti,
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session_id: Optional[str] = Header(None, alias="X-Session-ID"),
    db: DBSession = Depends(get_db),
) -> AuthenticatedUser:
    """
    Validate request authentication and return the active current user.

    Raises:
        AuthenticationError 401: Missing or invalid credentials or session
        AuthorizationError 403: Account is inactive
    """
    user = await _resolve_identity(db, credentials, session_id)

    if not user.is_active:
        logger.info("Rejected inactive account %s", user.user_id)
        raise AuthorizationError("Account is inactive")

    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session_id: Optional[str] = Header(None, alias="X-Session-ID"),
    db: DBSession = Depends(get_db),
) -> Optional[AuthenticatedUser]:
    """Same as get_current_user but returns None instead of raising 401."""
    try:
        return await _resolve_identity(db, credentials, session_id)
    except AuthenticationError:
        return None


def _requirement(
    check: Callable[[AuthenticatedUser], bool],
    error: str,
    required: str,
    message: str,
):
    """Build a dependency that applies ``check`` after authentication."""

    async def dependency(
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if not check(user):
            logger.warning(
                "Access denied for user %s (%s): requires %s",
                user.user_id, user.role.value, required,
            )
            raise AuthorizationError(
                error,
                message=message,
                required=required,
                user_role=user.role.value,
            )
        return user

    return dependency


def require_permission(permission: Permission):
    """Require a specific permission."""
    return _requirement(
        lambda user: has_permission(user.role, permission),
        "Insufficient permissions",
        permission.value,
        f"Missing required permission: {permission.value}",
    )


def require_any_permission(*permissions: Permission):
    """
    Require at least one of the specified permissions.

    Usage:
        Depends(require_any_permission(Permission.READ_USER, Permission.UPDATE_USER))
    """
    names = ", ".join(p.value for p in permissions)
    return _requirement(
        lambda user: any(has_permission(user.role, p) for p in permissions),
        "Insufficient permissions",
        f"One of: {names}",
        f"Requires one of the permissions: {names}",
    )


def require_role(role: Role):
    """Require an exact role."""
    return _requirement(
        lambda user: user.role == role,
        "Insufficient role",
        role.value,
        f"Requires role: {role.value}",
    )


def require_any_role(*roles: Role):
    """Require one of the specified roles."""
    names = ", ".join(r.value for r in sorted_roles(roles))
    return _requirement(
        lambda user: user.role in roles,
        "Insufficient role",
        f"One of: {names}",
        f"Requires one of the roles: {names}",
    )


require_admin = require_any_role(Role.SUPER_ADMIN, Role.ADMIN)
require_super_admin = require_role(Role.SUPER_ADMIN)


def ensure_permission(user: AuthenticatedUser, permission: Permission) -> None:
    """
    Service-level permission check for callers outside a route dependency.

    Raises:
        AuthorizationError: If the user's role lacks ``permission``
    """
    if not user.is_active:
        raise AuthorizationError("Account is inactive")
    if not has_permission(user.role, permission):
        raise AuthorizationError(
            "Insufficient permissions",
            message=f"Missing required permission: {permission.value}",
            required=permission.value,
            user_role=user.role.value,
        )
