"""
Academy Admin - Authentication Routes

Session lifecycle endpoints feeding identities to the authorization layer:
- POST /auth/signin/credentials - Authenticate and create session
- POST /auth/signout            - Invalidate session (or all sessions)
- GET  /auth/session            - Current identity, or null
- GET  /api/profile             - Current identity (authenticated, active)

Auth events are logged with user id and client IP. Credentials and tokens
never appear in log lines.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session as DBSession, or_, select

from academy.auth import sessions as session_service
from academy.auth.dependencies import (
    AuthenticatedUser,
    get_client_ip,
    get_current_user,
    get_db,
    get_optional_user,
    get_user_agent,
)
from academy.auth.models import User
from academy.auth.password import needs_rehash
from academy.auth.schemas import (
    ProfileResponse,
    SessionResponse,
    SignInRequest,
    SignInResponse,
    SignOutRequest,
    SignOutResponse,
    UserView,
)
from academy.auth.tokens import create_access_token, get_token_expiry_seconds
from academy.errors import AuthenticationError, AuthorizationError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])
profile_router = APIRouter(prefix="/api", tags=["profile"])

INVALID_CREDENTIALS = "Invalid credentials"


def _user_view(user: User) -> UserView:
    return UserView(
        id=user.id,
        username=user.username,
        name=user.name,
        email=user.email,
        role=user.role.value,
        is_active=user.is_active,
    )


@router.post(
    "/signin/credentials",
    response_model=SignInResponse,
    summary="Authenticate user and create session",
)
async def signin(
    request: Request,
    credentials: SignInRequest,
    db: DBSession = Depends(get_db),
):
    """
    Authenticate with username (or email) and password.

    On successful authentication:
    1. Validates password against bcrypt hash
    2. Upgrades the hash if the work factor was raised
    3. Creates server-side session
    4. Issues JWT access token bound to session

    Raises:
        401: Invalid credentials
        403: Account is inactive
    """
    ip_address = get_client_ip(request)
    login = credentials.username.strip()

    statement = select(User).where(
        or_(User.username == login, User.email == login.lower())
    )
    user = db.exec(statement).first()

    if not user or not user.check_password(credentials.password):
        logger.info(
            "auth.signin.failure user=%s ip=%s reason=%s",
            user.id if user else None, ip_address,
            "invalid_password" if user else "user_not_found",
        )
        raise AuthenticationError(INVALID_CREDENTIALS)

    if not user.is_active:
        logger.info("auth.signin.failure user=%s ip=%s reason=account_inactive", user.id, ip_address)
        raise AuthorizationError("Account is inactive")

    # Work factor upgrade
    if needs_rehash(user.password_hash):
        user.set_password(credentials.password)
        db.add(user)
        db.commit()
        db.refresh(user)

    session = await session_service.create_session(
        db=db,
        user_id=user.id,
        ip_address=ip_address,
        user_agent=get_user_agent(request),
    )

    access_token, token_id = create_access_token(
        user_id=user.id,
        role=user.role.value,
        session_id=session.session_id,
    )

    logger.info(
        "auth.signin.success user=%s ip=%s session=%s token=%s",
        user.id, ip_address, session.session_id, token_id,
    )

    return SignInResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=get_token_expiry_seconds(),
        session_id=str(session.session_id),
        user=_user_view(user),
    )


@router.post(
    "/signout",
    response_model=SignOutResponse,
    summary="Invalidate current session",
)
async def signout(
    request: Request,
    body: Optional[SignOutRequest] = None,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    """
    Invalidate the current session (or all sessions).

    After sign-out every JWT bound to the session is rejected.
    """
    ip_address = get_client_ip(request)

    if body and body.all_sessions:
        count = await session_service.invalidate_all_user_sessions(db, user.user_id)
        logger.info("auth.signout.all user=%s ip=%s sessions=%s", user.user_id, ip_address, count)
        return SignOutResponse(message="All sessions invalidated", sessions_invalidated=count)

    await session_service.invalidate_session(db, user.session_id)
    logger.info("auth.signout user=%s ip=%s session=%s", user.user_id, ip_address, user.session_id)
    return SignOutResponse(message="Session invalidated", sessions_invalidated=1)


@router.get(
    "/session",
    response_model=SessionResponse,
    summary="Current session identity",
)
async def current_session(
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
):
    """Returns ``{"user": null}`` rather than 401 when nobody is signed in."""
    if user is None:
        return SessionResponse(user=None)
    return SessionResponse(user=UserView(**user.public_view()))


@profile_router.get(
    "/profile",
    response_model=ProfileResponse,
    summary="Current user profile",
)
async def profile(
    user: AuthenticatedUser = Depends(get_current_user),
):
    return ProfileResponse(user=UserView(**user.public_view()))
