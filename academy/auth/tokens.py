"""
Academy Admin - Token Management

Two kinds of tokens live here:

1. Opaque single-use tokens for invitations and password resets.
   32 random bytes from the OS CSPRNG, hex encoded. Uniqueness is
   enforced by the store's unique index, not by this module.
2. JWT access tokens bound to a server-side session.
   Payload carries user id (sub), role, session id (sid) and a
   unique token id (jti) for log correlation.
"""

from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID
import hashlib
import secrets

from jose import jwt, JWTError
from pydantic import BaseModel, Field

from academy.auth.clock import utcnow
from academy.config import settings


# 256 bits of entropy
TOKEN_BYTES = 32


def issue_token() -> str:
    """
    Issue an unpredictable single-use token.

    Returns:
        64-character hex string
    """
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """
    One-way hash of a token for storage.

    Only the hash of a password reset token is persisted; the raw value
    is handed to the requester once.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class TokenPayload(BaseModel):
    """
    JWT token payload structure.

    Attributes:
        sub: Subject (user ID)
        role: User role for RBAC
        sid: Session ID for server-side validation
        jti: Unique token ID for log correlation
        exp: Expiration timestamp
        iat: Issued-at timestamp
    """
    sub: str = Field(..., description="User ID")
    role: str = Field(..., description="User role")
    sid: str = Field(..., description="Session ID")
    jti: str = Field(..., description="Token ID")
    exp: datetime = Field(..., description="Expiration time")
    iat: datetime = Field(..., description="Issued at time")


class InvalidTokenError(Exception):
    """Raised when JWT validation fails."""
    pass


def create_access_token(
    user_id: UUID,
    role: str,
    session_id: UUID,
    expires_delta: Optional[timedelta] = None
) -> tuple[str, str]:
    """
    Create a new JWT access token.

    Args:
        user_id: User's unique identifier
        role: User's RBAC role
        session_id: Server-side session identifier
        expires_delta: Optional custom expiration time

    Returns:
        Tuple of (encoded JWT string, token ID)
    """
    now = utcnow()
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))

    token_id = secrets.token_hex(16)

    payload = {
        "sub": str(user_id),
        "role": role,
        "sid": str(session_id),
        "jti": token_id,
        "exp": expire,
        "iat": now,
    }

    encoded_jwt = jwt.encode(
        payload,
        settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM
    )

    return encoded_jwt, token_id


def verify_access_token(token: str) -> TokenPayload:
    """
    Verify and decode a JWT access token.

    Raises:
        InvalidTokenError: If token is invalid, expired, or malformed
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
        return TokenPayload(**payload)
    except JWTError as e:
        raise InvalidTokenError(f"Token validation failed: {str(e)}")


def get_token_expiry_seconds() -> int:
    """Get token expiry time in seconds for response."""
    return settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
