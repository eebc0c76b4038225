"""
Academy Admin - Authentication Request/Response Schemas

Pydantic models for API request validation and response serialization.
Separates API contracts from database models.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SignInRequest(BaseModel):
    """Request body for POST /auth/signin/credentials."""
    username: str = Field(..., min_length=1, description="Username or email")
    password: str = Field(..., min_length=1, description="Account password")


class UserView(BaseModel):
    """Identity as returned to clients. Never carries the password hash."""
    id: UUID
    username: str
    name: str
    email: str
    role: str
    is_active: bool


class SignInResponse(BaseModel):
    """Response body for successful sign-in."""
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Seconds until token expires")
    session_id: str = Field(..., description="Session ID for X-Session-ID header")
    user: UserView


class SignOutRequest(BaseModel):
    """Request body for POST /auth/signout (optional)."""
    all_sessions: bool = Field(
        default=False,
        description="Invalidate all sessions (sign out everywhere)"
    )


class SignOutResponse(BaseModel):
    message: str = Field(default="Session invalidated")
    sessions_invalidated: int = Field(default=1)


class SessionResponse(BaseModel):
    """Response body for GET /auth/session."""
    user: Optional[UserView] = None


class ProfileResponse(BaseModel):
    user: UserView
