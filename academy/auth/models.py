"""
Academy Admin - Database Models

SQLModel records for users, sessions, invitations and password resets.
Uses PostgreSQL for production, SQLite for local development.

Security:
- Passwords stored as bcrypt hashes only
- Password reset tokens stored as SHA-256 hashes only
- Sessions are server-controlled for immediate revocation
- All timestamps are naive UTC

Construction-time logic (token minting, expiry) lives in the explicit
``issue`` factories below rather than in save hooks.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple
from uuid import UUID, uuid4

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Index, text

from academy.auth.clock import utcnow
from academy.auth.password import hash_password, verify_password
from academy.auth.roles import Role
from academy.auth.tokens import issue_token, hash_token
from academy.config import settings


class User(SQLModel, table=True):
    """
    User account.

    Attributes:
        id: Unique identifier (UUIDv4)
        username: Sign-in name (unique)
        email: Contact address (unique, lowercase)
        name: Display name
        password_hash: bcrypt hash (never store plaintext)
        role: RBAC role determining permissions
        is_active: Inactive users cannot sign in or pass authorization
        created_at: Account creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
    """
    __tablename__ = "users"

    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        description="Unique user identifier"
    )
    username: str = Field(
        sa_column=Column(String(64), unique=True, index=True, nullable=False),
        description="Sign-in name"
    )
    email: str = Field(
        sa_column=Column(String(255), unique=True, index=True, nullable=False),
        description="User email address"
    )
    name: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Display name"
    )
    password_hash: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="bcrypt password hash"
    )
    role: Role = Field(
        sa_column=Column(SQLEnum(Role), nullable=False, default=Role.STUDENT),
        description="User role for RBAC"
    )
    is_active: bool = Field(
        sa_column=Column(Boolean, nullable=False, default=True),
        description="Whether user can authenticate"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow),
        description="Account creation timestamp"
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow),
        description="Last update timestamp"
    )

    def set_password(self, password: str) -> None:
        """Hash and store a new credential."""
        self.password_hash = hash_password(password)
        self.updated_at = utcnow()

    def check_password(self, password: str) -> bool:
        return verify_password(password, self.password_hash)


class Session(SQLModel, table=True):
    """
    Server-side session for authentication validation.

    JWT tokens are validated against active sessions.
    Revoking a session immediately invalidates all associated tokens.
    """
    __tablename__ = "sessions"

    session_id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        description="Unique session identifier"
    )
    user_id: UUID = Field(
        foreign_key="users.id",
        nullable=False,
        index=True,
        description="Reference to user"
    )
    issued_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow),
        description="Session creation timestamp"
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime, nullable=False),
        description="Session expiration timestamp"
    )
    last_seen: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow),
        description="Last activity timestamp"
    )
    is_valid: bool = Field(
        sa_column=Column(Boolean, nullable=False, default=True),
        description="Whether session is active"
    )
    ip_address: Optional[str] = Field(
        default=None,
        sa_column=Column(String(45), nullable=True),
        description="Client IP address"
    )
    user_agent: Optional[str] = Field(
        default=None,
        sa_column=Column(String(512), nullable=True),
        description="Client user-agent string"
    )


class Invitation(SQLModel, table=True):
    """
    Offer for an email address to join with a specific role.

    The issuer snapshot (name, email, role) is copied at creation and does
    not follow later changes to the issuing user.

    Store constraints:
        - token is unique
        - (email, role) is unique among unused rows
    """
    __tablename__ = "invitations"
    __table_args__ = (
        Index(
            "ux_invitations_pending_email_role",
            "email",
            "role",
            unique=True,
            sqlite_where=text("is_used = 0"),
            postgresql_where=text("is_used = false"),
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(
        sa_column=Column(String(255), nullable=False, index=True),
        description="Invited address (lowercase)"
    )
    role: Role = Field(
        sa_column=Column(SQLEnum(Role), nullable=False),
        description="Role granted on acceptance"
    )
    token: str = Field(
        sa_column=Column(String(64), unique=True, index=True, nullable=False),
        description="Opaque acceptance token"
    )
    invited_by_id: UUID = Field(
        foreign_key="users.id",
        nullable=False,
        index=True,
        description="Issuing user"
    )
    invited_by_name: str = Field(sa_column=Column(String(255), nullable=False))
    invited_by_email: str = Field(sa_column=Column(String(255), nullable=False))
    invited_by_role: Role = Field(sa_column=Column(SQLEnum(Role), nullable=False))
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow),
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime, nullable=False, index=True),
    )
    is_used: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False, index=True),
    )
    used_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
    )

    @classmethod
    def issue(
        cls,
        email: str,
        role: Role,
        inviter: Any,
        now: Optional[datetime] = None,
    ) -> "Invitation":
        """
        Build a new invitation with a fresh token and expiry.

        Args:
            email: Target address (normalized to lowercase here)
            role: Role to grant
            inviter: Identity with ``user_id``, ``name``, ``email`` and ``role``
            now: Creation instant (defaults to current UTC time)
        """
        now = now or utcnow()
        return cls(
            email=email.strip().lower(),
            role=role,
            token=issue_token(),
            invited_by_id=inviter.user_id,
            invited_by_name=inviter.name,
            invited_by_email=inviter.email,
            invited_by_role=inviter.role,
            created_at=now,
            expires_at=now + timedelta(days=settings.INVITATION_EXPIRE_DAYS),
            is_used=False,
        )

    @property
    def invited_by(self) -> Dict[str, str]:
        return {
            "name": self.invited_by_name,
            "email": self.invited_by_email,
            "role": Role(self.invited_by_role).value,
        }

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def is_pending(self, now: Optional[datetime] = None) -> bool:
        return not self.is_used and not self.is_expired(now)


class PasswordResetToken(SQLModel, table=True):
    """
    One-time credential-reset grant.

    Only the SHA-256 hash of the token is stored; the raw token leaves
    the process once, inside the reset link.
    """
    __tablename__ = "password_reset_tokens"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(
        foreign_key="users.id",
        nullable=False,
        index=True,
        description="Owning user"
    )
    email: str = Field(
        sa_column=Column(String(255), nullable=False, index=True),
        description="Email snapshot at request time"
    )
    token_hash: str = Field(
        sa_column=Column(String(64), unique=True, index=True, nullable=False),
        description="SHA-256 hash of the reset token"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow),
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime, nullable=False, index=True),
    )
    is_used: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False, index=True),
    )
    used_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
    )

    @classmethod
    def issue(
        cls,
        user: User,
        now: Optional[datetime] = None,
    ) -> Tuple["PasswordResetToken", str]:
        """
        Build a reset record for ``user``.

        Returns:
            Tuple of (record holding only the hash, raw token)
        """
        now = now or utcnow()
        raw_token = issue_token()
        record = cls(
            user_id=user.id,
            email=user.email,
            token_hash=hash_token(raw_token),
            created_at=now,
            expires_at=now + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
            is_used=False,
        )
        return record, raw_token

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at
