"""
Academy Admin - Invitation Request/Response Schemas

Request fields are optional at the schema level so that missing values
reach the service and produce its actionable messages.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from academy.auth.models import Invitation


class InvitedBy(BaseModel):
    name: str
    email: str
    role: str


class CreateInvitationRequest(BaseModel):
    """Request body for POST /api/invitations."""
    email: Optional[str] = Field(default=None, description="Address to invite")
    role: Optional[str] = Field(default=None, description="Role granted on acceptance")


class AcceptInvitationRequest(BaseModel):
    """Request body for POST /api/invitations/token/{token}/accept."""
    username: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class InvitationSummary(BaseModel):
    """Invitation as shown in lists. Never carries the token."""
    id: UUID
    email: str
    role: str
    invited_by: InvitedBy
    created_at: datetime
    expires_at: datetime
    is_used: bool

    @classmethod
    def from_record(cls, invitation: Invitation) -> "InvitationSummary":
        return cls(
            id=invitation.id,
            email=invitation.email,
            role=invitation.role.value,
            invited_by=InvitedBy(**invitation.invited_by),
            created_at=invitation.created_at,
            expires_at=invitation.expires_at,
            is_used=invitation.is_used,
        )


class CreatedInvitation(InvitationSummary):
    """The single created record, returned only to its creator."""
    invitation_link: str
    email_sent: bool
    email_error: Optional[str] = None


class CreateInvitationResponse(BaseModel):
    message: str
    invitation: CreatedInvitation


class InvitationListResponse(BaseModel):
    invitations: List[InvitationSummary]
    count: int


class PublicInvitation(BaseModel):
    """Public view used by the acceptance page."""
    email: str
    role: str
    invited_by: InvitedBy
    expires_at: datetime
    token: str


class PublicInvitationResponse(BaseModel):
    invitation: PublicInvitation


class AcceptedUser(BaseModel):
    id: UUID
    username: str
    email: str
    name: str
    role: str


class AcceptInvitationResponse(BaseModel):
    message: str
    user: AcceptedUser


class InvitationStats(BaseModel):
    total: int
    pending: int
    used: int
    expired: int


class InvitationStatsResponse(BaseModel):
    stats: InvitationStats


class MessageResponse(BaseModel):
    message: str


class EmailStatusResponse(BaseModel):
    enabled: bool
    transport: str
    host: Optional[str] = None
    from_address: Optional[str] = None


class EmailTestResponse(BaseModel):
    message: str
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
