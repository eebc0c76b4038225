"""
Academy Admin - Invitation Routes

API endpoints for the invitation workflow:
- POST   /api/invitations                      - Invite an email address to a role
- GET    /api/invitations                      - List pending invitations
- GET    /api/invitations/stats                - Invitation counts
- GET    /api/invitations/email-status         - Notification transport status
- POST   /api/invitations/test-email           - Send a configuration test email
- GET    /api/invitations/token/{token}        - Public invitation view
- POST   /api/invitations/token/{token}/accept - Create account from invitation
- DELETE /api/invitations/{invitation_id}      - Cancel an invitation
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlmodel import Session as DBSession

from academy.auth.dependencies import (
    AuthenticatedUser,
    get_client_ip,
    get_db,
    require_permission,
)
from academy.auth.roles import Permission
from academy.invitations import service
from academy.invitations.schemas import (
    AcceptedUser,
    AcceptInvitationRequest,
    AcceptInvitationResponse,
    CreatedInvitation,
    CreateInvitationRequest,
    CreateInvitationResponse,
    EmailStatusResponse,
    EmailTestResponse,
    InvitationListResponse,
    InvitationStats,
    InvitationStatsResponse,
    InvitationSummary,
    InvitedBy,
    MessageResponse,
    PublicInvitation,
    PublicInvitationResponse,
)
from academy.notifications import NotificationSender, deliver, get_notifier
from academy.notifications.templates import configuration_test_email


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invitations", tags=["invitations"])


@router.post(
    "",
    response_model=CreateInvitationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite an email address to join with a role",
)
async def create_invitation(
    request: Request,
    body: CreateInvitationRequest,
    user: AuthenticatedUser = Depends(require_permission(Permission.INVITE_USERS)),
    db: DBSession = Depends(get_db),
    notifier: NotificationSender = Depends(get_notifier),
):
    """
    Create an invitation and email the acceptance link.

    The invitation is kept even when the email cannot be delivered;
    ``email_sent`` and ``email_error`` report the delivery outcome and the
    returned ``invitation_link`` can be shared manually.
    """
    invitation, result = await service.create_invitation(
        db, notifier, user, body.email, body.role
    )

    logger.info(
        "Invitation %s issued by %s from %s (email_sent=%s)",
        invitation.id, user.user_id, get_client_ip(request), result.success,
    )

    summary = InvitationSummary.from_record(invitation)
    return CreateInvitationResponse(
        message=(
            "Invitation sent successfully" if result.success
            else "Invitation created, but the email could not be sent"
        ),
        invitation=CreatedInvitation(
            **summary.model_dump(),
            invitation_link=service.invitation_link(invitation.token),
            email_sent=result.success,
            email_error=result.error,
        ),
    )


@router.get(
    "",
    response_model=InvitationListResponse,
    summary="List pending invitations",
)
async def list_invitations(
    user: AuthenticatedUser = Depends(require_permission(Permission.READ_USER)),
    db: DBSession = Depends(get_db),
):
    """Super admins see every pending invitation; others see their own."""
    invitations = await service.list_invitations(db, user)
    return InvitationListResponse(
        invitations=[InvitationSummary.from_record(i) for i in invitations],
        count=len(invitations),
    )


@router.get(
    "/stats",
    response_model=InvitationStatsResponse,
    summary="Invitation counts",
)
async def invitation_stats(
    user: AuthenticatedUser = Depends(require_permission(Permission.READ_USER)),
    db: DBSession = Depends(get_db),
):
    stats = await service.invitation_stats(db, user)
    return InvitationStatsResponse(stats=InvitationStats(**stats))


@router.get(
    "/email-status",
    response_model=EmailStatusResponse,
    summary="Notification transport status",
)
async def email_status(
    user: AuthenticatedUser = Depends(require_permission(Permission.INVITE_USERS)),
    notifier: NotificationSender = Depends(get_notifier),
):
    return EmailStatusResponse(**notifier.status())


@router.post(
    "/test-email",
    response_model=EmailTestResponse,
    summary="Send a configuration test email to the current user",
)
async def send_test_email(
    user: AuthenticatedUser = Depends(require_permission(Permission.INVITE_USERS)),
    notifier: NotificationSender = Depends(get_notifier),
):
    result = await deliver(notifier, user.email, configuration_test_email())
    return EmailTestResponse(
        message=(
            f"Test email sent to {user.email}" if result.success
            else "Test email could not be sent"
        ),
        success=result.success,
        message_id=result.message_id,
        error=result.error,
    )


@router.get(
    "/token/{token}",
    response_model=PublicInvitationResponse,
    summary="Public invitation view",
)
async def get_invitation(
    token: str,
    db: DBSession = Depends(get_db),
):
    """
    Resolve an acceptance token.

    Raises:
        404: Token unknown, already used or expired
    """
    invitation = await service.get_invitation_by_token(db, token)
    return PublicInvitationResponse(
        invitation=PublicInvitation(
            email=invitation.email,
            role=invitation.role.value,
            invited_by=InvitedBy(**invitation.invited_by),
            expires_at=invitation.expires_at,
            token=invitation.token,
        )
    )


@router.post(
    "/token/{token}/accept",
    response_model=AcceptInvitationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account from an invitation",
)
async def accept_invitation(
    request: Request,
    token: str,
    body: AcceptInvitationRequest,
    db: DBSession = Depends(get_db),
    notifier: NotificationSender = Depends(get_notifier),
):
    """
    Consume the invitation and create the user with the invited role.

    Raises:
        400: Missing fields or weak password
        404: Token unknown, already used or expired
        409: Email or username already taken
    """
    user = await service.accept_invitation(
        db, notifier, token, body.username, body.password, body.name
    )

    logger.info("Account %s created from invitation via %s", user.id, get_client_ip(request))

    return AcceptInvitationResponse(
        message="Account created successfully",
        user=AcceptedUser(
            id=user.id,
            username=user.username,
            email=user.email,
            name=user.name,
            role=user.role.value,
        ),
    )


@router.delete(
    "/{invitation_id}",
    response_model=MessageResponse,
    summary="Cancel an invitation",
)
async def cancel_invitation(
    invitation_id: UUID,
    user: AuthenticatedUser = Depends(require_permission(Permission.DELETE_USER)),
    db: DBSession = Depends(get_db),
):
    await service.cancel_invitation(db, user, invitation_id)
    return MessageResponse(message="Invitation cancelled successfully")
