"""
Academy Admin - Password Reset Routes

Public endpoints:
- POST /api/auth/forgot-password            - Request a reset link
- POST /api/auth/reset-password             - Consume a token and set a new password
- GET  /api/auth/verify-reset-token/{token} - Check a token without consuming it
"""

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session as DBSession

from academy.auth.dependencies import get_client_ip, get_db, get_user_agent
from academy.notifications import NotificationSender, get_notifier
from academy.password_reset import service
from academy.password_reset.schemas import (
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    ResetPasswordRequest,
    ResetPasswordResponse,
    VerifyResetTokenResponse,
)


router = APIRouter(prefix="/api/auth", tags=["password-reset"])


@router.post(
    "/forgot-password",
    response_model=ForgotPasswordResponse,
    summary="Request a password reset link",
)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    db: DBSession = Depends(get_db),
    notifier: NotificationSender = Depends(get_notifier),
):
    """
    Always answers with the same message whether or not the address
    belongs to an account.

    Raises:
        400: Missing or malformed email
        429: Requested again within the resend interval
        500: The reset email could not be delivered
    """
    await service.request_password_reset(
        db,
        notifier,
        body.email,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
    )
    return ForgotPasswordResponse(message=service.GENERIC_RESPONSE)


@router.post(
    "/reset-password",
    response_model=ResetPasswordResponse,
    summary="Reset password with a token",
)
async def reset_password(
    body: ResetPasswordRequest,
    db: DBSession = Depends(get_db),
):
    """
    Raises:
        400: Missing input, weak password, or invalid/expired token
    """
    await service.reset_password(db, body.token, body.password)
    return ResetPasswordResponse(message="Password has been reset successfully")


@router.get(
    "/verify-reset-token/{token}",
    response_model=VerifyResetTokenResponse,
    summary="Check whether a reset token is usable",
)
async def verify_reset_token(
    token: str,
    db: DBSession = Depends(get_db),
):
    record = await service.verify_reset_token(db, token)
    return VerifyResetTokenResponse(
        valid=True,
        email=record.email,
        expires_at=record.expires_at,
    )
