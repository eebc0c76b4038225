"""
Academy Admin - Password Reset Request/Response Schemas
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /api/auth/forgot-password."""
    email: Optional[str] = Field(default=None, description="Account email address")


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/auth/reset-password."""
    token: Optional[str] = Field(default=None, description="Raw token from the reset link")
    password: Optional[str] = Field(default=None, description="New password")


class ForgotPasswordResponse(BaseModel):
    message: str


class ResetPasswordResponse(BaseModel):
    message: str
    success: bool = True


class VerifyResetTokenResponse(BaseModel):
    valid: bool
    email: str
    expires_at: datetime
