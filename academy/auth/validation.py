"""
Input normalization shared by the invitation and password-reset workflows.

Each helper raises ``ValidationError`` with a message fit for the caller.
"""

import re
from typing import Optional

from academy.auth.password import BCRYPT_MAX_BYTES, password_too_long
from academy.auth.roles import Role
from academy.errors import ValidationError


# Allows .local style hosts for development
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$")

USERNAME_MAX_LENGTH = 64
NAME_MAX_LENGTH = 255


def normalize_email(value: Optional[str]) -> str:
    """Trim, lowercase and syntactically check an email address."""
    email = (value or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")
    if len(email) > 255 or not EMAIL_PATTERN.match(email):
        raise ValidationError("Please provide a valid email address")
    return email


def parse_role(value: Optional[str]) -> Role:
    try:
        return Role((value or "").strip())
    except ValueError:
        raise ValidationError(
            "Invalid role specified",
            available_roles=[r.value for r in Role],
        )


def check_password(password: str, min_length: int) -> None:
    if len(password) < min_length:
        raise ValidationError(f"Password must be at least {min_length} characters long")
    if password_too_long(password):
        raise ValidationError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes long")


def normalize_username(value: Optional[str]) -> str:
    username = (value or "").strip()
    if not username:
        raise ValidationError("Username is required")
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValidationError(
            f"Username must be at most {USERNAME_MAX_LENGTH} characters long"
        )
    return username


def normalize_name(value: Optional[str]) -> str:
    name = (value or "").strip()
    if not name:
        raise ValidationError("Name is required")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"Name must be at most {NAME_MAX_LENGTH} characters long")
    return name
