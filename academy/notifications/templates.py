"""
Email content for the invitation and password-reset workflows.

Each renderer returns an ``EmailContent`` with subject, plain-text body
and HTML body. Values interpolated into HTML are escaped.
"""

from datetime import datetime
from html import escape
from typing import Dict, Optional

from pydantic import BaseModel

from academy.auth.roles import Role
from academy.config import settings


PRIMARY_COLOR = "#4f46e5"


class EmailContent(BaseModel):
    subject: str
    text: str
    html: str


def format_role_name(role: Role) -> str:
    return Role(role).value.replace("_", " ").title()


def _format_expiry(expires_at: datetime) -> str:
    return expires_at.strftime("%A, %B %d, %Y at %H:%M UTC")


def _layout(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{escape(title)}</title></head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; color: #333;">
  <h2 style="color: {PRIMARY_COLOR};">{escape(title)}</h2>
{body}
  <p style="color: #666; font-size: 13px;">{escape(settings.ORGANIZATION_NAME)}</p>
</body>
</html>"""


def _button(url: str, label: str) -> str:
    return (
        f'  <p style="text-align: center; margin: 30px 0;">'
        f'<a href="{escape(url)}" style="background: {PRIMARY_COLOR}; color: white; '
        f'padding: 12px 30px; text-decoration: none; border-radius: 6px; display: inline-block;">'
        f"{escape(label)}</a></p>\n"
        f'  <p style="color: #666; font-size: 14px;">Or copy this link: {escape(url)}</p>'
    )


def invitation_email(
    role: Role,
    invited_by: Dict[str, str],
    invitation_link: str,
    expires_at: datetime,
) -> EmailContent:
    org = settings.ORGANIZATION_NAME
    role_name = format_role_name(role)
    inviter = invited_by.get("name") or invited_by.get("email", "")
    expiry = _format_expiry(expires_at)

    text = f"""You're invited to join {org}

{inviter} has invited you to join {org} as a {role_name}.

Accept the invitation and create your account here:
{invitation_link}

This invitation expires on {expiry}.

If you weren't expecting this invitation, you can ignore this email."""

    html = _layout(
        f"You're invited to join {org}",
        f"  <p>{escape(inviter)} has invited you to join {escape(org)} as a "
        f"<strong>{escape(role_name)}</strong>.</p>\n"
        + _button(invitation_link, "Accept Invitation")
        + f"\n  <p style=\"color: #666; font-size: 14px;\">This invitation expires on {escape(expiry)}.</p>",
    )

    return EmailContent(
        subject=f"You're invited to join {org} as a {role_name}",
        text=text,
        html=html,
    )


def welcome_email(name: str, username: str, role: Role) -> EmailContent:
    org = settings.ORGANIZATION_NAME
    role_name = format_role_name(role)
    sign_in_url = f"{settings.FRONTEND_URL}/signin"

    text = f"""Welcome to {org}, {name}!

Your account has been created.

Username: {username}
Role: {role_name}

Sign in at {sign_in_url}"""

    html = _layout(
        f"Welcome to {org}, {name}!",
        f"  <p>Your account has been created.</p>\n"
        f"  <p>Username: <strong>{escape(username)}</strong><br>"
        f"Role: <strong>{escape(role_name)}</strong></p>\n"
        + _button(sign_in_url, "Sign In"),
    )

    return EmailContent(subject=f"Welcome to {org}", text=text, html=html)


def password_reset_email(
    name: str,
    reset_link: str,
    expires_at: datetime,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> EmailContent:
    org = settings.ORGANIZATION_NAME
    expiry = _format_expiry(expires_at)
    origin = ", ".join(v for v in (ip_address, user_agent) if v) or "unknown"

    text = f"""Hello {name},

We received a request to reset the password for your {org} account.

Reset your password here:
{reset_link}

This link expires on {expiry} and can only be used once.

Request origin: {origin}

If you did not request a password reset, you can ignore this email."""

    html = _layout(
        "Reset your password",
        f"  <p>Hello {escape(name)},</p>\n"
        f"  <p>We received a request to reset the password for your {escape(org)} account.</p>\n"
        + _button(reset_link, "Reset Password")
        + f"\n  <p style=\"color: #666; font-size: 14px;\">This link expires on {escape(expiry)} "
        f"and can only be used once.</p>\n"
        f"  <p style=\"color: #999; font-size: 12px;\">Request origin: {escape(origin)}</p>",
    )

    return EmailContent(subject=f"Reset your {org} password", text=text, html=html)


def configuration_test_email() -> EmailContent:
    org = settings.ORGANIZATION_NAME
    return EmailContent(
        subject=f"{org} email configuration test",
        text=f"This is a test email from {org}. Email delivery is working.",
        html=_layout("Email configuration test", "  <p>Email delivery is working.</p>"),
    )
