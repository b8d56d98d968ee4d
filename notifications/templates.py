"""HTML bodies for auth emails."""

from __future__ import annotations

from html import escape

_BUTTON_STYLE = (
    "display: inline-block; padding: 10px 20px; background-color: #4F46E5; "
    "color: white; text-decoration: none; border-radius: 5px;"
)

VERIFICATION_SUBJECT = "Email Verification"
PASSWORD_RESET_SUBJECT = "Password Reset Request"


def describe_ttl(seconds: int) -> str:
    """600 -> "10 minutes", 86400 -> "24 hours"."""
    if seconds >= 3600 and seconds % 3600 == 0:
        hours = seconds // 3600
        return f"{hours} hour" + ("s" if hours != 1 else "")
    minutes = max(1, seconds // 60)
    return f"{minutes} minute" + ("s" if minutes != 1 else "")


def verification_email(
    name: str, url: str, *, expires_in: str = "24 hours", new_account: bool = True
) -> str:
    footer = (
        "<p>If you did not create an account, please ignore this email.</p>"
        if new_account
        else ""
    )
    return f"""
      <h1>Email Verification</h1>
      <p>Hi {escape(name)},</p>
      <p>Please click the link below to verify your email address:</p>
      <a href="{escape(url)}" style="{_BUTTON_STYLE}">Verify Email</a>
      <p>This link will expire in {expires_in}.</p>
      {footer}
    """


def password_reset_email(name: str, url: str, *, expires_in: str = "10 minutes") -> str:
    return f"""
      <h1>Password Reset Request</h1>
      <p>Hi {escape(name)},</p>
      <p>You requested a password reset. Click the link below to reset your password:</p>
      <a href="{escape(url)}" style="{_BUTTON_STYLE}">Reset Password</a>
      <p>This link will expire in {expires_in}.</p>
      <p>If you did not request this, please ignore this email.</p>
    """
