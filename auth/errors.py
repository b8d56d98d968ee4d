"""
Auth error taxonomy.

Every flow-level failure is an ``AuthError`` subclass carrying the HTTP
status it maps to.  ``api.handlers`` turns them into the JSON envelope
``{"success": false, "message": ...}`` at the request boundary.

``InvalidCredentials`` and ``TokenInvalidOrExpired`` deliberately cover
more than one cause (unknown user / wrong password, unknown / expired
token) so that responses cannot be used to enumerate accounts or tokens.
"""

from __future__ import annotations

from typing import Optional


class AuthError(Exception):
    status_code: int = 500
    default_message: str = "Server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(AuthError):
    status_code = 400
    default_message = "Bad request"


class DuplicateEmail(AuthError):
    status_code = 400
    default_message = "User already exists with this email"


class InvalidCredentials(AuthError):
    status_code = 401
    default_message = "Invalid credentials"


class TokenInvalidOrExpired(AuthError):
    status_code = 400
    default_message = "Invalid or expired token"


class Unauthenticated(AuthError):
    status_code = 401
    default_message = "Not authorized"


class EmailNotVerified(AuthError):
    status_code = 403
    default_message = "Please verify your email to access this resource"


class AlreadyVerified(AuthError):
    status_code = 400
    default_message = "Email is already verified"


class UserNotFound(AuthError):
    status_code = 404
    default_message = "No user found with this email"


class EmailDispatchFailed(AuthError):
    status_code = 500
    default_message = "Email could not be sent"
