"""
FastAPI dependencies for authentication.

Provides ``get_auth_service``, ``get_current_user`` and the stricter
``require_verified_user``.  Collaborators are built once by ``create_app``
and live on ``app.state``.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from auth.errors import EmailNotVerified, Unauthenticated
from auth.jwt import InvalidToken
from auth.service import AuthService
from database.models import User

# auto_error=False so a missing header goes through our own error envelope.
_bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Resolve the Bearer token to a ``User``.

    Missing header, bad or expired token, and a user id that no longer
    exists all raise ``Unauthenticated``.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Not authorized, no token")

    try:
        user_id = service.session_tokens.verify(credentials.credentials)
    except InvalidToken:
        raise Unauthenticated("Not authorized, token failed") from None

    user = await service.store.find_by_id(user_id)
    if user is None:
        raise Unauthenticated("Not authorized, user not found")
    return user


async def require_verified_user(user: User = Depends(get_current_user)) -> User:
    """Like ``get_current_user`` but rejects accounts with unverified email."""
    if not user.is_email_verified:
        raise EmailNotVerified()
    return user
