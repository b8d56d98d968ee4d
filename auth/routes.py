"""
Auth API routes — signup, login, email verification, password reset.

Route prefix: /api/auth
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.dependencies import get_auth_service, get_current_user
from auth.service import AuthService
from database.models import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


# ── Request / response schemas ─────────────────────────────────────────


# bcrypt rejects input longer than 72 bytes.
MAX_PASSWORD_BYTES = 72


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class LoginRequest(BaseModel):
    # Presence is checked by the service so the message matches the API contract.
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=6, max_length=72)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class UserSummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    email: str
    is_email_verified: bool
    created_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    token: Optional[str] = None
    user: Optional[UserSummary] = None


def _summary(user: User, *, with_created_at: bool = False) -> UserSummary:
    return UserSummary(
        id=str(user.user_id),
        name=user.name,
        email=user.email,
        is_email_verified=bool(user.is_email_verified),
        created_at=user.created_at if with_created_at else None,
    )


_RESPONSE_OPTS = dict(response_model=AuthResponse, response_model_exclude_none=True)


# ── Endpoints ──────────────────────────────────────────────────────────


@router.post("/signup", status_code=status.HTTP_201_CREATED, **_RESPONSE_OPTS)
async def signup(
    req: SignupRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Register a new user and send the verification email."""
    result = await service.signup(req.name, req.email, req.password)
    logger.info("Registered user %s (%s)", req.name, result.user.user_id)
    return AuthResponse(message=result.message, token=result.token)


@router.post("/login", **_RESPONSE_OPTS)
async def login(
    req: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Login with email + password."""
    user, token = await service.login(req.email, req.password)
    return AuthResponse(token=token, user=_summary(user))


@router.get("/verify-email/{token}", **_RESPONSE_OPTS)
async def verify_email(
    token: str,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    await service.verify_email(token)
    return AuthResponse(message="Email verified successfully")


@router.post("/resend-verification", **_RESPONSE_OPTS)
async def resend_verification(
    user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    await service.resend_verification(user)
    return AuthResponse(message="Verification email sent")


@router.post("/forgot-password", **_RESPONSE_OPTS)
async def forgot_password(
    req: ForgotPasswordRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    await service.forgot_password(req.email)
    return AuthResponse(message="Password reset email sent")


@router.put("/reset-password/{token}", **_RESPONSE_OPTS)
async def reset_password(
    token: str,
    req: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    _, session_token = await service.reset_password(token, req.password)
    return AuthResponse(message="Password reset successful", token=session_token)


@router.get("/me", **_RESPONSE_OPTS)
async def me(user: User = Depends(get_current_user)) -> AuthResponse:
    """Profile of the authenticated user."""
    return AuthResponse(user=_summary(user, with_created_at=True))
