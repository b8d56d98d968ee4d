"""
Auth flows — signup, login, email verification, password reset.

Each method is request-scoped: it reads and writes through the injected
``UserStore`` and keeps no state between calls.

Email delivery policy:
  • signup soft-fails (account + session token are still returned)
  • resend-verification and forgot-password fail hard
In all three cases a failed dispatch clears the token that was just
issued, so no hash is left behind without a deliverable link.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Tuple

from auth.errors import (
    AlreadyVerified,
    BadRequest,
    DuplicateEmail,
    EmailDispatchFailed,
    InvalidCredentials,
    TokenInvalidOrExpired,
    UserNotFound,
)
from auth.jwt import SessionTokenIssuer
from auth.password import hash_password
from auth.tokens import SideChannelTokens, TokenPurpose
from config.settings import Settings
from database.models import User
from database.user_store import UserStore
from notifications import templates
from notifications.base import DispatchError, NotificationDispatcher

logger = logging.getLogger(__name__)

SIGNUP_OK_MESSAGE = "User registered successfully. Please check your email to verify your account."
SIGNUP_NO_EMAIL_MESSAGE = "User registered successfully. Email verification could not be sent."


@dataclass
class SignupResult:
    user: User
    token: str
    message: str
    email_sent: bool


class AuthService:
    def __init__(
        self,
        store: UserStore,
        session_tokens: SessionTokenIssuer,
        dispatcher: NotificationDispatcher,
        settings: Settings,
    ) -> None:
        self.store = store
        self.session_tokens = session_tokens
        self.side_tokens = SideChannelTokens(store)
        self.dispatcher = dispatcher
        self.settings = settings

    # ── Helpers ─────────────────────────────────────────────────────────

    def _link(self, path: str, raw_token: str) -> str:
        return f"{self.settings.frontend_url.rstrip('/')}/{path}/{raw_token}"

    async def _dispatch(self, to: str, subject: str, html_body: str) -> None:
        """Send with a hard timeout; a slow mail server counts as a failure."""
        try:
            await asyncio.wait_for(
                self.dispatcher.send(to, subject, html_body),
                timeout=self.settings.email_dispatch_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise DispatchError("Email dispatch timed out") from exc

    async def _send_verification(self, user: User, *, new_account: bool) -> None:
        ttl = self.settings.email_verification_ttl_seconds
        raw = await self.side_tokens.issue(
            user, TokenPurpose.EMAIL_VERIFICATION, timedelta(seconds=ttl)
        )
        html = templates.verification_email(
            user.name,
            self._link("verify-email", raw),
            expires_in=templates.describe_ttl(ttl),
            new_account=new_account,
        )
        try:
            await self._dispatch(user.email, templates.VERIFICATION_SUBJECT, html)
        except DispatchError:
            await self.side_tokens.clear(user, TokenPurpose.EMAIL_VERIFICATION)
            raise

    # ── Flows ───────────────────────────────────────────────────────────

    async def signup(self, name: str, email: str, password: str) -> SignupResult:
        if await self.store.find_by_email(email) is not None:
            raise DuplicateEmail()

        user = await self.store.create(name, email, password)

        email_sent = True
        try:
            await self._send_verification(user, new_account=True)
        except DispatchError as exc:
            logger.warning("Verification email to %s not sent: %s", user.email, exc)
            email_sent = False

        return SignupResult(
            user=user,
            token=self.session_tokens.issue(str(user.user_id)),
            message=SIGNUP_OK_MESSAGE if email_sent else SIGNUP_NO_EMAIL_MESSAGE,
            email_sent=email_sent,
        )

    async def login(self, email: Optional[str], password: Optional[str]) -> Tuple[User, str]:
        if not email or not password:
            raise BadRequest("Please provide email and password")

        user = await self.store.find_by_email(email)
        # Same error for unknown email and wrong password.
        if user is None or not self.store.match_password(user, password):
            raise InvalidCredentials()

        logger.info("Login: %s (%s)", user.name, user.user_id)
        return user, self.session_tokens.issue(str(user.user_id))

    async def verify_email(self, raw_token: str) -> User:
        try:
            user = await self.side_tokens.consume(raw_token, TokenPurpose.EMAIL_VERIFICATION)
        except TokenInvalidOrExpired:
            raise TokenInvalidOrExpired("Invalid or expired verification token") from None

        await self.store.update(user, is_email_verified=True)
        logger.info("Email verified: %s", user.user_id)
        return user

    async def resend_verification(self, user: User) -> None:
        if user.is_email_verified:
            raise AlreadyVerified()
        try:
            await self._send_verification(user, new_account=False)
        except DispatchError as exc:
            logger.error("Verification resend to %s failed: %s", user.email, exc)
            raise EmailDispatchFailed() from exc

    async def forgot_password(self, email: Optional[str]) -> None:
        if not email:
            raise BadRequest("Please provide an email")

        user = await self.store.find_by_email(email)
        if user is None:
            raise UserNotFound()

        ttl = self.settings.password_reset_ttl_seconds
        raw = await self.side_tokens.issue(
            user, TokenPurpose.PASSWORD_RESET, timedelta(seconds=ttl)
        )
        html = templates.password_reset_email(
            user.name,
            self._link("reset-password", raw),
            expires_in=templates.describe_ttl(ttl),
        )
        try:
            await self._dispatch(user.email, templates.PASSWORD_RESET_SUBJECT, html)
        except DispatchError as exc:
            logger.error("Reset email to %s failed: %s", user.email, exc)
            await self.side_tokens.clear(user, TokenPurpose.PASSWORD_RESET)
            raise EmailDispatchFailed() from exc

    async def reset_password(self, raw_token: str, new_password: str) -> Tuple[User, str]:
        new_hash = hash_password(new_password)
        try:
            user = await self.side_tokens.consume(raw_token, TokenPurpose.PASSWORD_RESET)
        except TokenInvalidOrExpired:
            raise TokenInvalidOrExpired("Invalid or expired reset token") from None

        await self.store.update(user, password_hash=new_hash)
        logger.info("Password reset for %s", user.user_id)
        return user, self.session_tokens.issue(str(user.user_id))
