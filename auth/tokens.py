"""
Side-channel tokens for email verification and password reset.

Only ``sha256(raw_token)`` and an absolute expiry are stored on the user;
the raw token exists solely in the outbound email and the single request
that redeems it.  Lookup is by hash, so the raw token is the only thing
needed to redeem it.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, Tuple

from auth.errors import TokenInvalidOrExpired

if TYPE_CHECKING:
    from database.models import User
    from database.user_store import UserStore

logger = logging.getLogger(__name__)

_TOKEN_BYTES = 32


class TokenPurpose(str, Enum):
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"

    @property
    def fields(self) -> Tuple[str, str]:
        """(hash attribute, expiry attribute) on ``User``."""
        if self is TokenPurpose.EMAIL_VERIFICATION:
            return "email_verification_token_hash", "email_verification_expires_at"
        return "reset_password_token_hash", "reset_password_expires_at"


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Some backends (SQLite) hand back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SideChannelTokens:
    def __init__(self, store: "UserStore") -> None:
        self._store = store

    async def issue(self, user: "User", purpose: TokenPurpose, ttl: timedelta) -> str:
        """
        Generate a raw token, store its hash and expiry on ``user`` and
        persist.  Any earlier token for the same purpose is overwritten.
        """
        raw_token = secrets.token_hex(_TOKEN_BYTES)
        hash_field, expiry_field = purpose.fields
        await self._store.update(
            user,
            **{
                hash_field: hash_token(raw_token),
                expiry_field: datetime.now(timezone.utc) + ttl,
            },
        )
        logger.debug("Issued %s token for user %s", purpose.value, user.user_id)
        return raw_token

    async def consume(self, raw_token: str, purpose: TokenPurpose) -> "User":
        """
        Redeem a raw token.  Unknown and expired tokens raise the same
        ``TokenInvalidOrExpired``; a matched pair is cleared either way.
        """
        if not raw_token:
            raise TokenInvalidOrExpired()

        claimed = await self._store.claim_token(purpose, hash_token(raw_token))
        if claimed is None:
            raise TokenInvalidOrExpired()

        user, expires_at = claimed
        expires_at = as_utc(expires_at)
        if expires_at is None or expires_at <= datetime.now(timezone.utc):
            logger.debug("Expired %s token for user %s", purpose.value, user.user_id)
            raise TokenInvalidOrExpired()
        return user

    async def clear(self, user: "User", purpose: TokenPurpose) -> None:
        hash_field, expiry_field = purpose.fields
        await self._store.update(user, **{hash_field: None, expiry_field: None})
