"""
JWT-style session token creation and verification.

Tokens are base64-encoded JSON payloads signed with HMAC-SHA256.
They are stateless: nothing is stored server-side, so a token stays valid
until its ``exp`` regardless of later password changes.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from base64 import b64decode, b64encode


class InvalidToken(Exception):
    """Raised for any token that fails format, signature or expiry checks."""


class SessionTokenIssuer:
    def __init__(self, secret: str, ttl_seconds: int) -> None:
        if not secret:
            raise RuntimeError("JWT_SECRET is not configured; refusing to start")
        self._secret = secret.encode()
        self._ttl_seconds = ttl_seconds

    def _sign(self, raw: bytes) -> str:
        return hmac.new(self._secret, raw, hashlib.sha256).hexdigest()

    def issue(self, user_id: str) -> str:
        """Create a signed token containing ``user_id`` and expiry."""
        payload = {
            "user_id": str(user_id),
            "exp": int(time.time()) + self._ttl_seconds,
        }
        raw = json.dumps(payload).encode()
        return b64encode(raw).decode() + "." + self._sign(raw)

    def verify(self, token: str) -> str:
        """
        Verify token and return ``user_id``.

        Raises ``InvalidToken`` on malformed, tampered or expired tokens.
        The cause is not exposed.
        """
        try:
            encoded, sig = token.split(".", 1)
            raw = b64decode(encoded, validate=True)
            if not hmac.compare_digest(sig, self._sign(raw)):
                raise ValueError("bad signature")
            payload = json.loads(raw)
            if payload["exp"] <= time.time():
                raise ValueError("token expired")
            return str(payload["user_id"])
        except (ValueError, KeyError, TypeError) as exc:
            raise InvalidToken("Invalid or expired token") from exc
