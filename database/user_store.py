"""
Credential store — user records behind an injectable interface.

``InMemoryUserStore`` keeps detached ``User`` instances in a dict (tests,
demos, ``STORAGE_BACKEND=memory``).  ``SqlUserStore`` persists them with
one async SQLAlchemy session per operation and relies on the database for
single-row atomicity.

Flows write through ``update`` (only the named columns) and redeem
side-channel tokens through ``claim_token``, which clears the pair in the
same statement that matches it, so a token can be claimed at most once.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auth.errors import DuplicateEmail
from auth.password import hash_password, verify_password
from auth.tokens import TokenPurpose
from database.models import User

logger = logging.getLogger(__name__)

# (user whose pair was cleared, expiry the pair carried)
ClaimedToken = Tuple[User, Optional[datetime]]


def normalize_email(email: str, case_sensitive: bool = False) -> str:
    email = (email or "").strip()
    return email if case_sensitive else email.lower()


def _to_uuid(value: str | uuid.UUID) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class UserStore(ABC):
    """Abstract credential store."""

    def __init__(self, case_sensitive_emails: bool = False) -> None:
        self.case_sensitive_emails = case_sensitive_emails

    def normalize(self, email: str) -> str:
        return normalize_email(email, self.case_sensitive_emails)

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    async def find_by_id(self, user_id: str | uuid.UUID) -> Optional[User]:
        ...

    @abstractmethod
    async def find_by_token_hash(self, purpose: TokenPurpose, token_hash: str) -> Optional[User]:
        ...

    @abstractmethod
    async def claim_token(self, purpose: TokenPurpose, token_hash: str) -> Optional[ClaimedToken]:
        """
        Atomically clear the ``purpose`` pair whose hash is ``token_hash``.

        Returns the owning user and the expiry the pair carried, or ``None``
        when no pair matches (never issued, superseded, or already claimed).
        Expiry is the caller's decision; the pair is cleared either way.
        """
        ...

    @abstractmethod
    async def save(self, user: User) -> None:
        ...

    @abstractmethod
    async def _write(self, user: User, values: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def _insert(self, user: User) -> None:
        """Insert a new record; raise ``DuplicateEmail`` on email conflict."""
        ...

    async def update(self, user: User, **values: Any) -> None:
        """Set ``values`` on ``user`` and persist only those columns."""
        for field, value in values.items():
            setattr(user, field, value)
        await self._write(user, values)

    async def create(self, name: str, email: str, raw_password: str) -> User:
        """Create an unverified user with a bcrypt-hashed password."""
        user = User(
            user_id=uuid.uuid4(),
            name=name,
            email=self.normalize(email),
            password_hash=hash_password(raw_password),
            is_email_verified=False,
            created_at=datetime.now(timezone.utc),
        )
        await self._insert(user)
        logger.info("Created user %s (%s)", user.user_id, user.email)
        return user

    def match_password(self, user: User, candidate: str) -> bool:
        return verify_password(candidate, user.password_hash)


class InMemoryUserStore(UserStore):
    def __init__(self, case_sensitive_emails: bool = False) -> None:
        super().__init__(case_sensitive_emails)
        self._users: Dict[uuid.UUID, User] = {}

    async def find_by_email(self, email: str) -> Optional[User]:
        wanted = self.normalize(email)
        for user in self._users.values():
            if user.email == wanted:
                return user
        return None

    async def find_by_id(self, user_id: str | uuid.UUID) -> Optional[User]:
        uid = _to_uuid(user_id)
        return self._users.get(uid) if uid else None

    async def find_by_token_hash(self, purpose: TokenPurpose, token_hash: str) -> Optional[User]:
        hash_field, _ = purpose.fields
        for user in self._users.values():
            if getattr(user, hash_field) == token_hash:
                return user
        return None

    async def claim_token(self, purpose: TokenPurpose, token_hash: str) -> Optional[ClaimedToken]:
        # No await between match and clear.
        hash_field, expiry_field = purpose.fields
        for user in self._users.values():
            if token_hash and getattr(user, hash_field) == token_hash:
                expires_at = getattr(user, expiry_field)
                setattr(user, hash_field, None)
                setattr(user, expiry_field, None)
                return user, expires_at
        return None

    async def save(self, user: User) -> None:
        self._users[user.user_id] = user

    async def _write(self, user: User, values: Dict[str, Any]) -> None:
        stored = self._users.get(user.user_id)
        if stored is None:
            self._users[user.user_id] = user
        elif stored is not user:
            for field, value in values.items():
                setattr(stored, field, value)

    async def _insert(self, user: User) -> None:
        if await self.find_by_email(user.email) is not None:
            raise DuplicateEmail()
        self._users[user.user_id] = user

    def __len__(self) -> int:
        return len(self._users)


class SqlUserStore(UserStore):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        case_sensitive_emails: bool = False,
    ) -> None:
        super().__init__(case_sensitive_emails)
        self._session_factory = session_factory

    async def _first(self, stmt) -> Optional[User]:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def find_by_email(self, email: str) -> Optional[User]:
        return await self._first(select(User).where(User.email == self.normalize(email)))

    async def find_by_id(self, user_id: str | uuid.UUID) -> Optional[User]:
        uid = _to_uuid(user_id)
        if uid is None:
            return None
        return await self._first(select(User).where(User.user_id == uid))

    async def find_by_token_hash(self, purpose: TokenPurpose, token_hash: str) -> Optional[User]:
        hash_field, _ = purpose.fields
        column = getattr(User, hash_field)
        return await self._first(select(User).where(column == token_hash))

    async def claim_token(self, purpose: TokenPurpose, token_hash: str) -> Optional[ClaimedToken]:
        if not token_hash:
            return None
        hash_field, expiry_field = purpose.fields
        hash_column = getattr(User, hash_field)
        expiry_column = getattr(User, expiry_field)

        # The conditional UPDATE is the claim: of two concurrent redemptions
        # only one sees the hash still set.  RETURNING reads the expiry
        # before the second statement nulls it.
        claim = (
            update(User)
            .where(hash_column == token_hash)
            .values({hash_field: None})
            .returning(User.user_id, expiry_column)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            try:
                row = (await session.execute(claim)).first()
                if row is None:
                    await session.rollback()
                    return None
                user_id, expires_at = row[0], row[1]
                await session.execute(
                    update(User)
                    .where(User.user_id == user_id)
                    .values({expiry_field: None})
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        user = await self.find_by_id(user_id)
        if user is None:
            return None
        return user, expires_at

    async def save(self, user: User) -> None:
        async with self._session_factory() as session:
            try:
                await session.merge(user)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _write(self, user: User, values: Dict[str, Any]) -> None:
        if not values:
            return
        async with self._session_factory() as session:
            try:
                await session.execute(
                    update(User)
                    .where(User.user_id == user.user_id)
                    .values(values)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _insert(self, user: User) -> None:
        async with self._session_factory() as session:
            session.add(user)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateEmail() from exc
