"""Pytest configuration and fixtures."""

import asyncio
import os
import re

# Set test environment before application modules are imported.
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("FRONTEND_URL", "http://app.test")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from auth.jwt import SessionTokenIssuer
from auth.service import AuthService
from config.settings import Settings
from database.session import build_engine, build_session_factory, create_tables
from database.todo_store import InMemoryTodoStore
from database.user_store import InMemoryUserStore, SqlUserStore
from notifications.base import DispatchError, NotificationDispatcher

_LINK_RE = re.compile(r"/(verify-email|reset-password)/([0-9a-f]+)")


class FakeDispatcher(NotificationDispatcher):
    """Records sent emails; can be told to fail or to hang."""

    def __init__(self) -> None:
        self.sent = []
        self.fail = False
        self.delay = 0.0

    async def send(self, to, subject, html_body):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise DispatchError("smtp down")
        self.sent.append({"to": to, "subject": subject, "html": html_body})

    def last_token(self, kind: str) -> str:
        """Raw token from the most recent ``verify-email`` / ``reset-password`` link."""
        for message in reversed(self.sent):
            match = _LINK_RE.search(message["html"])
            if match and match.group(1) == kind:
                return match.group(2)
        raise AssertionError(f"no {kind} email sent")


@pytest.fixture
def settings():
    return Settings(
        jwt_secret="test-secret",
        storage_backend="memory",
        bcrypt_rounds=4,
        frontend_url="http://app.test",
        email_dispatch_timeout_seconds=0.2,
    )


@pytest.fixture
def user_store():
    return InMemoryUserStore()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def session_tokens(settings):
    return SessionTokenIssuer(settings.jwt_secret, settings.jwt_expiry_seconds)


@pytest.fixture
def service(user_store, session_tokens, dispatcher, settings):
    return AuthService(
        store=user_store,
        session_tokens=session_tokens,
        dispatcher=dispatcher,
        settings=settings,
    )


@pytest.fixture
def app(settings, user_store, dispatcher):
    from main import create_app

    return create_app(
        settings,
        user_store=user_store,
        todo_store=InMemoryTodoStore(),
        dispatcher=dispatcher,
    )


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest_asyncio.fixture(params=["memory", "sql"])
async def backend_store(request, tmp_path):
    """A credential store per backend; the SQL one is a temp SQLite file."""
    if request.param == "memory":
        yield InMemoryUserStore()
        return
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path}/users.db")
    await create_tables(engine)
    yield SqlUserStore(build_session_factory(engine))
    await engine.dispose()


@pytest.fixture
def backend_service(backend_store, session_tokens, dispatcher, settings):
    return AuthService(
        store=backend_store,
        session_tokens=session_tokens,
        dispatcher=dispatcher,
        settings=settings,
    )
