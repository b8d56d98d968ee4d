"""
To-do API with email/password auth — application entry point.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.handlers import register_exception_handlers
from api.middleware import register_middleware
from api.todos import router as todos_router
from auth.jwt import SessionTokenIssuer
from auth.routes import router as auth_router
from auth.service import AuthService
from config.settings import Settings, config
from database.session import build_session_factory, create_tables, get_engine
from database.todo_store import InMemoryTodoStore, SqlTodoStore, TodoStore
from database.user_store import InMemoryUserStore, SqlUserStore, UserStore
from notifications.base import NotificationDispatcher
from notifications.smtp import SmtpDispatcher
from utils.logging_utils import install_log_safety

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "asyncio", "aiosqlite"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
install_log_safety()
logger = logging.getLogger(__name__)


def create_app(
    settings: Settings = config,
    *,
    user_store: Optional[UserStore] = None,
    todo_store: Optional[TodoStore] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> FastAPI:
    """
    Build the application.

    Stores and dispatcher can be injected (tests); otherwise they are
    built from ``settings.storage_backend`` and the SMTP settings.
    Raises ``RuntimeError`` immediately if ``JWT_SECRET`` is not set.
    """
    session_tokens = SessionTokenIssuer(settings.jwt_secret, settings.jwt_expiry_seconds)

    engine = None
    if user_store is None or todo_store is None:
        if settings.storage_backend == "memory":
            user_store = user_store or InMemoryUserStore(settings.email_case_sensitive)
            todo_store = todo_store or InMemoryTodoStore()
        elif settings.storage_backend == "sql":
            engine = get_engine(settings.database_url)
            factory = build_session_factory(engine)
            user_store = user_store or SqlUserStore(factory, settings.email_case_sensitive)
            todo_store = todo_store or SqlTodoStore(factory)
        else:
            raise RuntimeError(f"Unknown STORAGE_BACKEND: {settings.storage_backend!r}")

    app = FastAPI(
        title="Todo API",
        version="1.0.0",
        description="To-do list with email/password authentication.",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_middleware(app)
    register_exception_handlers(app)

    app.state.settings = settings
    app.state.todo_store = todo_store
    app.state.auth_service = AuthService(
        store=user_store,
        session_tokens=session_tokens,
        dispatcher=dispatcher or SmtpDispatcher(settings),
        settings=settings,
    )

    # Routes
    app.include_router(auth_router, prefix="/api/auth")
    app.include_router(todos_router, prefix="/api/todos")

    @app.on_event("startup")
    async def on_startup():
        if engine is not None:
            logger.info("Ensuring database tables exist…")
            await create_tables(engine)
        if not settings.smtp_configured and dispatcher is None:
            logger.warning("SMTP is not configured — verification and reset emails will fail")
        logger.info("Application ready to accept requests (storage=%s).", settings.storage_backend)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
