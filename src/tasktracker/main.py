"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Configuration is loaded once and passed down explicitly:
Settings → store factory, Settings → TokenService, and the services are
built here and parked on app.state for the route dependencies to pick up.

Lifespan manages startup/shutdown. Startup refuses to run without a JWT
signing secret; shutdown closes the store (disposes the connection pool).
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tasktracker import __version__
from tasktracker.api import api_router
from tasktracker.api.errors import register_error_handlers
from tasktracker.auth.jwt import TokenService
from tasktracker.config import Settings, get_settings
from tasktracker.db.engine import create_engine_from_settings
from tasktracker.db.store import DocumentStore, MemoryDocumentStore, SqlDocumentStore
from tasktracker.middleware.request_id import RequestIdMiddleware
from tasktracker.middleware.security import SecurityHeadersMiddleware
from tasktracker.services.task_service import TaskRepository
from tasktracker.services.user_service import CredentialStore

logger = structlog.get_logger()


def create_store(settings: Settings) -> DocumentStore:
    """Pick the document store backend from settings."""
    if settings.store_backend == "memory":
        return MemoryDocumentStore()
    return SqlDocumentStore(create_engine_from_settings(settings))


def create_token_service(settings: Settings) -> Optional[TokenService]:
    """TokenService, or None when no secret is configured (the gate then fails closed)."""
    if not settings.jwt_secret:
        logger.warning("tasktracker.jwt_secret_missing")
        return None
    return TokenService(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl=timedelta(hours=settings.token_expire_hours),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` at shutdown.
    """
    settings: Settings = app.state.settings
    settings.require_jwt_secret()
    logger.info(
        "tasktracker.starting",
        version=__version__,
        environment=settings.environment,
        store=settings.store_backend,
        port=settings.port,
    )

    yield

    logger.info("tasktracker.shutdown")
    await app.state.store.close()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or get_settings()
    store = store or create_store(settings)

    app = FastAPI(
        title="Task Tracker",
        description="Multi-user task tracking API with JWT authentication",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.token_service = create_token_service(settings)
    app.state.credentials = CredentialStore(store, bcrypt_rounds=settings.bcrypt_rounds)
    app.state.tasks = TaskRepository(store)

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    register_error_handlers(app)
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: tasktracker.main:app)
app = create_app()
