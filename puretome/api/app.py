"""
FastAPI application for the PureTome platform.

This is the HTTP API the web frontend talks to. ``create_app`` wires the
storage, the email sender and the services together; tests call it with
in-memory storage and a recording email sender.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from puretome.api import admin, comments, memoirs, users
from puretome.api.errors import register_exception_handlers
from puretome.config import Settings, get_settings
from puretome.integrations.email import EmailService
from puretome.integrations.sentry import init_sentry
from puretome.services import (
    AccessGate,
    CommentService,
    InvitationManager,
    MemoirService,
    UserService,
)
from puretome.storage import LocalContentStorage, StorageProvider, create_storage

logger = logging.getLogger(__name__)


# =============================================================================
# App State
# =============================================================================


@dataclass
class AppState:
    """Everything routes need, built once per app."""

    settings: Settings
    storage: StorageProvider
    email_service: EmailService

    users: UserService
    gate: AccessGate
    memoirs: MemoirService
    invitations: InvitationManager
    comments: CommentService


def build_state(
    settings: Settings,
    storage: StorageProvider,
    email_service: EmailService,
) -> AppState:
    """Construct the services with their collaborators."""
    users_service = UserService(storage.metadata, storage.content, email_service, settings)
    gate = AccessGate(storage.metadata)

    return AppState(
        settings=settings,
        storage=storage,
        email_service=email_service,
        users=users_service,
        gate=gate,
        memoirs=MemoirService(storage.metadata, storage.content, gate, users_service),
        invitations=InvitationManager(
            storage.metadata, users_service, gate, email_service, settings
        ),
        comments=CommentService(storage.metadata, gate, users_service),
    )


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown hooks."""
    settings: Settings = app.state.settings

    if init_sentry(settings):
        logger.info("Sentry error tracking enabled")

    if not app.state.services.email_service.is_configured:
        logger.warning("Email delivery not configured - messages will only be logged")

    logger.info(f"PureTome API starting in {settings.environment} mode")

    yield

    logger.info("PureTome API shutting down")


# =============================================================================
# App Factory
# =============================================================================


def create_app(
    settings: Settings | None = None,
    storage: StorageProvider | None = None,
    email_service: EmailService | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    storage = storage or create_storage(settings)
    email_service = email_service or EmailService(settings)

    app = FastAPI(
        title="PureTome API",
        description="API for writing memoirs together",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.services = build_state(settings, storage, email_service)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Routers
    for module in (memoirs, users, comments, admin):
        app.include_router(module.router, prefix=settings.api_prefix)

    # Local uploads are served by the API itself
    if isinstance(storage.content, LocalContentStorage):
        app.mount(
            "/uploads",
            StaticFiles(directory=str(storage.content.base_path)),
            name="uploads",
        )

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app
