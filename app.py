"""
Application assembly.

create_app() takes every collaborator explicitly. build_app() wires them
from Vault and is the entry point for serving:

    uvicorn app:build_app --factory
"""

import logging
from contextlib import asynccontextmanager

import redis
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.base import success_response
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from api.notes import create_notes_router
from auth.api import create_auth_router
from auth.config import AuthConfig
from auth.google import GoogleIdentityVerifier
from auth.notifier import Notifier
from auth.rate_limiter import RateLimiter
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.service import AuthService
from auth.session import SessionManager
from clients.email_client import EmailGatewayClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    VaultError,
    get_database_url,
    get_email_config,
    get_google_client_id,
    get_jwt_secret,
    get_valkey_url,
)
from core.services.note_service import NoteService
from storage.factory import build_stores
from storage.sweeper import OTPSweeper

logger = logging.getLogger(__name__)


def create_app(
    auth_service: AuthService,
    note_service: NoteService,
    session_manager: SessionManager,
    sweeper: OTPSweeper | None = None,
    notifier: Notifier | None = None,
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """Build the FastAPI app around already-constructed services.

    cors_origins defaults to any origin. Sessions travel in the Authorization
    header, so credentials (cookies) are never allowed cross-origin.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if sweeper is not None:
            sweeper.start()
        yield
        if sweeper is not None:
            sweeper.stop()
        if notifier is not None:
            notifier.shutdown(wait=True)

    app = FastAPI(title="NoteTaker API", lifespan=lifespan)

    # Added last runs first: CORS answers preflights, then request IDs, then auth
    app.add_middleware(AuthMiddleware, session_manager=session_manager)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins if cors_origins is not None else ["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )

    register_error_handlers(app)

    app.include_router(create_auth_router(auth_service))
    app.include_router(create_notes_router(note_service))

    @app.get("/api/ping")
    async def ping():
        return success_response({"status": "ok", "message": "pong"}).model_dump(mode="json")

    @app.get("/health")
    async def health():
        return success_response({"status": "healthy"}).model_dump(mode="json")

    return app


def _optional_secret(name: str, getter):
    """Fetch an optional secret, returning None (with a warning) if unavailable."""
    try:
        return getter()
    except (VaultError, KeyError, ValueError) as e:
        logger.warning(f"{name} not configured ({e}) - feature disabled")
        return None


def build_app(config: AuthConfig | None = None) -> FastAPI:
    """
    Wire the production app from Vault secrets.

    The JWT secret is required. Database, Valkey, email gateway and Google
    client ID are optional: without them the app runs on in-memory storage,
    without OTP rate limiting, logging OTP codes instead of emailing them,
    and rejecting Google logins.
    """
    config = config or AuthConfig()

    session_manager = SessionManager(get_jwt_secret(), config)

    stores = build_stores(_optional_secret("Database URL", get_database_url))

    rate_limiter = None
    valkey_url = _optional_secret("Valkey URL", get_valkey_url)
    if valkey_url:
        try:
            rate_limiter = RateLimiter(ValkeyClient(valkey_url), config)
        except redis.RedisError as e:
            logger.warning(f"Valkey unreachable ({e}) - OTP rate limiting disabled")

    email_client = None
    email_config = _optional_secret("Email gateway", get_email_config)
    if email_config:
        email_client = EmailGatewayClient(**email_config)

    notifier = Notifier(config, email_client)

    auth_service = AuthService(
        config=config,
        users=stores.users,
        otps=stores.otps,
        session_manager=session_manager,
        notifier=notifier,
        google_verifier=GoogleIdentityVerifier(_optional_secret("Google client ID", get_google_client_id)),
        security_logger=SecurityLogger(stores.postgres),
        rate_limiter=rate_limiter,
    )

    return create_app(
        auth_service=auth_service,
        note_service=NoteService(stores.notes),
        session_manager=session_manager,
        sweeper=OTPSweeper(stores.otps, interval_seconds=config.otp_cleanup_interval_seconds),
        notifier=notifier,
        cors_origins=config.cors_origins,
    )
