"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

import secrets
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as aioredis
import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.errors import PyMongoError
from starlette.middleware.sessions import SessionMiddleware

from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.resend import ResendProvider
from infrastructure.http_client import HttpClient
from infrastructure.limiter import build_limiter
from infrastructure.mongo import MongoConnection
from routes.admin_routes import router as admin_router
from routes.api_key_routes import build_router as build_api_key_router
from routes.download_routes import router as download_router
from routes.health_routes import router as health_router
from routes.public_api_routes import router as public_api_router
from shared.logging import get_logger, setup_logging

log = get_logger(__name__)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging, env=settings.env)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            environment=settings.env,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        app.state.settings = settings

        mongo = MongoConnection(settings.db)
        app.state.mongo = mongo
        try:
            await mongo.get_db()
        except PyMongoError as e:
            # Not fatal: the first request that needs the store tries again
            log.error("mongodb_startup_connect_failed", error=str(e))

        # Redis is optional; without it the per-IP limiter counts in memory
        redis_client = None
        if settings.redis.redis_uri:
            redis_client = aioredis.from_url(
                settings.redis.redis_uri,
                encoding="utf-8",
                decode_responses=True,
            )
        app.state.redis = redis_client

        email_http = HttpClient(timeout=settings.email.email_timeout_seconds)
        app.state.email_provider = ResendProvider(
            settings.email,
            email_http,
            challenge_ttl_minutes=settings.api_keys.challenge_ttl_seconds // 60,
        )

        log.info("app_started", app_name=settings.app_name, env=settings.env)
        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await email_http.aclose()
        await mongo.close()
        if redis_client is not None:
            await redis_client.aclose()
        log.info("app_stopped")

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=None if settings.is_production else settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    limiter = build_limiter(settings)
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.secret_key or secrets.token_urlsafe(32),
        session_cookie=settings.session_cookie,
        max_age=settings.session_max_age_seconds,
        same_site="lax",
        https_only=settings.is_production,
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(
        build_api_key_router(limiter, settings.api_keys.request_limit)
    )
    app.include_router(public_api_router)
    app.include_router(download_router)
    app.include_router(admin_router)

    return app
