"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain async functions
used with FastAPI's Depends() system. Long-lived resources (the Mongo
connection, Redis, the email provider) live on app.state; repositories and
services are cheap per-request wrappers around them.
"""

from __future__ import annotations

from fastapi import Depends, Request
from pymongo.asynchronous.database import AsyncDatabase

from config import AppSettings
from errors import SessionRequiredError
from infrastructure.email.protocol import EmailProvider
from infrastructure.mongo import MongoConnection
from repositories.credential_repository import CredentialRepository
from repositories.measurement_repository import MeasurementRepository
from repositories.user_repository import UserRepository
from schemas.models.user import AdminUserDoc
from services.access_gate import AccessGate, ApiClient, GateStrategy
from services.admin_service import AdminService
from services.admin_session import SessionUserResolver
from services.credential_service import CredentialService
from services.rate_admission import RateAdmissionController


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_mongo(request: Request) -> MongoConnection:
    return request.app.state.mongo


async def get_db(mongo: MongoConnection = Depends(get_mongo)) -> AsyncDatabase:
    """Return the database handle, connecting on first use."""
    return await mongo.get_db()


async def get_redis(request: Request):
    """Return the async Redis client from app.state (may be None if not configured)."""
    return request.app.state.redis


def get_email_provider(request: Request) -> EmailProvider:
    return request.app.state.email_provider


async def get_credential_repository(
    db: AsyncDatabase = Depends(get_db),
    settings: AppSettings = Depends(get_settings),
) -> CredentialRepository:
    return CredentialRepository(db[settings.db.credentials_collection])


async def get_measurement_repository(
    db: AsyncDatabase = Depends(get_db),
    settings: AppSettings = Depends(get_settings),
) -> MeasurementRepository:
    return MeasurementRepository(db[settings.db.data_collection])


async def get_user_repository(
    db: AsyncDatabase = Depends(get_db),
    settings: AppSettings = Depends(get_settings),
) -> UserRepository:
    return UserRepository(db[settings.db.users_collection])


async def get_session_resolver(
    users: UserRepository = Depends(get_user_repository),
) -> SessionUserResolver:
    return SessionUserResolver(users)


async def get_credential_service(
    repo: CredentialRepository = Depends(get_credential_repository),
    email_provider: EmailProvider = Depends(get_email_provider),
    settings: AppSettings = Depends(get_settings),
) -> CredentialService:
    return CredentialService(repo, email_provider, settings.api_keys)


async def get_access_gate(
    repo: CredentialRepository = Depends(get_credential_repository),
    credential_service: CredentialService = Depends(get_credential_service),
    sessions: SessionUserResolver = Depends(get_session_resolver),
    settings: AppSettings = Depends(get_settings),
) -> AccessGate:
    api_keys = settings.api_keys
    return AccessGate(
        repo,
        credential_service,
        RateAdmissionController.from_settings(api_keys),
        strategy=GateStrategy(api_keys.gate_strategy),
        session_resolver=sessions,
        max_attempts=api_keys.admission_max_attempts,
    )


async def require_api_client(
    request: Request, gate: AccessGate = Depends(get_access_gate)
) -> ApiClient:
    """Gate a route behind an API key (or an admin session, per strategy)."""
    return await gate.authorize(request)


async def require_admin_user(
    request: Request,
    sessions: SessionUserResolver = Depends(get_session_resolver),
) -> AdminUserDoc:
    """Gate a route behind a signed-in admin user (session user_id in Users)."""
    user = await sessions.resolve(request)
    if user is None:
        raise SessionRequiredError()
    return user


async def get_admin_service(
    measurements: MeasurementRepository = Depends(get_measurement_repository),
    users: UserRepository = Depends(get_user_repository),
) -> AdminService:
    return AdminService(measurements, users)
