#!/usr/bin/env python3
"""
Inactive API key sweep

Deletes every verified API key that has not been used for longer than the
inactivity threshold and emails its owner. The gate expires such keys lazily
on their next call; this runner catches the ones that are never used again.
Intended for a daily cron job.
"""

import asyncio
import sys

from config import AppSettings
from infrastructure.email.resend import ResendProvider
from infrastructure.http_client import HttpClient
from infrastructure.mongo import MongoConnection
from repositories.credential_repository import CredentialRepository
from services.credential_service import CredentialService
from shared.logging import get_logger, setup_logging

log = get_logger("sweep_inactive_keys")


async def run_sweep(settings: AppSettings) -> int:
    mongo = MongoConnection(settings.db)
    async with HttpClient(timeout=settings.email.email_timeout_seconds) as http:
        try:
            db = await mongo.get_db()
            service = CredentialService(
                CredentialRepository(db[settings.db.credentials_collection]),
                ResendProvider(settings.email, http),
                settings.api_keys,
            )
            return await service.sweep_inactive()
        finally:
            await mongo.close()


def main():
    settings = AppSettings()
    setup_logging(settings.logging, env=settings.env)

    try:
        expired = asyncio.run(run_sweep(settings))
    except KeyboardInterrupt:
        log.warning("sweep_interrupted")
        sys.exit(130)
    except Exception as e:
        log.error("sweep_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)
    log.info("sweep_finished", expired=expired)


if __name__ == "__main__":
    main()
