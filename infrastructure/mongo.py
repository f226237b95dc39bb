"""
MongoDB connection handle and index bootstrap.

MongoConnection connects once and hands out the same database handle to every
caller. The first caller performs the connect (and index creation) under a
lock; concurrent callers wait for it. A failed attempt caches nothing, so the
next caller starts a fresh attempt.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from pymongo import ASCENDING, AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from config import DatabaseSettings
from shared.logging import get_logger

log = get_logger(__name__)


async def ensure_indexes(db: AsyncDatabase, settings: DatabaseSettings) -> None:
    """Create the indexes the credential, measurement and user collections rely on."""
    credentials = db[settings.credentials_collection]

    # One credential per normalized email
    await credentials.create_index(
        [("emailLower", ASCENDING)], unique=True, name="uniq_emailLower"
    )
    # Keys are unique once issued; pending records (no key yet) never collide
    await credentials.create_index(
        [("apiKey", ASCENDING)],
        unique=True,
        name="uniq_apiKey",
        partialFilterExpression={"apiKey": {"$type": "string"}},
    )
    await credentials.create_index([("lastCallAt", ASCENDING)], name="idx_lastCallAt")

    await db[settings.data_collection].create_index(
        [("point_number", ASCENDING)], name="idx_point_number"
    )

    await db[settings.users_collection].create_index(
        [("email", ASCENDING)], unique=True, name="uniq_user_email"
    )


class MongoConnection:
    def __init__(
        self,
        settings: DatabaseSettings,
        client_factory: Callable[..., Any] = AsyncMongoClient,
        retry_delay_seconds: float = 0.5,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory
        self._retry_delay = retry_delay_seconds
        self._client: Optional[Any] = None
        self._db: Optional[AsyncDatabase] = None
        self._lock = asyncio.Lock()

    async def get_db(self) -> AsyncDatabase:
        if self._db is not None:
            return self._db

        async with self._lock:
            if self._db is not None:
                return self._db

            attempts = max(1, self._settings.connect_retry_attempts)
            for attempt in range(1, attempts + 1):
                try:
                    self._db = await self._connect()
                    log.info(
                        "mongodb_connected",
                        db_name=self._settings.db_name,
                        attempt=attempt,
                    )
                    return self._db
                except PyMongoError as e:
                    log.warning(
                        "mongodb_connect_failed",
                        attempt=attempt,
                        max_attempts=attempts,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    if attempt == attempts:
                        raise
                    await asyncio.sleep(self._retry_delay * attempt)

    async def _connect(self) -> AsyncDatabase:
        client = self._client_factory(self._settings.mongodb_uri, tz_aware=True)
        try:
            await client.aconnect()
            db = client[self._settings.db_name]
            await ensure_indexes(db, self._settings)
        except PyMongoError:
            await client.close()
            raise
        self._client = client
        return db

    async def ping(self) -> None:
        db = await self.get_db()
        await db.client.admin.command("ping")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
        self._client = None
        self._db = None
