"""
Repository for the API credential collection.

All writes are single-document operations; the two uniqueness invariants
(emailLower, string apiKey) are enforced by the indexes created in
infrastructure.mongo.ensure_indexes, so DuplicateKeyError is allowed to
propagate to the service layer which owns the retry policy.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from pymongo.asynchronous.collection import AsyncCollection

from schemas.models.credential import ApiCredentialDoc, LastCall, RateState


class CredentialRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def find_by_api_key(self, api_key: str) -> Optional[ApiCredentialDoc]:
        doc = await self._col.find_one({"apiKey": api_key})
        return ApiCredentialDoc.from_mongo(doc)

    async def find_by_id(self, credential_id: ObjectId) -> Optional[ApiCredentialDoc]:
        doc = await self._col.find_one({"_id": credential_id})
        return ApiCredentialDoc.from_mongo(doc)

    async def find_by_email(self, email_lower: str) -> Optional[ApiCredentialDoc]:
        doc = await self._col.find_one({"emailLower": email_lower})
        return ApiCredentialDoc.from_mongo(doc)

    async def upsert_challenge(
        self,
        *,
        email: str,
        email_lower: str,
        code_hash: str,
        expires_at: datetime,
        now: datetime,
    ) -> None:
        """Create the credential if needed and replace any pending challenge."""
        await self._col.update_one(
            {"emailLower": email_lower},
            {
                "$set": {
                    "email": email,
                    "emailLower": email_lower,
                    "challenge": {"codeHash": code_hash, "expiresAt": expires_at},
                },
                "$setOnInsert": {
                    "verified": False,
                    "createdAt": now,
                    "totalCalls": 0,
                    "rate": RateState.initial().model_dump(by_alias=True),
                },
            },
            upsert=True,
        )

    async def issue_key(
        self,
        credential_id: ObjectId,
        *,
        expected_code_hash: str,
        api_key: str,
        now: datetime,
    ) -> bool:
        """Promote to verified with *api_key* and drop the challenge, atomically.

        The update only applies while the challenge that was just checked is
        still in place, so two concurrent verifications cannot both succeed.
        """
        result = await self._col.update_one(
            {"_id": credential_id, "challenge.codeHash": expected_code_hash},
            {
                "$set": {"apiKey": api_key, "verified": True, "createdAt": now},
                "$unset": {"challenge": ""},
            },
        )
        return result.modified_count == 1

    async def record_admitted_call(
        self,
        credential_id: ObjectId,
        *,
        expected_total_calls: Optional[int],
        rate: RateState,
        last_call: LastCall,
        now: datetime,
    ) -> bool:
        """Persist an admitted call as a compare-and-swap on ``totalCalls``.

        Returns False when another call was admitted since the credential was
        read; the caller re-reads and re-evaluates.
        """
        result = await self._col.update_one(
            {"_id": credential_id, "totalCalls": expected_total_calls},
            {
                "$set": {
                    "rate": rate.model_dump(by_alias=True),
                    "lastCallAt": now,
                    "lastCall": last_call.model_dump(by_alias=True),
                },
                "$inc": {"totalCalls": 1},
            },
        )
        return result.modified_count == 1

    async def delete(self, credential_id: ObjectId) -> bool:
        result = await self._col.delete_one({"_id": credential_id})
        return result.deleted_count == 1

    async def find_inactive(self, cutoff: datetime) -> list[ApiCredentialDoc]:
        """Verified credentials whose last call is older than *cutoff*."""
        query: dict[str, Any] = {"verified": True, "lastCallAt": {"$lt": cutoff}}
        cursor = self._col.find(query).sort("lastCallAt", 1)
        return [ApiCredentialDoc.from_mongo(doc) async for doc in cursor]
