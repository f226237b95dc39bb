"""
Repository for the admin user collection.

Lookups by id take the raw session value: anything that is not a valid
ObjectId simply finds nothing.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from pymongo.asynchronous.collection import AsyncCollection

from schemas.models.user import AdminUserDoc


class UserRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def find_by_id(self, user_id: Any) -> Optional[AdminUserDoc]:
        if isinstance(user_id, ObjectId):
            oid = user_id
        elif isinstance(user_id, str) and ObjectId.is_valid(user_id):
            oid = ObjectId(user_id)
        else:
            return None
        doc = await self._col.find_one({"_id": oid})
        return AdminUserDoc.from_mongo(doc)

    async def find_by_email(self, email: str) -> Optional[AdminUserDoc]:
        doc = await self._col.find_one({"email": email})
        return AdminUserDoc.from_mongo(doc)

    async def create(self, email: str, now: datetime) -> AdminUserDoc:
        """Insert a user; DuplicateKeyError propagates when the email exists."""
        user = AdminUserDoc(email=email, created_at=now)
        result = await self._col.insert_one(user.to_mongo())
        user.id = result.inserted_id
        return user

    async def list_all(self) -> list[AdminUserDoc]:
        cursor = self._col.find({}).sort("email", 1)
        return [AdminUserDoc.from_mongo(doc) async for doc in cursor]

    async def delete(self, user_id: ObjectId) -> bool:
        result = await self._col.delete_one({"_id": user_id})
        return result.deleted_count == 1
