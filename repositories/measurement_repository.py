"""
Access to the measurement point collection.

The public API reads through aggregation plans; the admin API adds points,
appends monthly readings in one bulk write and toggles ``active``.
"""

from __future__ import annotations

from typing import Any, Optional

from bson import ObjectId
from pymongo import DESCENDING, UpdateOne
from pymongo.asynchronous.collection import AsyncCollection

from builders.public_data import PublicDataPlan


class MeasurementRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def fetch_page(self, plan: PublicDataPlan) -> tuple[list[dict], int]:
        """Run the read plan and its count-only twin; return (items, total)."""
        cursor = await self._col.aggregate(plan.pipeline)
        items = await cursor.to_list()

        count_cursor = await self._col.aggregate(plan.count_pipeline)
        counted = await count_cursor.to_list()
        total = counted[0]["count"] if counted else 0
        return items, total

    async def fetch_all(self) -> list[dict[str, Any]]:
        """Every point without ``_id``, ordered by point number (exports)."""
        cursor = self._col.find({}, {"_id": 0}).sort("point_number", 1)
        return await cursor.to_list()

    async def find_by_id(self, point_id: ObjectId) -> Optional[dict[str, Any]]:
        return await self._col.find_one({"_id": point_id})

    async def next_point_number(self) -> int:
        """One past the highest stored ``point_number`` (1 for an empty collection)."""
        cursor = (
            self._col.find({}, {"point_number": 1})
            .sort("point_number", DESCENDING)
            .limit(1)
        )
        last = await cursor.to_list()
        if last and isinstance(last[0].get("point_number"), int):
            return last[0]["point_number"] + 1
        return 1

    async def insert_point(self, document: dict[str, Any]) -> ObjectId:
        result = await self._col.insert_one(document)
        return result.inserted_id

    async def push_measurements(
        self, readings: list[tuple[ObjectId, dict[str, Any]]]
    ) -> int:
        """Append one reading per point in a single bulk write; return modified count."""
        if not readings:
            return 0
        requests = [
            UpdateOne({"_id": point_id}, {"$push": {"measurements": entry}})
            for point_id, entry in readings
        ]
        result = await self._col.bulk_write(requests)
        return result.modified_count

    async def set_active(self, point_id: ObjectId, active: bool) -> bool:
        """Return False when no point has *point_id*."""
        result = await self._col.update_one(
            {"_id": point_id}, {"$set": {"active": active}}
        )
        return result.matched_count == 1
