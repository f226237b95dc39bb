"""
Admin data operations: measurement points, monthly readings and admin users.

Every reading is validated as a MeasurementEntry before anything is written,
so a batch either stores all of its valid entries in one bulk write or is
rejected as a whole with the index of the offending entry.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from errors import ConflictError, NotFoundError, ValidationError
from repositories.measurement_repository import MeasurementRepository
from repositories.user_repository import UserRepository
from schemas.dto.requests.admin import CreatePointRequest, MeasurementBatchRequest
from schemas.models.measurement import Coordinates, MeasurementEntry, MeasurementPointDoc
from schemas.models.user import AdminUserDoc
from shared.datetime_utils import utc_now
from shared.logging import get_logger

log = get_logger(__name__)


def _object_id(raw: str, message: str) -> ObjectId:
    if not ObjectId.is_valid(raw):
        raise ValidationError(message, field="id")
    return ObjectId(raw)


class AdminService:
    def __init__(
        self,
        measurement_repo: MeasurementRepository,
        user_repo: UserRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._points = measurement_repo
        self._users = user_repo
        self._clock = clock

    # ── Measurement points ───────────────────────────────────────────────────

    async def create_point(self, body: CreatePointRequest) -> MeasurementPointDoc:
        now = self._clock()
        measurements = []
        if body.first_value is not None:
            measurements.append(
                MeasurementEntry(date=body.start, value=body.first_value, created_at=now)
            )

        # TODO: two concurrent creations can read the same highest number;
        # needs a unique point_number index once existing data is deduplicated.
        point = MeasurementPointDoc(
            point_number=await self._points.next_point_number(),
            coordinates=Coordinates(lat=body.lat, lon=body.lon),
            description=body.description,
            start_date=body.start,
            measurements=measurements,
            active=True,
            created_at=now,
        )
        point.id = await self._points.insert_point(point.to_mongo())
        log.info(
            "measurement_point_created",
            point_number=point.point_number,
            with_first_value=bool(measurements),
        )
        return point

    async def save_batch(self, body: MeasurementBatchRequest) -> int:
        """Append one reading per referenced point; return the modified count.

        Entries without a usable ``pointId`` are skipped. Any other invalid
        entry rejects the whole batch.
        """
        measured_on = body.measured_on
        readings: list[tuple[ObjectId, dict]] = []
        for index, entry in enumerate(body.entries):
            if not entry.point_id or not ObjectId.is_valid(entry.point_id):
                continue
            try:
                reading = entry.to_measurement(measured_on)
            except ValueError as e:
                raise ValidationError(
                    str(e), field="entries", details={"index": index}
                ) from e
            readings.append(
                (ObjectId(entry.point_id), reading.model_dump(by_alias=True, exclude_none=True))
            )

        if not readings:
            raise ValidationError("No valid entries to save.", field="entries")

        modified = await self._points.push_measurements(readings)
        log.info(
            "measurement_batch_saved",
            year=body.year,
            month=body.month,
            entries=len(readings),
            modified=modified,
        )
        return modified

    async def set_point_active(self, point_id: str, active: bool) -> bool:
        oid = _object_id(point_id, "Invalid point id.")
        if not await self._points.set_active(oid, active):
            raise NotFoundError("Measurement point not found.")
        log.info("measurement_point_active_set", point_id=point_id, active=active)
        return active

    # ── Admin users ──────────────────────────────────────────────────────────

    async def create_user(self, email: str) -> AdminUserDoc:
        if not email:
            raise ValidationError("Email is required.", field="email")
        if await self._users.find_by_email(email) is not None:
            raise ConflictError("User already exists.")
        try:
            user = await self._users.create(email, self._clock())
        except DuplicateKeyError:
            raise ConflictError("User already exists.")
        log.info("admin_user_created", user_id=str(user.id))
        return user

    async def list_users(self) -> list[AdminUserDoc]:
        return await self._users.list_all()

    async def delete_user(self, user_id: str) -> None:
        oid = _object_id(user_id, "Invalid user id.")
        if not await self._users.delete(oid):
            raise NotFoundError("User not found.")
        log.info("admin_user_deleted", user_id=user_id)
