"""
Response DTOs for the admin data API.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.models.user import AdminUserDoc
from shared.datetime_utils import to_iso


class AdminUserResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(serialization_alias="_id")
    email: str
    created_at: Optional[str] = Field(default=None, serialization_alias="createdAt")

    @classmethod
    def from_doc(cls, user: AdminUserDoc) -> "AdminUserResponse":
        return cls(
            id=str(user.id),
            email=user.email,
            created_at=to_iso(user.created_at) if user.created_at else None,
        )


class SavedPeriod(BaseModel):
    year: int
    month: int


class MeasurementBatchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    modified_count: int = Field(serialization_alias="modifiedCount")
    saved_period: SavedPeriod = Field(serialization_alias="savedPeriod")
    measurement_date_utc: str = Field(serialization_alias="measurementDateUTC")


class PointActiveResponse(BaseModel):
    success: bool = True
    active: bool


class SuccessResponse(BaseModel):
    success: bool = True
