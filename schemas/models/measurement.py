"""
Measurement point document model (``Data`` collection).

The public API only reads these documents and its aggregation pipelines and
exports work on raw dicts. The admin API writes through these models, so
every stored entry carries exactly one of ``value`` or ``noMeasurement``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from schemas.models.base import MongoBaseModel

# Accepted range for a reading, in µg/m³
MEASUREMENT_MIN = 0.0
MEASUREMENT_MAX = 200.0


class Coordinates(BaseModel):
    model_config = ConfigDict(extra="ignore")

    lat: float
    lon: float


class MeasurementEntry(BaseModel):
    """One monthly reading: either a ``value`` or a ``noMeasurement`` marker."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    date: datetime
    value: Optional[float] = Field(default=None, ge=MEASUREMENT_MIN, le=MEASUREMENT_MAX)
    no_measurement: Optional[bool] = Field(default=None, alias="noMeasurement")
    tube_id: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @model_validator(mode="after")
    def _value_xor_marker(self) -> "MeasurementEntry":
        has_value = self.value is not None
        has_marker = self.no_measurement is True
        if has_value and has_marker:
            raise ValueError(
                "A measurement cannot have both a numeric value and "
                "'no measurement' at the same time."
            )
        if not has_value and not has_marker:
            raise ValueError(
                "Each measurement must either have a value or be marked as "
                "'no measurement'."
            )
        return self


class MeasurementPointDoc(MongoBaseModel):
    point_number: int
    coordinates: Optional[Coordinates] = None
    location: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    active: bool = True
    measurements: list[MeasurementEntry] = []
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
