"""
Request DTOs for the admin data API.

CreatePointRequest       - POST /api/admin/points
MeasurementBatchRequest  - POST /api/admin/measurements/batch
PointActiveRequest       - PATCH /api/admin/points/{point_id}/active
CreateUserRequest        - POST /api/admin/users

Readings may be typed with a decimal comma ("12,5"). Batch entries are kept
loose here and checked one by one in to_measurement(), so the service can
report which entry was rejected.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from schemas.models.measurement import MEASUREMENT_MAX, MEASUREMENT_MIN, MeasurementEntry
from shared.params import parse_decimal

VALUE_RANGE_MESSAGE = (
    f"Measurement values must be between {MEASUREMENT_MIN:g} and "
    f"{MEASUREMENT_MAX:g} (µg/m³)."
)


def _optional_text(v: Any) -> Optional[str]:
    if v is None:
        return None
    text = str(v).strip()
    return text or None


def _reading(v: Any) -> Optional[float]:
    """Blank → None; otherwise a finite number inside the accepted range."""
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    value = parse_decimal(v)
    if value is None or not MEASUREMENT_MIN <= value <= MEASUREMENT_MAX:
        raise ValueError(VALUE_RANGE_MESSAGE)
    return value


def _model_error(exc: PydanticValidationError) -> str:
    first = exc.errors()[0]
    return str(first.get("ctx", {}).get("error") or first["msg"])


class CreatePointRequest(BaseModel):
    """New measurement point; ``firstValue`` becomes its first reading."""

    model_config = ConfigDict(populate_by_name=True)

    description: str
    lat: float
    lon: float
    start_date: date = Field(alias="startDate")
    first_value: Optional[float] = Field(default=None, alias="firstValue")

    @field_validator("description", mode="after")
    @classmethod
    def _description_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("description is required.")
        return v

    @field_validator("first_value", mode="before")
    @classmethod
    def _first_value(cls, v: Any) -> Optional[float]:
        return _reading(v)

    @property
    def start(self) -> datetime:
        return datetime.combine(self.start_date, time.min, tzinfo=timezone.utc)


class BatchEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    point_id: Optional[str] = Field(default=None, alias="pointId")
    tube_id: Optional[str] = None
    value: Optional[str] = None
    no_measurement: bool = Field(default=False, alias="noMeasurement")

    @field_validator("point_id", "tube_id", "value", mode="before")
    @classmethod
    def _text(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @field_validator("no_measurement", mode="before")
    @classmethod
    def _marker(cls, v: Any) -> bool:
        # Checkbox-style forms post "on"
        if isinstance(v, str):
            return v.strip().lower() in ("true", "1", "yes", "on")
        return bool(v)

    def to_measurement(self, measured_on: datetime) -> MeasurementEntry:
        """Validate this entry as a stored reading; ValueError carries the reason."""
        if not self.tube_id:
            raise ValueError("tube_id is required for each measurement.")
        value = _reading(self.value)
        try:
            return MeasurementEntry(
                date=measured_on,
                value=value,
                no_measurement=True if self.no_measurement else None,
                tube_id=self.tube_id,
            )
        except PydanticValidationError as e:
            raise ValueError(_model_error(e)) from e


class MeasurementBatchRequest(BaseModel):
    """One month of readings; every reading is dated the 1st of the month (UTC)."""

    model_config = ConfigDict(populate_by_name=True)

    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)
    entries: list[BatchEntry]

    @property
    def measured_on(self) -> datetime:
        return datetime(self.year, self.month, 1, tzinfo=timezone.utc)


class PointActiveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    active: bool = False


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str = ""

    @field_validator("email", mode="after")
    @classmethod
    def _normalize(cls, v: str) -> str:
        return v.strip().lower()
