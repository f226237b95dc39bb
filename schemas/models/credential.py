"""
API credential document model.

Maps to the credentials collection (``API`` by default). One document per
normalized email address.

- ``challenge`` exists only while a verification is pending; it holds the
  argon2 hash of the emailed code, never the code itself.
- ``apiKey`` exists only after verification and is unique across documents
  where it is a string (partial unique index).
- ``rate`` holds the minute/day fixed-window counters.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.models.base import MongoBaseModel
from shared.datetime_utils import EPOCH, ensure_utc


class _Stored(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ChallengeDoc(_Stored):
    code_hash: str = Field(alias="codeHash")
    expires_at: datetime = Field(alias="expiresAt")

    @field_validator("expires_at", mode="after")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class RateWindow(_Stored):
    window_start: datetime = Field(default=EPOCH, alias="windowStart")
    count: int = 0

    @field_validator("window_start", mode="after")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class RateState(_Stored):
    minute: Optional[RateWindow] = None
    day: Optional[RateWindow] = None

    @classmethod
    def initial(cls) -> "RateState":
        """Both windows parked at the epoch so the first call opens fresh ones."""
        return cls(minute=RateWindow(), day=RateWindow())


class LastCall(_Stored):
    method: str
    path: str
    query: dict[str, Any] = {}
    user_agent: str = Field(default="", alias="userAgent")


class ApiCredentialDoc(MongoBaseModel):
    """Document model for the credentials collection."""

    email_lower: str = Field(alias="emailLower")
    email: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    verified: bool = False
    challenge: Optional[ChallengeDoc] = None
    rate: Optional[RateState] = None
    last_call_at: Optional[datetime] = Field(default=None, alias="lastCallAt")
    last_call: Optional[LastCall] = Field(default=None, alias="lastCall")
    total_calls: Optional[int] = Field(default=None, alias="totalCalls")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @field_validator("last_call_at", "created_at", mode="after")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def is_active(self) -> bool:
        return self.verified is True and isinstance(self.api_key, str)
