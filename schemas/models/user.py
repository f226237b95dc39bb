"""
Admin user document model (``Users`` collection).

An admin user is identified by the ``user_id`` the login flow stores in the
signed session cookie. Emails are stored lower-cased and are unique.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from schemas.models.base import MongoBaseModel
from shared.datetime_utils import ensure_utc


class AdminUserDoc(MongoBaseModel):
    email: str = ""
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @field_validator("created_at", mode="after")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)
