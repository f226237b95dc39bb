"""
Request DTOs for the self-service API key flow.

ApiKeyRequest        - POST /api-key/request
ApiKeyVerifyRequest  - POST /api-key/verify

Blank input is reported by the service layer as a ValidationError, so both
fields accept any string here and are only stripped.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


class ApiKeyRequest(BaseModel):
    """Request body for POST /api-key/request."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = ""

    @field_validator("email", mode="after")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()


class ApiKeyVerifyRequest(BaseModel):
    """Request body for POST /api-key/verify.

    ``code`` is the 6-digit code emailed by the request step. The email it
    belongs to is read from the session, not from the body.
    """

    model_config = ConfigDict(populate_by_name=True)

    code: str = ""

    @field_validator("code", mode="after")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()
