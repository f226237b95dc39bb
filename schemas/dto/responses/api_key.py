"""
Response DTOs for the self-service API key flow.

ApiKeyRequestedResponse - POST /api-key/request (200), identical for every
                          non-empty email so the response reveals nothing
                          about existing records
ApiKeyIssuedResponse    - POST /api-key/verify (200); the only response that
                          ever carries the key
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ApiKeyRequestedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str = "pending"
    message: str = "If the address is valid, a verification code is on its way."
    next: str = "/api-key/verify"


class ApiKeyIssuedResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    api_key: str = Field(serialization_alias="apiKey")
