"""
Self-service API key endpoints.

POST /api-key/request  - email in, verification code out by email
POST /api-key/verify   - code in, API key out (shown once)

The email being verified travels between the two steps in the signed session
cookie, never in the verify body. The request step is limited per client IP;
the router is built per app so the limit follows that app's settings.
"""

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter

from dependencies import get_credential_service
from schemas.dto.requests.api_key import ApiKeyRequest, ApiKeyVerifyRequest
from schemas.dto.responses.api_key import ApiKeyIssuedResponse, ApiKeyRequestedResponse
from schemas.dto.responses.common import ERROR_RESPONSES
from services.credential_service import CredentialService

PENDING_EMAIL_SESSION_KEY = "pending_api_key_email"


async def request_api_key(
    request: Request,
    body: ApiKeyRequest,
    service: CredentialService = Depends(get_credential_service),
) -> ApiKeyRequestedResponse:
    email_lower = await service.request_key(body.email)
    request.session[PENDING_EMAIL_SESSION_KEY] = email_lower
    return ApiKeyRequestedResponse()


async def verify_api_key(
    request: Request,
    body: ApiKeyVerifyRequest,
    service: CredentialService = Depends(get_credential_service),
) -> ApiKeyIssuedResponse:
    email_lower = request.session.get(PENDING_EMAIL_SESSION_KEY) or ""
    api_key = await service.verify_key(email_lower, body.code)
    request.session.pop(PENDING_EMAIL_SESSION_KEY, None)
    return ApiKeyIssuedResponse(email=email_lower, api_key=api_key)


def build_router(limiter: Limiter, request_limit: str) -> APIRouter:
    """Router for /api-key with *request_limit* (e.g. "2 per 15 minutes") per IP."""
    router = APIRouter(prefix="/api-key", tags=["api-key"], responses=ERROR_RESPONSES)
    router.add_api_route(
        "/request",
        limiter.limit(request_limit)(request_api_key),
        methods=["POST"],
        response_model=ApiKeyRequestedResponse,
    )
    router.add_api_route(
        "/verify",
        verify_api_key,
        methods=["POST"],
        response_model=ApiKeyIssuedResponse,
    )
    return router
