"""
Access gate for the public data endpoints.

authorize() runs the ordered checks for one request and either returns the
calling ApiClient or raises the AppError that ends the request:

    1. key present (x-api-key header, else apiKey query param)   -> 401
    2. key belongs to a verified credential                      -> 403
    3. credential not idle past the inactivity threshold          -> 403, deleted
    4. minute and day windows admit the call                     -> 429
    5. usage recorded with a compare-and-swap on totalCalls      -> 409 when exhausted

With the ``session_or_key`` strategy a signed-in admin (session ``user_id``
that still names a user in Users) is admitted before step 1 and is not rate
limited. A stale session is cleared and the request falls through to the key
checks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from starlette.requests import Request

from errors import (
    ConflictError,
    CredentialExpiredError,
    InvalidCredentialError,
    MissingCredentialError,
    RateLimitError,
)
from repositories.credential_repository import CredentialRepository
from schemas.models.credential import ApiCredentialDoc, LastCall
from services.admin_session import SessionUserResolver
from services.credential_service import CredentialService, key_prefix
from services.rate_admission import RateAdmissionController
from shared.datetime_utils import utc_now
from shared.logging import get_logger

log = get_logger(__name__)

API_KEY_HEADER = "x-api-key"
API_KEY_QUERY_PARAM = "apiKey"


class GateStrategy(str, Enum):
    KEY_ONLY = "key_only"
    SESSION_OR_KEY = "session_or_key"


@dataclass(frozen=True)
class ApiClient:
    """Identity attached to ``request.state.api_client`` once admitted."""

    kind: str  # "api_key" | "session"
    credential_id: Optional[str] = None
    email_lower: Optional[str] = None
    api_key_prefix: Optional[str] = None
    total_calls: Optional[int] = None
    user_id: Optional[str] = None


def extract_api_key(request: Request) -> Optional[str]:
    raw = request.headers.get(API_KEY_HEADER)
    if raw is None or not raw.strip():
        raw = request.query_params.get(API_KEY_QUERY_PARAM)
    if raw is None:
        return None
    return raw.strip() or None


def describe_call(request: Request) -> LastCall:
    """Snapshot of the request stored as ``lastCall`` (path without query string)."""
    query: dict[str, Any] = {}
    for name in request.query_params.keys():
        if name == API_KEY_QUERY_PARAM:
            continue
        values = request.query_params.getlist(name)
        query[name] = values[0] if len(values) == 1 else values
    return LastCall(
        method=request.method,
        path=request.url.path,
        query=query,
        user_agent=request.headers.get("user-agent", ""),
    )


class AccessGate:
    def __init__(
        self,
        credential_repo: CredentialRepository,
        credential_service: CredentialService,
        controller: RateAdmissionController,
        strategy: GateStrategy = GateStrategy.KEY_ONLY,
        session_resolver: Optional[SessionUserResolver] = None,
        max_attempts: int = 5,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = credential_repo
        self._credentials = credential_service
        self._controller = controller
        self.strategy = GateStrategy(strategy)
        if self.strategy is GateStrategy.SESSION_OR_KEY and session_resolver is None:
            raise ValueError("session_or_key needs a session resolver")
        self._sessions = session_resolver
        self._max_attempts = max(1, max_attempts)
        self._clock = clock

    async def authorize(self, request: Request) -> ApiClient:
        if self.strategy is GateStrategy.SESSION_OR_KEY:
            user = await self._sessions.resolve(request)
            if user is not None:
                client = ApiClient(
                    kind="session", user_id=str(user.id), email_lower=user.email
                )
                request.state.api_client = client
                return client

        api_key = extract_api_key(request)
        if api_key is None:
            raise MissingCredentialError()

        credential = await self._repo.find_by_api_key(api_key)
        last_call = describe_call(request)

        for attempt in range(1, self._max_attempts + 1):
            if (
                credential is None
                or not credential.is_active
                or credential.api_key != api_key
            ):
                log.info("api_key_rejected", api_key_prefix=key_prefix(api_key))
                raise InvalidCredentialError()

            now = self._clock()
            if self._credentials.is_inactive(credential, now):
                await self._credentials.expire(credential)
                raise CredentialExpiredError()

            decision = self._controller.evaluate(credential.rate, now)
            if not decision.admitted:
                log.info(
                    "rate_limited",
                    email=credential.email_lower,
                    window=decision.breached.name,
                    path=last_call.path,
                )
                raise RateLimitError(
                    decision.breached.describe(), window=decision.breached.name
                )

            recorded = await self._repo.record_admitted_call(
                credential.id,
                expected_total_calls=credential.total_calls,
                rate=decision.rate,
                last_call=last_call,
                now=now,
            )
            if recorded:
                client = self._client_for(credential, api_key)
                request.state.api_client = client
                return client

            # Another call was admitted in between; evaluate against fresh state
            log.debug(
                "rate_admission_retry",
                email=credential.email_lower,
                attempt=attempt,
            )
            credential = await self._repo.find_by_id(credential.id)

        log.warning(
            "rate_admission_conflict",
            api_key_prefix=key_prefix(api_key),
            attempts=self._max_attempts,
        )
        raise ConflictError("Too many concurrent requests for this API key, please retry.")

    @staticmethod
    def _client_for(credential: ApiCredentialDoc, api_key: str) -> ApiClient:
        return ApiClient(
            kind="api_key",
            credential_id=str(credential.id),
            email_lower=credential.email_lower,
            api_key_prefix=key_prefix(api_key),
            total_calls=(credential.total_calls or 0) + 1,
        )
