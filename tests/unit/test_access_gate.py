"""Unit tests for AccessGate (key extraction, expiry, rate admission, CAS retries)."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from bson import ObjectId
from starlette.requests import Request

from errors import (
    ConflictError,
    CredentialExpiredError,
    InvalidCredentialError,
    MissingCredentialError,
    RateLimitError,
)
from repositories.credential_repository import CredentialRepository
from schemas.models.credential import ApiCredentialDoc, RateState, RateWindow
from repositories.user_repository import UserRepository
from services.access_gate import (
    AccessGate,
    GateStrategy,
    describe_call,
    extract_api_key,
)
from services.admin_session import SessionUserResolver
from services.credential_service import CredentialService
from services.rate_admission import RateAdmissionController
from shared.datetime_utils import EPOCH

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
KEY = "Abcdefghijklmnopqrstuvwxyz0123"


class Clock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def make_request(headers=None, query="", path="/api/public/data", session=None, method="GET"):
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": query.encode(),
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
    }
    if session is not None:
        scope["session"] = session
    return Request(scope)


def seed(col, **overrides) -> dict:
    doc = {
        "_id": ObjectId(),
        "email": "Ann@Example.org",
        "emailLower": "ann@example.org",
        "apiKey": KEY,
        "verified": True,
        "createdAt": NOW - timedelta(days=30),
        "totalCalls": 0,
        "rate": {
            "minute": {"windowStart": EPOCH, "count": 0},
            "day": {"windowStart": EPOCH, "count": 0},
        },
    }
    doc.update(overrides)
    col.sync.insert_one(doc)
    return doc


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def email_provider():
    provider = AsyncMock()
    provider.send_expiry_notice.return_value = True
    return provider


@pytest.fixture
def repo(credentials_col):
    return CredentialRepository(credentials_col)


def _gate(repo, email_provider, settings, clock, strategy=GateStrategy.KEY_ONLY, users=None):
    service = CredentialService(repo, email_provider, settings, clock=clock)
    return AccessGate(
        repo,
        service,
        RateAdmissionController.from_settings(settings),
        strategy=strategy,
        session_resolver=SessionUserResolver(users) if users is not None else None,
        max_attempts=settings.admission_max_attempts,
        clock=clock,
    )


@pytest.fixture
def gate(repo, email_provider, api_key_settings, clock):
    return _gate(repo, email_provider, api_key_settings, clock)


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------


class TestExtractApiKey:
    def test_header(self):
        assert extract_api_key(make_request({"x-api-key": f"  {KEY} "})) == KEY

    def test_query_param(self):
        assert extract_api_key(make_request(query=f"apiKey={KEY}")) == KEY

    def test_header_preferred(self):
        req = make_request({"x-api-key": "from-header"}, query="apiKey=from-query")
        assert extract_api_key(req) == "from-header"

    def test_blank_is_missing(self):
        assert extract_api_key(make_request({"x-api-key": "   "})) is None

    def test_absent(self):
        assert extract_api_key(make_request()) is None


class TestDescribeCall:
    def test_snapshot(self):
        req = make_request(
            {"user-agent": "curl/8"},
            query=f"page=2&active=true&apiKey={KEY}&point=1&point=2",
        )
        call = describe_call(req)
        assert call.method == "GET"
        assert call.path == "/api/public/data"
        assert call.query == {"page": "2", "active": "true", "point": ["1", "2"]}
        assert call.user_agent == "curl/8"


# ---------------------------------------------------------------------------
# Credential checks
# ---------------------------------------------------------------------------


class TestCredentialChecks:
    async def test_missing_key(self, gate):
        with pytest.raises(MissingCredentialError):
            await gate.authorize(make_request())

    async def test_unknown_key(self, gate, credentials_col):
        seed(credentials_col)
        with pytest.raises(InvalidCredentialError):
            await gate.authorize(make_request({"x-api-key": "nope"}))

    async def test_unverified_key(self, gate, credentials_col):
        seed(credentials_col, verified=False)
        with pytest.raises(InvalidCredentialError):
            await gate.authorize(make_request({"x-api-key": KEY}))

    async def test_inactive_key_expired_and_deleted(
        self, gate, credentials_col, repo, email_provider
    ):
        doc = seed(credentials_col, lastCallAt=NOW - timedelta(days=366))
        with pytest.raises(CredentialExpiredError):
            await gate.authorize(make_request({"x-api-key": KEY}))

        assert await repo.find_by_id(doc["_id"]) is None
        email_provider.send_expiry_notice.assert_awaited_once_with("Ann@Example.org")

    async def test_expired_key_then_invalid(self, gate, credentials_col):
        seed(credentials_col, lastCallAt=NOW - timedelta(days=366))
        with pytest.raises(CredentialExpiredError):
            await gate.authorize(make_request({"x-api-key": KEY}))
        with pytest.raises(InvalidCredentialError):
            await gate.authorize(make_request({"x-api-key": KEY}))

    async def test_never_used_key_is_exempt(self, gate, credentials_col):
        seed(credentials_col, createdAt=NOW - timedelta(days=800))
        client = await gate.authorize(make_request({"x-api-key": KEY}))
        assert client.kind == "api_key"


# ---------------------------------------------------------------------------
# Admission
# ---------------------------------------------------------------------------


class TestAdmission:
    async def test_admitted_call_recorded(self, gate, credentials_col, repo):
        doc = seed(credentials_col)
        req = make_request({"x-api-key": KEY, "user-agent": "pytest"}, query="page=2")

        client = await gate.authorize(req)

        assert req.state.api_client is client
        assert client.email_lower == "ann@example.org"
        assert client.total_calls == 1
        assert client.api_key_prefix == KEY[:4]

        stored = await repo.find_by_id(doc["_id"])
        assert stored.total_calls == 1
        assert stored.last_call.path == "/api/public/data"
        assert stored.last_call.query == {"page": "2"}
        assert stored.rate.minute.count == 1
        assert stored.rate.day.count == 1

    async def test_twenty_first_call_in_a_minute_rejected(self, gate, credentials_col, repo, clock):
        doc = seed(credentials_col)
        for _ in range(20):
            await gate.authorize(make_request({"x-api-key": KEY}))
            clock.advance(seconds=1)

        with pytest.raises(RateLimitError) as exc:
            await gate.authorize(make_request({"x-api-key": KEY}))

        assert exc.value.window == "minute"
        assert exc.value.to_dict()["details"] == {"window": "minute"}
        # The rejected call is not counted
        stored = await repo.find_by_id(doc["_id"])
        assert stored.total_calls == 20
        assert stored.rate.minute.count == 20

    async def test_minute_window_resets(self, gate, credentials_col, clock):
        seed(
            credentials_col,
            rate={
                "minute": {"windowStart": NOW - timedelta(seconds=60), "count": 20},
                "day": {"windowStart": NOW - timedelta(hours=1), "count": 40},
            },
        )
        client = await gate.authorize(make_request({"x-api-key": KEY}))
        assert client.kind == "api_key"

    async def test_day_cap(self, gate, credentials_col):
        seed(
            credentials_col,
            rate={
                "minute": {"windowStart": EPOCH, "count": 0},
                "day": {"windowStart": NOW - timedelta(hours=2), "count": 250},
            },
        )
        with pytest.raises(RateLimitError) as exc:
            await gate.authorize(make_request({"x-api-key": KEY}))
        assert exc.value.window == "day"


# ---------------------------------------------------------------------------
# Compare-and-swap retries
# ---------------------------------------------------------------------------


def _doc(total_calls, minute_count, minute_start=NOW):
    return ApiCredentialDoc(
        id=ObjectId(),
        email_lower="ann@example.org",
        api_key=KEY,
        verified=True,
        total_calls=total_calls,
        rate=RateState(
            minute=RateWindow(window_start=minute_start, count=minute_count),
            day=RateWindow(window_start=minute_start, count=minute_count),
        ),
    )


class TestConcurrentAdmission:
    async def test_cas_miss_reevaluates_fresh_state(self, email_provider, api_key_settings, clock):
        stale = _doc(total_calls=5, minute_count=5)
        fresh = _doc(total_calls=6, minute_count=6)
        repo = AsyncMock()
        repo.find_by_api_key.return_value = stale
        repo.find_by_id.return_value = fresh
        repo.record_admitted_call.side_effect = [False, True]
        gate = _gate(repo, email_provider, api_key_settings, clock)

        client = await gate.authorize(make_request({"x-api-key": KEY}))

        second = repo.record_admitted_call.await_args_list[1].kwargs
        assert second["expected_total_calls"] == 6
        assert second["rate"].minute.count == 7
        assert client.total_calls == 7

    async def test_cas_miss_at_cap_rejects_instead_of_over_admitting(
        self, email_provider, api_key_settings, clock
    ):
        stale = _doc(total_calls=19, minute_count=19)
        fresh = _doc(total_calls=20, minute_count=20)
        repo = AsyncMock()
        repo.find_by_api_key.return_value = stale
        repo.find_by_id.return_value = fresh
        repo.record_admitted_call.return_value = False
        gate = _gate(repo, email_provider, api_key_settings, clock)

        with pytest.raises(RateLimitError):
            await gate.authorize(make_request({"x-api-key": KEY}))
        assert repo.record_admitted_call.await_count == 1

    async def test_credential_deleted_mid_flight(self, email_provider, api_key_settings, clock):
        repo = AsyncMock()
        repo.find_by_api_key.return_value = _doc(total_calls=1, minute_count=1)
        repo.find_by_id.return_value = None
        repo.record_admitted_call.return_value = False
        gate = _gate(repo, email_provider, api_key_settings, clock)

        with pytest.raises(InvalidCredentialError):
            await gate.authorize(make_request({"x-api-key": KEY}))

    async def test_retries_exhausted(self, email_provider, api_key_settings, clock):
        repo = AsyncMock()
        repo.find_by_api_key.return_value = _doc(total_calls=1, minute_count=1)
        repo.find_by_id.return_value = _doc(total_calls=1, minute_count=1)
        repo.record_admitted_call.return_value = False
        gate = _gate(repo, email_provider, api_key_settings, clock)

        with pytest.raises(ConflictError):
            await gate.authorize(make_request({"x-api-key": KEY}))
        assert repo.record_admitted_call.await_count == api_key_settings.admission_max_attempts


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class TestStrategies:
    @pytest.fixture
    def users(self, users_col):
        return UserRepository(users_col)

    @pytest.fixture
    def admin_id(self, users_col):
        return users_col.sync.insert_one({"email": "beheer@example.org"}).inserted_id

    @pytest.fixture
    def session_gate(self, repo, email_provider, api_key_settings, clock, users):
        return _gate(
            repo, email_provider, api_key_settings, clock, GateStrategy.SESSION_OR_KEY, users
        )

    async def test_known_admin_admitted_without_key(self, session_gate, admin_id):
        req = make_request(session={"user_id": str(admin_id)})

        client = await session_gate.authorize(req)

        assert client.kind == "session"
        assert client.user_id == str(admin_id)
        assert client.email_lower == "beheer@example.org"
        assert req.state.api_client is client

    async def test_unknown_user_id_rejected_and_cleared(self, session_gate):
        session = {"user_id": str(ObjectId())}
        with pytest.raises(MissingCredentialError):
            await session_gate.authorize(make_request(session=session))
        assert "user_id" not in session

    async def test_malformed_user_id_rejected_and_cleared(self, session_gate):
        session = {"user_id": "admin-1"}
        with pytest.raises(MissingCredentialError):
            await session_gate.authorize(make_request(session=session))
        assert session == {}

    async def test_deleted_user_falls_back_to_key(
        self, session_gate, admin_id, users_col, credentials_col
    ):
        seed(credentials_col)
        users_col.sync.delete_one({"_id": admin_id})
        session = {"user_id": str(admin_id)}

        client = await session_gate.authorize(
            make_request({"x-api-key": KEY}, session=session)
        )

        assert client.kind == "api_key"
        assert "user_id" not in session

    async def test_session_or_key_falls_back_to_key(self, session_gate, credentials_col):
        seed(credentials_col)
        client = await session_gate.authorize(make_request({"x-api-key": KEY}, session={}))
        assert client.kind == "api_key"

    async def test_key_only_ignores_session(self, gate, admin_id):
        with pytest.raises(MissingCredentialError):
            await gate.authorize(make_request(session={"user_id": str(admin_id)}))

    def test_session_strategy_needs_resolver(self, repo, email_provider, api_key_settings, clock):
        with pytest.raises(ValueError):
            _gate(repo, email_provider, api_key_settings, clock, GateStrategy.SESSION_OR_KEY)

    def test_strategy_from_string(self, repo, email_provider, api_key_settings, clock, users):
        gate = _gate(repo, email_provider, api_key_settings, clock, "session_or_key", users)
        assert gate.strategy is GateStrategy.SESSION_OR_KEY
