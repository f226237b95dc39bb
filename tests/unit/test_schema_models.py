"""Unit tests for MongoDB document models."""

from datetime import datetime, timezone

import pytest
from bson import ObjectId
from pydantic import ValidationError as PydanticValidationError

from schemas.models.base import MongoBaseModel, PyObjectId
from schemas.models.credential import (
    ApiCredentialDoc,
    ChallengeDoc,
    LastCall,
    RateState,
    RateWindow,
)
from schemas.models.measurement import MeasurementEntry, MeasurementPointDoc
from shared.datetime_utils import EPOCH


# ── Helpers ───────────────────────────────────────────────────────────────────

def now():
    return datetime.now(timezone.utc)


def oid():
    return ObjectId()


def _credential_doc(**overrides) -> dict:
    doc = {
        "_id": oid(),
        "email": "Ann@Example.org",
        "emailLower": "ann@example.org",
        "apiKey": "A" * 30,
        "verified": True,
        "createdAt": now(),
        "totalCalls": 3,
        "rate": {
            "minute": {"windowStart": now(), "count": 2},
            "day": {"windowStart": now(), "count": 3},
        },
    }
    doc.update(overrides)
    return doc


# ── PyObjectId ────────────────────────────────────────────────────────────────

class TestPyObjectId:
    def test_accepts_objectid_instance(self):
        o = oid()
        assert PyObjectId._validate(o) == o

    def test_accepts_valid_string(self):
        s = str(oid())
        result = PyObjectId._validate(s)
        assert isinstance(result, ObjectId)
        assert str(result) == s

    def test_rejects_invalid_string(self):
        with pytest.raises(ValueError):
            PyObjectId._validate("nope")


class TestMongoBaseModel:
    def test_from_mongo_none(self):
        assert MongoBaseModel.from_mongo(None) is None

    def test_id_alias(self):
        o = oid()
        m = MongoBaseModel.from_mongo({"_id": o})
        assert m.id == o


# ── ApiCredentialDoc ──────────────────────────────────────────────────────────

class TestApiCredentialDoc:
    def test_parses_stored_document(self):
        doc = ApiCredentialDoc.from_mongo(_credential_doc())
        assert doc.email_lower == "ann@example.org"
        assert doc.api_key == "A" * 30
        assert doc.total_calls == 3
        assert doc.rate.minute.count == 2

    def test_is_active(self):
        assert ApiCredentialDoc.from_mongo(_credential_doc()).is_active is True

    def test_pending_is_not_active(self):
        doc = ApiCredentialDoc.from_mongo(
            _credential_doc(apiKey=None, verified=False)
        )
        assert doc.is_active is False

    def test_naive_datetimes_become_utc(self):
        doc = ApiCredentialDoc.from_mongo(
            _credential_doc(lastCallAt=datetime(2024, 1, 1, 12, 0))
        )
        assert doc.last_call_at.tzinfo == timezone.utc

    def test_challenge_round_trip_keys(self):
        expires = now()
        doc = ApiCredentialDoc.from_mongo(
            _credential_doc(challenge={"codeHash": "$argon2id$x", "expiresAt": expires})
        )
        assert isinstance(doc.challenge, ChallengeDoc)
        assert doc.to_mongo()["challenge"] == {
            "codeHash": "$argon2id$x",
            "expiresAt": expires,
        }

    def test_unknown_fields_ignored(self):
        doc = ApiCredentialDoc.from_mongo(_credential_doc(legacy="x"))
        assert not hasattr(doc, "legacy")

    def test_to_mongo_uses_stored_names(self):
        stored = ApiCredentialDoc.from_mongo(_credential_doc()).to_mongo()
        assert "emailLower" in stored
        assert "apiKey" in stored
        assert "totalCalls" in stored
        assert "challenge" not in stored


class TestRateState:
    def test_initial_windows_at_epoch(self):
        state = RateState.initial()
        assert state.minute == RateWindow(window_start=EPOCH, count=0)
        assert state.day.window_start == EPOCH

    def test_dump_uses_camel_case(self):
        dumped = RateState.initial().model_dump(by_alias=True)
        assert dumped["minute"] == {"windowStart": EPOCH, "count": 0}


class TestLastCall:
    def test_dump(self):
        call = LastCall(method="GET", path="/api/public/data", query={"page": "2"}, user_agent="curl/8")
        assert call.model_dump(by_alias=True) == {
            "method": "GET",
            "path": "/api/public/data",
            "query": {"page": "2"},
            "userAgent": "curl/8",
        }


# ── Measurement documents ─────────────────────────────────────────────────────

class TestMeasurementEntry:
    def test_value(self):
        m = MeasurementEntry(date=now(), value=21.5)
        assert m.value == 21.5

    def test_no_measurement_marker(self):
        m = MeasurementEntry.model_validate({"date": now(), "noMeasurement": True})
        assert m.no_measurement is True

    def test_rejects_both(self):
        with pytest.raises(PydanticValidationError):
            MeasurementEntry.model_validate(
                {"date": now(), "value": 1.0, "noMeasurement": True}
            )

    def test_rejects_neither(self):
        with pytest.raises(PydanticValidationError):
            MeasurementEntry(date=now())

    @pytest.mark.parametrize("value", [-0.1, 200.5])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(PydanticValidationError):
            MeasurementEntry(date=now(), value=value)

    def test_range_is_inclusive(self):
        assert MeasurementEntry(date=now(), value=0).value == 0
        assert MeasurementEntry(date=now(), value=200).value == 200

    def test_dump_for_storage(self):
        when = now()
        entry = MeasurementEntry(date=when, no_measurement=True, tube_id="T-9")
        assert entry.model_dump(by_alias=True, exclude_none=True) == {
            "date": when,
            "noMeasurement": True,
            "tube_id": "T-9",
        }


class TestMeasurementPointDoc:
    def test_parses_point(self):
        point = MeasurementPointDoc.from_mongo(
            {
                "_id": oid(),
                "point_number": 7,
                "location": "Stationsplein",
                "coordinates": {"lat": 52.1, "lon": 5.1},
                "active": True,
                "measurements": [
                    {"date": now(), "value": 30.2},
                    {"date": now(), "noMeasurement": True},
                ],
            }
        )
        assert point.point_number == 7
        assert point.coordinates.lat == 52.1
        assert len(point.measurements) == 2

    def test_to_mongo_omits_id_and_unset_fields(self):
        start = now()
        point = MeasurementPointDoc(
            point_number=8,
            description="Neude",
            start_date=start,
            measurements=[MeasurementEntry(date=start, value=12.5)],
        )
        stored = point.to_mongo()
        assert "_id" not in stored
        assert "location" not in stored
        assert stored["active"] is True
        assert stored["measurements"] == [{"date": start, "value": 12.5}]
