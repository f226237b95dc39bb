"""
Typed query for GET /api/public/data.

PublicDataQuery.from_params() turns the raw, untrusted query-string mapping
into a validated value. Each field has an explicit default/clamp rule and
malformed input silently falls back to that default; the endpoint never
rejects a query.

    page                 int   [1, 1_000_000]   default 1
    limit                int   [1, 200]         default 50
    active               "true" | "false"       otherwise no filter
    point                int                    exact point_number
    pointMin / pointMax  int                    inclusive range (ignored when point is set)
    startFrom / startTo  "YYYY-MM"              inclusive month range on start_date
    includeMeasurements  bool                   default False
    mFrom / mTo          "YYYY-MM"              inclusive month range on measurement date
    latestOnly           bool                   default False
    mLimit               int   [1, 24]          default 24
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from shared.datetime_utils import add_months_utc, parse_month_utc
from shared.params import clamp_int, parse_bool, parse_int, parse_text

MAX_PAGE = 1_000_000
DEFAULT_PAGE = 1
MAX_LIMIT = 200
DEFAULT_LIMIT = 50
MAX_MEASUREMENTS = 24
DEFAULT_MEASUREMENTS = MAX_MEASUREMENTS


def parse_page(value: Any) -> int:
    return clamp_int(value, 1, MAX_PAGE, DEFAULT_PAGE)


def parse_limit(value: Any) -> int:
    return clamp_int(value, 1, MAX_LIMIT, DEFAULT_LIMIT)


def parse_measurement_limit(value: Any) -> int:
    return clamp_int(value, 1, MAX_MEASUREMENTS, DEFAULT_MEASUREMENTS)


def parse_active(value: Any) -> Optional[bool]:
    """Only the literal words select a filter; "1"/"yes" mean "all" here."""
    text = (parse_text(value) or "all").lower()
    if text == "true":
        return True
    if text == "false":
        return False
    return None


class PublicDataQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    active: Optional[bool] = None

    point: Optional[int] = None
    point_min: Optional[int] = None
    point_max: Optional[int] = None

    start_from: Optional[datetime] = None
    start_to: Optional[datetime] = None

    include_measurements: bool = False
    m_from: Optional[datetime] = None
    m_to: Optional[datetime] = None
    latest_only: bool = False
    m_limit: int = DEFAULT_MEASUREMENTS

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "PublicDataQuery":
        point = parse_int(params.get("point"))
        return cls(
            page=parse_page(params.get("page")),
            limit=parse_limit(params.get("limit")),
            active=parse_active(params.get("active")),
            point=point,
            # An exact point makes the range irrelevant
            point_min=None if point is not None else parse_int(params.get("pointMin")),
            point_max=None if point is not None else parse_int(params.get("pointMax")),
            start_from=parse_month_utc(parse_text(params.get("startFrom"))),
            start_to=parse_month_utc(parse_text(params.get("startTo"))),
            include_measurements=parse_bool(params.get("includeMeasurements")) is True,
            m_from=parse_month_utc(parse_text(params.get("mFrom"))),
            m_to=parse_month_utc(parse_text(params.get("mTo"))),
            latest_only=parse_bool(params.get("latestOnly")) is True,
            m_limit=parse_measurement_limit(params.get("mLimit")),
        )

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def start_to_exclusive(self) -> Optional[datetime]:
        return add_months_utc(self.start_to, 1) if self.start_to else None

    @property
    def m_to_exclusive(self) -> Optional[datetime]:
        return add_months_utc(self.m_to, 1) if self.m_to else None

    @property
    def has_measurement_window(self) -> bool:
        return self.m_from is not None or self.m_to is not None

    @property
    def measurement_take(self) -> int:
        return 1 if self.latest_only else self.m_limit

    @property
    def trims_measurements(self) -> bool:
        return (
            self.has_measurement_window
            or self.latest_only
            or self.m_limit != DEFAULT_MEASUREMENTS
        )
