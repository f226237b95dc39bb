"""
Per-credential fixed-window rate admission.

Each credential carries a minute window and a day window. A window whose
start is at least one window length in the past is reopened at ``now`` with a
count of 1; otherwise its count is incremented and compared to the cap.

evaluate() is pure: it returns the advanced state on admission and nothing to
persist on rejection, so a refused call never advances the stored counters.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from config import ApiKeySettings
from schemas.models.credential import RateState, RateWindow


@dataclass(frozen=True)
class WindowSpec:
    name: str
    length: timedelta
    cap: int

    def describe(self) -> str:
        unit = "minute" if self.name == "minute" else "day"
        return f"Rate limit exceeded ({self.cap} requests per {unit})."


@dataclass(frozen=True)
class RateDecision:
    admitted: bool
    rate: Optional[RateState] = None
    breached: Optional[WindowSpec] = None


def advance_window(
    window: Optional[RateWindow], spec: WindowSpec, now: datetime
) -> tuple[RateWindow, bool]:
    """Return the advanced window and whether it stays within the cap."""
    if window is None or now - window.window_start >= spec.length:
        return RateWindow(window_start=now, count=1), True
    advanced = RateWindow(window_start=window.window_start, count=window.count + 1)
    return advanced, advanced.count <= spec.cap


class RateAdmissionController:
    def __init__(self, minute: WindowSpec, day: WindowSpec) -> None:
        self.minute = minute
        self.day = day

    @classmethod
    def from_settings(cls, settings: ApiKeySettings) -> "RateAdmissionController":
        return cls(
            minute=WindowSpec(
                "minute",
                timedelta(seconds=settings.minute_window_seconds),
                settings.minute_limit,
            ),
            day=WindowSpec(
                "day",
                timedelta(seconds=settings.day_window_seconds),
                settings.day_limit,
            ),
        )

    def evaluate(self, rate: Optional[RateState], now: datetime) -> RateDecision:
        current = rate or RateState()
        minute, minute_ok = advance_window(current.minute, self.minute, now)
        day, day_ok = advance_window(current.day, self.day, now)

        # Both windows are evaluated; the minute window is reported first
        if not minute_ok:
            return RateDecision(admitted=False, breached=self.minute)
        if not day_ok:
            return RateDecision(admitted=False, breached=self.day)
        return RateDecision(admitted=True, rate=RateState(minute=minute, day=day))
