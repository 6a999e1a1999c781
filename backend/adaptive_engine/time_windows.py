"""Clock abstraction and the weekly/monthly recomputation window policy.

Every "is it Monday at the processing hour" decision is a pure function of an
injected, timezone-aware timestamp so gating can be tested without waiting for
wall-clock transitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Optional, Protocol

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

MONDAY = 0


class Clock(Protocol):
    def now(self) -> datetime:  # pragma: no cover - protocol definition
        ...


def resolve_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """Return a ZoneInfo for ``name`` or ``None`` to mean host local time."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Unknown scheduler timezone: {name}") from exc


class SystemClock:
    """Wall clock in the configured zone, or host local time when none is set."""

    def __init__(self, tz: Optional[tzinfo] = None) -> None:
        self._tz = tz

    @property
    def tz(self) -> Optional[tzinfo]:
        return self._tz

    def now(self) -> datetime:
        if self._tz is None:
            return datetime.now().astimezone()
        return datetime.now(self._tz)


@dataclass(frozen=True)
class TimeWindowPolicy:
    daily_hour: int = 2

    def __post_init__(self) -> None:
        if not 0 <= self.daily_hour <= 23:
            raise ValueError("daily_hour must be within 0..23")

    def is_new_week(self, now: datetime) -> bool:
        return now.weekday() == MONDAY and now.hour == self.daily_hour

    def is_new_month(self, now: datetime) -> bool:
        return now.day == 1 and now.hour == self.daily_hour

    def _anchor(self, day: datetime) -> datetime:
        return day.replace(hour=self.daily_hour, minute=0, second=0, microsecond=0)

    def latest_weekly_anchor(self, now: datetime) -> datetime:
        """Most recent Monday at the processing hour that is not after ``now``."""
        anchor = self._anchor(now - timedelta(days=now.weekday()))
        if anchor > now:
            anchor -= timedelta(days=7)
        return anchor

    def latest_monthly_anchor(self, now: datetime) -> datetime:
        """Most recent 1st-of-month at the processing hour that is not after ``now``."""
        anchor = self._anchor(now.replace(day=1))
        if anchor > now:
            previous_month_end = now.replace(day=1) - timedelta(days=1)
            anchor = self._anchor(previous_month_end.replace(day=1))
        return anchor

    def next_daily_run(self, now: datetime) -> datetime:
        """Next occurrence of the processing hour strictly after ``now``."""
        candidate = self._anchor(now)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate


__all__ = [
    "Clock",
    "SystemClock",
    "TimeWindowPolicy",
    "resolve_timezone",
]
