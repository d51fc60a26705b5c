"""Clock abstraction used by every date-dependent billing decision.

Business logic never calls ``date.today()`` directly: it asks a clock, so the
overdue sweep and status resolution can be replayed for any date.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from dateutil import tz
from flask import current_app


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Clock:
    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def __init__(self, timezone_name: Optional[str] = None):
        self.tzinfo = tz.gettz(timezone_name) if timezone_name else tz.UTC
        if self.tzinfo is None:
            raise ValueError(f"Unknown timezone: {timezone_name}")

    def now(self) -> datetime:
        return datetime.now(self.tzinfo)


class FixedClock(Clock):
    """A clock frozen at a given date; ``advance`` moves it forward."""

    def __init__(self, today: date):
        self._today = today

    def now(self) -> datetime:
        return datetime(self._today.year, self._today.month, self._today.day, tzinfo=tz.UTC)

    def today(self) -> date:
        return self._today

    def set(self, today: date) -> None:
        self._today = today

    def advance(self, days: int = 1) -> date:
        self._today = self._today + timedelta(days=days)
        return self._today


def get_clock() -> Clock:
    """Clock installed on the current app, or the system clock in BILLING_TIMEZONE."""
    clock = current_app.extensions.get("billing_clock")
    if clock is None:
        clock = SystemClock(current_app.config.get("BILLING_TIMEZONE"))
        current_app.extensions["billing_clock"] = clock
    return clock
