"""Time source used for lead-time checks and timestamps."""

from __future__ import annotations

from datetime import datetime, timedelta

from .utils import truncate_to_seconds, utcnow


class Clock:
    """Wall clock truncated to whole seconds.

    Services take a clock argument instead of reading the time themselves, so
    tests can pin "now" with :class:`FixedClock`.
    """

    def now(self) -> datetime:
        return truncate_to_seconds(utcnow())


class FixedClock(Clock):
    def __init__(self, moment: datetime) -> None:
        self.moment = truncate_to_seconds(moment)

    def now(self) -> datetime:
        return self.moment

    def advance(self, **delta) -> None:
        self.moment = truncate_to_seconds(self.moment + timedelta(**delta))


system_clock = Clock()
