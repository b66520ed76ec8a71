"""
Clock value type and UTC calendar helpers.

A :class:`Clock` is how "now" enters the system.  It wraps either real wall
clock time or an administrator-supplied override instant (the time machine)
and is passed explicitly to every operation that needs the current time.
There is no module-level "current time" that could leak between requests.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from dateutil.relativedelta import relativedelta


def as_utc(value: datetime) -> datetime:
    """
    Return ``value`` as a timezone-aware UTC datetime.

    Naive values are taken to already be UTC (SQLite drops tzinfo on the way
    back out of the database).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_months(anchor: datetime, months: int) -> datetime:
    """
    Add calendar months to ``anchor``, clipping to the end of short months.

    Always measured from the anchor (never chained), so period ``n`` of an
    investment confirmed on Jan 31 falls on Feb 29/28, Mar 31, Apr 30, ...
    """
    return anchor + relativedelta(months=months)


def whole_months_between(start: datetime, end: datetime) -> int:
    """
    Largest ``m >= 0`` such that ``add_months(start, m) <= end``.

    Returns 0 when ``end`` precedes ``start``.
    """
    start = as_utc(start)
    end = as_utc(end)
    if end < start:
        return 0
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if add_months(start, months) > end:
        months -= 1
    return max(months, 0)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Clock:
    """
    Immutable source of "now".

    ``override`` pins the clock to a fixed instant; ``None`` means real time.
    ``source`` is injectable for tests that need a deterministic real clock.
    """

    override: Optional[datetime] = None
    source: Callable[[], datetime] = field(default=_utcnow, compare=False, repr=False)

    @classmethod
    def system(cls) -> "Clock":
        return cls()

    @classmethod
    def at(cls, instant: datetime) -> "Clock":
        return cls(override=as_utc(instant))

    @property
    def is_overridden(self) -> bool:
        return self.override is not None

    def now(self) -> datetime:
        if self.override is not None:
            return self.override
        return as_utc(self.source())
