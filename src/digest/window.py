"""Time-window arithmetic: cutoff instant, Gmail query date, epoch millis."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


class TimeUnit(str, Enum):
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"


UNIT_MILLIS: dict[TimeUnit, int] = {
    TimeUnit.MINUTES: 60 * 1000,
    TimeUnit.HOURS: 60 * 60 * 1000,
    TimeUnit.DAYS: 24 * 60 * 60 * 1000,
}

#: Window used when the unit is not one of TimeUnit.
FALLBACK_WINDOW = timedelta(days=1)


def window_length(amount: int, unit: str) -> timedelta:
    """Return ``amount`` units as a timedelta, or one day for an unknown unit."""
    try:
        unit_ms = UNIT_MILLIS[TimeUnit(unit)]
    except ValueError:
        logger.warning("Unknown timeframe unit %r; defaulting to a 1-day window", unit)
        return FALLBACK_WINDOW
    return timedelta(milliseconds=amount * unit_ms)


def compute_cutoff(now: datetime, amount: int, unit: str) -> datetime:
    """Earliest instant a message may carry and still belong to the window."""
    return now - window_length(amount, unit)


def format_query_date(cutoff: datetime) -> str:
    """Render the cutoff's local calendar date as ``YYYY/MM/DD`` for ``after:``."""
    local = cutoff.astimezone() if cutoff.tzinfo is not None else cutoff
    return f"{local.year:04d}/{local.month:02d}/{local.day:02d}"


def epoch_millis(moment: datetime) -> int:
    """Integer epoch milliseconds; naive datetimes are taken as local time."""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return (moment - _EPOCH) // _ONE_MS
