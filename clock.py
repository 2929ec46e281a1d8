"""
=============================================================================
CLOCK.PY — "What day is it?" for the whole app
=============================================================================
Daily resets, mission periods and monthly statistics all depend on the
local calendar day, not the UTC one. Every datetime the app stores is a
naive wall-clock time in APP_TIMEZONE.
"""

import os
from datetime import datetime, timedelta

import pytz

APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Asia/Taipei")


def local_now() -> datetime:
    """Current wall-clock time in APP_TIMEZONE, without tzinfo"""
    tz = pytz.timezone(APP_TIMEZONE)
    return datetime.now(tz).replace(tzinfo=None)


def day_start(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def week_start(moment: datetime) -> datetime:
    """Monday 00:00 of the week containing `moment`"""
    return day_start(moment) - timedelta(days=moment.weekday())


def month_range(moment: datetime) -> tuple[datetime, datetime]:
    """[first day of the month, first day of next month)"""
    start = day_start(moment).replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def to_local_naive(moment: datetime) -> datetime:
    """Aware datetimes (e.g. "2026-01-05T10:00:00Z" from a client) → local wall clock"""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(pytz.timezone(APP_TIMEZONE)).replace(tzinfo=None)
