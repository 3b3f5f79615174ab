from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone

from shiftboard.core.config import settings

# Accepted inputs: HH:MM, HH:MM:SS, H:MM, H:MM:SS
_TWO_DIGIT_HOUR = re.compile(r"^([0-2][0-9]):([0-5][0-9])(?::[0-5][0-9])?$")
_ONE_DIGIT_HOUR = re.compile(r"^([0-9]):([0-5][0-9])(?::[0-5][0-9])?$")
_CANONICAL = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")


def normalize_time(value: str) -> str:
    """Return canonical "HH:MM" or raise ValueError.

    Seconds are dropped, a single-digit hour is zero-padded. Minutes must
    always have two digits ("9:5:00" is rejected).
    """
    s = (value or "").strip()
    m = _TWO_DIGIT_HOUR.match(s) or _ONE_DIGIT_HOUR.match(s)
    if m is None:
        raise ValueError(f'Invalid time format. Expected HH:MM format. Received: "{value}"')
    out = f"{int(m.group(1)):02d}:{m.group(2)}"
    if not _CANONICAL.match(out):
        raise ValueError(f'Invalid time format. Expected HH:MM format. Received: "{value}"')
    return out


def to_minutes(hhmm: str) -> int:
    h, m = hhmm.split(":")
    return int(h) * 60 + int(m)


def parse_time(value: str) -> time:
    h, m = normalize_time(value).split(":")
    return time(int(h), int(m))


def fmt_time(t) -> str:
    # t can be datetime.time or a string like "18:00:00"
    if isinstance(t, time):
        return t.strftime("%H:%M")
    s = str(t)
    return s[:5] if len(s) >= 5 else s


def business_today() -> date:
    """Today's date in the business time zone (fixed UTC offset)."""
    offset = timezone(timedelta(hours=settings.SCHEDULE_UTC_OFFSET_HOURS))
    return datetime.now(offset).date()


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def weekday_key(d: date) -> str:
    return WEEKDAYS[d.weekday()]
