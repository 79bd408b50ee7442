"""Local clock-time helpers (12-hour display strings, same-day parsing)."""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

_CLOCK_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([AaPp][Mm])?\s*$")


def local_datetime(timestamp: float, tz_name: str) -> datetime:
    """Convert a Unix timestamp to an aware datetime in ``tz_name``."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).astimezone(ZoneInfo(tz_name))


def to_local(moment: datetime, tz_name: str) -> datetime:
    """Convert ``moment`` to ``tz_name``; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name))


def format_clock(moment: datetime, pad_hour: bool = False) -> str:
    """Format as "8:12 PM" (or "08:12 PM" with ``pad_hour``)."""
    hour = moment.hour % 12 or 12
    period = "PM" if moment.hour >= 12 else "AM"
    hour_text = f"{hour:02d}" if pad_hour else str(hour)
    return f"{hour_text}:{moment.minute:02d} {period}"


def format_gtfs_time(time_str: str) -> str:
    """
    Convert a GTFS "HH:MM:SS" time to "h:mm AM/PM".

    GTFS hours can run past 24 for late-night trips; they wrap to the next day.
    Returns "" for an empty or malformed value.
    """
    if not time_str:
        return ""
    parts = time_str.strip().split(":")
    if len(parts) < 2:
        return ""
    try:
        hours, minutes = int(parts[0]), int(parts[1])
    except ValueError:
        return ""

    hours %= 24
    period = "PM" if hours >= 12 else "AM"
    return f"{hours % 12 or 12}:{minutes:02d} {period}"


def parse_clock(clock_str: str, reference: datetime) -> Optional[datetime]:
    """
    Parse "8:10 PM" or "20:10[:00]" into a datetime on ``reference``'s date.

    The result carries ``reference``'s tzinfo. When the parsed time lands more than
    twelve hours away from ``reference`` it is moved a day towards it, so a
    schedule of 11:58 PM against a prediction of 12:03 AM reads as five minutes.

    Returns None when the string cannot be parsed.
    """
    if not clock_str:
        return None
    match = _CLOCK_RE.match(clock_str)
    if not match:
        return None

    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3) or 0)
    period = (match.group(4) or "").upper()

    if period:
        if not 1 <= hours <= 12:
            return None
        if period == "PM" and hours != 12:
            hours += 12
        elif period == "AM" and hours == 12:
            hours = 0
    elif hours > 23:
        return None
    if minutes > 59 or seconds > 59:
        return None

    parsed = reference.replace(hour=hours, minute=minutes, second=seconds, microsecond=0)
    gap = parsed - reference
    if gap > timedelta(hours=12):
        parsed -= timedelta(days=1)
    elif gap < timedelta(hours=-12):
        parsed += timedelta(days=1)
    return parsed


def minutes_between(later: datetime, earlier: datetime) -> int:
    """Whole minutes from ``earlier`` to ``later``, truncated toward zero."""
    return int((later - earlier).total_seconds() / 60)
