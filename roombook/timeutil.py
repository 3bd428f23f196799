"""Date and time-of-day helpers.

All interval arithmetic in this package works on integer minutes since
midnight. The helpers here convert between that representation and the
``HH:MM`` / ``HHMM`` / ``YYYY-MM-DD`` strings used by people and by the
groupware portal.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from .errors import InvalidIntervalError

MINUTES_PER_DAY = 24 * 60
DEFAULT_TIMEZONE = "Asia/Seoul"

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_SHORT_TIME_RE = re.compile(r"^(\d{2})(\d{2})$")
_RANGE_RE = re.compile(r"^(\d{1,2}:\d{2})\s*-\s*(\d{1,2}:\d{2})$")
_SHORT_DATE_RE = re.compile(r"^(\d{2})(\d{2})(\d{2})$")

TODAY_WORDS = {"today", "오늘"}
TOMORROW_WORDS = {"tomorrow", "내일"}
WEEKDAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def parse_time(value: str) -> int:
    """Convert ``"HH:MM"`` into minutes since midnight.

    ``"24:00"`` is accepted as the end of the day (1440).
    """
    match = _TIME_RE.match(value.strip())
    if not match:
        raise InvalidIntervalError(f"Invalid time {value!r}. Use HH:MM.")
    hours, minutes = int(match.group(1)), int(match.group(2))
    total = hours * 60 + minutes
    if minutes >= 60 or total > MINUTES_PER_DAY:
        raise InvalidIntervalError(f"Invalid time {value!r}. Use HH:MM.")
    return total


def format_minutes(minutes: int) -> str:
    """Convert minutes since midnight into ``"HH:MM"``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_short_time(value: str) -> str:
    """Convert chat style ``"1000"`` into ``"10:00"``."""
    match = _SHORT_TIME_RE.match(value.strip())
    if not match:
        raise InvalidIntervalError(f"Invalid time {value!r}. Use HHMM, e.g. 1000.")
    text = f"{match.group(1)}:{match.group(2)}"
    parse_time(text)
    return text


def parse_time_range(value: str) -> tuple[int, int]:
    """Parse ``"10:00-11:00"`` into a ``(start, end)`` pair of minutes."""
    match = _RANGE_RE.match(value.strip())
    if not match:
        raise InvalidIntervalError(f"Invalid time range {value!r}. Use HH:MM-HH:MM.")
    return parse_time(match.group(1)), parse_time(match.group(2))


def calculate_end_time(start: str, hours: float) -> str:
    """Return the ``HH:MM`` end of a meeting lasting ``hours`` from ``start``."""
    end = parse_time(start) + round(hours * 60)
    if end > MINUTES_PER_DAY:
        raise InvalidIntervalError(f"A {hours}h meeting from {start} runs past midnight.")
    return format_minutes(end)


def today(tz: str = DEFAULT_TIMEZONE) -> date:
    return datetime.now(ZoneInfo(tz)).date()


def parse_date(value: str, *, tz: str = DEFAULT_TIMEZONE, reference: Optional[date] = None) -> str:
    """Resolve ``today``/``tomorrow`` (or 오늘/내일), ``YYYY-MM-DD`` or ``YYMMDD``.

    Returns the date as ``YYYY-MM-DD``.

    Raises:
        ValueError: if the text matches none of the accepted forms.
    """
    text = value.strip().lower()
    base = reference or today(tz)
    if text in TODAY_WORDS:
        return base.isoformat()
    if text in TOMORROW_WORDS:
        return (base + timedelta(days=1)).isoformat()

    short = _SHORT_DATE_RE.match(text)
    try:
        if short:
            yy, mm, dd = (int(part) for part in short.groups())
            return date(2000 + yy, mm, dd).isoformat()
        return datetime.strptime(text, "%Y-%m-%d").date().isoformat()
    except ValueError:
        raise ValueError(f"Invalid date {value!r}. Use YYYY-MM-DD, YYMMDD, today or tomorrow.") from None


def format_date_display(value: str, *, tz: str = DEFAULT_TIMEZONE, reference: Optional[date] = None) -> str:
    """Human friendly date label: ``Today (2025-12-03)`` or ``2025-12-05 (Fri)``."""
    day = date.fromisoformat(value)
    base = reference or today(tz)
    if day == base:
        return f"Today ({value})"
    if day == base + timedelta(days=1):
        return f"Tomorrow ({value})"
    return f"{value} ({WEEKDAY_NAMES[day.weekday()]})"


def to_iso_datetime(day: str, time_of_day: str) -> str:
    """Local wall-clock ``YYYY-MM-DDTHH:MM:00`` used with an explicit time zone."""
    return f"{day}T{time_of_day}:00"
