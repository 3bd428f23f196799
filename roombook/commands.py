"""Chat command grammar for the Slack bot.

Commands are matched with regular expressions on the mention text, with the
Korean keywords the team uses and English aliases::

    @bot 회의실 오늘                         check today
    @bot room 251210 1000                    check a date, highlight a start time
    @bot 회의실 예약 251210 1000 R3.1 1 "Sync" @a @b
    @bot 일정 251210 1000 1.5 "Weekly" @a    calendar event only
    @bot help
"""

from __future__ import annotations

import re
from datetime import date as date_type
from enum import Enum
from typing import List, Optional, Sequence

from pydantic import BaseModel

from .errors import InvalidIntervalError
from .timeutil import DEFAULT_TIMEZONE, parse_date, parse_short_time

MIN_DURATION_HOURS = 0.5
MAX_DURATION_HOURS = 8

_MENTION_RE = re.compile(r"<@([A-Z0-9]+)>", re.IGNORECASE)
_TEL_LINK_RE = re.compile(r"<tel:[^|]+\|([^>]+)>", re.IGNORECASE)
_QUOTE = "\"“”"
_ROOM_WORD = r"(?:회의실|\brooms?\b)"
_SCHEDULE_RE = re.compile(
    rf"(?:일정|\bschedule\b)\s+(\S+)\s+(\d{{4}})\s+([\d.]+)\s+[{_QUOTE}]([^{_QUOTE}]+)[{_QUOTE}]",
    re.IGNORECASE,
)
_RESERVE_RE = re.compile(
    rf"{_ROOM_WORD}\s+(?:예약|book)\s+(\S+)\s+(\d{{4}})\s+(R\d\.\d)\s+([\d.]+)"
    rf"(?:\s+[{_QUOTE}]([^{_QUOTE}]+)[{_QUOTE}])?",
    re.IGNORECASE,
)
_CHECK_RE = re.compile(rf"{_ROOM_WORD}\s+(\S+)(?:\s+(\d{{4}}))?", re.IGNORECASE)
_ROOM_KEYWORD_RE = re.compile(_ROOM_WORD, re.IGNORECASE)
_HELP_WORDS = ("도움말", "사용법", "help", "?")

RESERVE_USAGE = 'Reservation format: @bot 회의실 예약 251210 1000 R3.1 1 "Title"'


class CommandType(str, Enum):
    CHECK = "check"
    RESERVE = "reserve"
    SCHEDULE = "schedule"
    HELP = "help"
    UNKNOWN = "unknown"


class ParsedCommand(BaseModel):
    type: CommandType
    date: Optional[str] = None
    time: Optional[str] = None
    room: Optional[str] = None
    duration: Optional[float] = None
    title: Optional[str] = None
    attendee_ids: List[str] = []
    error: Optional[str] = None


def extract_mentions(text: str) -> List[str]:
    """User ids mentioned in ``text`` after the leading bot mention."""
    return _MENTION_RE.findall(text)[1:]


def clean_text(text: str) -> str:
    text = _MENTION_RE.sub("", text)
    text = _TEL_LINK_RE.sub(r"\1", text)
    return text.strip()


def _duration(text: str, *, half_hour_steps: bool) -> float:
    try:
        hours = float(text)
    except ValueError:
        raise InvalidIntervalError(f"Invalid duration {text!r}.") from None
    if not MIN_DURATION_HOURS <= hours <= MAX_DURATION_HOURS:
        raise InvalidIntervalError(f"Duration must be between {MIN_DURATION_HOURS} and {MAX_DURATION_HOURS} hours.")
    if half_hour_steps and (hours * 2) % 1:
        raise InvalidIntervalError("Duration must be in 30 minute steps (0.5, 1, 1.5, ...).")
    return hours


def parse_command(
    text: str,
    room_names: Sequence[str],
    *,
    tz: str = DEFAULT_TIMEZONE,
    reference: Optional[date_type] = None,
) -> ParsedCommand:
    """Parse a mention into a command; problems are reported in ``error``."""
    attendees = extract_mentions(text)
    cleaned = clean_text(text)
    lowered = cleaned.lower()

    if any(word in lowered for word in _HELP_WORDS):
        return ParsedCommand(type=CommandType.HELP)

    match = _SCHEDULE_RE.search(cleaned)
    if match:
        date_text, time_text, duration_text, title = match.groups()
        try:
            return ParsedCommand(
                type=CommandType.SCHEDULE,
                date=parse_date(date_text, tz=tz, reference=reference),
                time=parse_short_time(time_text),
                duration=_duration(duration_text, half_hour_steps=False),
                title=title.strip(),
                attendee_ids=attendees,
            )
        except ValueError as exc:
            return ParsedCommand(type=CommandType.SCHEDULE, error=str(exc))

    if not _ROOM_KEYWORD_RE.search(cleaned):
        return ParsedCommand(type=CommandType.UNKNOWN)

    match = _RESERVE_RE.search(cleaned)
    if match:
        date_text, time_text, room, duration_text, title = match.groups()
        known = {name.lower(): name for name in room_names}
        try:
            parsed_date = parse_date(date_text, tz=tz, reference=reference)
            start = parse_short_time(time_text)
            duration = _duration(duration_text, half_hour_steps=True)
        except ValueError as exc:
            return ParsedCommand(type=CommandType.RESERVE, error=str(exc))
        if room.lower() not in known:
            return ParsedCommand(
                type=CommandType.RESERVE,
                error=f'Unknown room "{room}". Available rooms: {", ".join(room_names)}',
            )
        return ParsedCommand(
            type=CommandType.RESERVE,
            date=parsed_date,
            time=start,
            room=known[room.lower()],
            duration=duration,
            title=title.strip() if title else None,
            attendee_ids=attendees,
        )

    match = _CHECK_RE.search(cleaned)
    if match:
        date_text, time_text = match.groups()
        if date_text.lower() in ("예약", "book"):
            return ParsedCommand(type=CommandType.RESERVE, error=RESERVE_USAGE)
        try:
            return ParsedCommand(
                type=CommandType.CHECK,
                date=parse_date(date_text, tz=tz, reference=reference),
                time=parse_short_time(time_text) if time_text else None,
            )
        except ValueError as exc:
            return ParsedCommand(type=CommandType.CHECK, error=str(exc))

    return ParsedCommand(type=CommandType.CHECK, date=parse_date("today", tz=tz, reference=reference))
