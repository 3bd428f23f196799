"""Availability computation for groupware meeting rooms.

Three pure functions make up the engine:

- ``normalize_reservations`` turns the portal's raw reservation records into
  ``Reservation`` models. The portal's two listing endpoints name and encode
  the same values differently, so every logical field is read through one
  ordered fallback list below.
- ``compute_gaps`` sweeps the reservations of one room and returns the free
  intervals inside the working-hours window.
- ``is_available`` / ``check_booking`` decide whether a proposed interval may
  be booked.

Nothing here performs I/O or keeps state between calls; callers pass a fresh
snapshot of upstream data on every query.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import InvalidIntervalError
from .models import BookingDecision, MeetingRoom, Reservation, RoomAvailability, TimeSlot
from .timeutil import MINUTES_PER_DAY, parse_time

logger = logging.getLogger(__name__)

# Ordered fallback lists, first populated field wins.
ROOM_NAME_FIELDS: Tuple[str, ...] = ("resName", "resNm")
DATE_FIELDS: Tuple[str, ...] = ("startDate", "resStartDate", "start", "fromDate")
START_LOCAL_FIELDS: Tuple[str, ...] = ("startDate",)
START_ISO_FIELDS: Tuple[str, ...] = ("resStartDate", "start")
START_BARE_FIELDS: Tuple[str, ...] = ("fromTime",)
END_LOCAL_FIELDS: Tuple[str, ...] = ("endDate",)
END_ISO_FIELDS: Tuple[str, ...] = ("resEndDate", "end")
END_BARE_FIELDS: Tuple[str, ...] = ("toTime",)
END_DATE_FIELDS: Tuple[str, ...] = ("toDate",)
RESERVER_NAME_FIELDS: Tuple[str, ...] = ("empName", "useEmpNm", "regEmpNm")
RESERVER_ID_FIELDS: Tuple[str, ...] = ("empId", "useEmpId", "regEmpId")
TITLE_FIELDS: Tuple[str, ...] = ("reqText", "title")
CONTENT_FIELDS: Tuple[str, ...] = ("descText", "content")
ALL_DAY_FIELDS: Tuple[str, ...] = ("allDay", "allDayYn", "alldayYn")

# "2025-12-05 10:00:00"
_LOCAL_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}) (\d{2}):(\d{2})(?::\d{2})?")
# "2025-12-05T10:30:00.000Z"; the wall-clock part is used as is
_ISO_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})T(\d{2}):(\d{2})")
# "10:00"
_BARE_RE = re.compile(r"^(\d{1,2}):(\d{2})")
_DATE_PREFIX_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})")
_TITLE_ROOM_RE = re.compile(r"\[(.*?)\]")
_TRUE_FLAGS = frozenset({"TRUE", "Y", "1"})


def _first(record: Mapping[str, Any], fields: Iterable[str]) -> Optional[str]:
    for field in fields:
        value = record.get(field)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _minutes(hours: str, minutes: str) -> Optional[int]:
    h, m = int(hours), int(minutes)
    total = h * 60 + m
    if m >= 60 or total > MINUTES_PER_DAY:
        return None
    return total


def _extract_time(
    record: Mapping[str, Any],
    local_fields: Sequence[str],
    iso_fields: Sequence[str],
    bare_fields: Sequence[str],
) -> Optional[Tuple[Optional[str], int]]:
    """Return ``(date or None, minutes)`` from the first encoding that parses."""
    for fields, pattern in ((local_fields, _LOCAL_RE), (iso_fields, _ISO_RE)):
        for field in fields:
            value = record.get(field)
            if not isinstance(value, str):
                continue
            match = pattern.match(value.strip())
            if match:
                minutes = _minutes(match.group(2), match.group(3))
                if minutes is not None:
                    return match.group(1), minutes
    for field in bare_fields:
        value = record.get(field)
        if not isinstance(value, str):
            continue
        match = _BARE_RE.match(value.strip())
        if match:
            minutes = _minutes(match.group(1), match.group(2))
            if minutes is not None:
                return None, minutes
    return None


def _is_flag_set(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return isinstance(value, str) and value.strip().upper() in _TRUE_FLAGS


def _is_all_day(record: Mapping[str, Any]) -> bool:
    return any(_is_flag_set(record.get(field)) for field in ALL_DAY_FIELDS)


def _resolve_room_name(record: Mapping[str, Any]) -> Optional[str]:
    name = _first(record, ROOM_NAME_FIELDS)
    if name:
        return name
    title = record.get("title")
    if isinstance(title, str):
        match = _TITLE_ROOM_RE.search(title)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


def _resolve_date(record: Mapping[str, Any]) -> Optional[str]:
    for field in DATE_FIELDS:
        value = record.get(field)
        if not isinstance(value, str):
            continue
        match = _DATE_PREFIX_RE.match(value.strip())
        if match:
            return match.group(1)
    return None


def _res_seq(record: Mapping[str, Any]) -> int:
    try:
        return int(record.get("resSeq") or 0)
    except (TypeError, ValueError):
        return 0


def normalize_record(
    record: Any,
    date: str,
    room_names: Iterable[str],
    window: TimeSlot,
) -> Optional[Reservation]:
    """Normalize one raw record, or return None when it must be dropped."""
    if not isinstance(record, Mapping):
        return None

    room_name = _resolve_room_name(record)
    if not room_name or room_name not in set(room_names):
        return None

    if _resolve_date(record) != date:
        return None

    if _is_all_day(record):
        start, end = window.start, window.end
    else:
        start_part = _extract_time(record, START_LOCAL_FIELDS, START_ISO_FIELDS, START_BARE_FIELDS)
        end_part = _extract_time(record, END_LOCAL_FIELDS, END_ISO_FIELDS, END_BARE_FIELDS)
        if start_part is None or end_part is None:
            logger.debug("Dropping %s reservation without a usable start/end: %r", room_name, record)
            return None
        start = start_part[1]
        end_date = end_part[0] or _date_prefix(_first(record, END_DATE_FIELDS))
        end = MINUTES_PER_DAY if end_date and end_date > date else end_part[1]

    if not 0 <= start < end <= MINUTES_PER_DAY:
        logger.debug("Dropping %s reservation with empty interval %s-%s", room_name, start, end)
        return None

    return Reservation(
        res_seq=_res_seq(record),
        room_name=room_name,
        date=date,
        slot=TimeSlot(start=start, end=end),
        title=_first(record, TITLE_FIELDS) or "",
        content=_first(record, CONTENT_FIELDS),
        reserver_name=_first(record, RESERVER_NAME_FIELDS) or "",
        reserver_id=_first(record, RESERVER_ID_FIELDS) or "",
    )


def _date_prefix(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    match = _DATE_PREFIX_RE.match(text)
    return match.group(1) if match else None


def normalize_reservations(
    records: Optional[Iterable[Any]],
    date: str,
    room_names: Iterable[str],
    window: TimeSlot,
) -> List[Reservation]:
    """Convert raw portal records into reservations of the target rooms on ``date``.

    Records that cannot be resolved to a target room, the requested date or a
    valid time pair are dropped; one bad record never fails the whole query.
    The result is ordered by room name, then start time.
    """
    names = set(room_names)
    reservations: List[Reservation] = []
    dropped = 0
    for record in records or []:
        reservation = normalize_record(record, date, names, window)
        if reservation is None:
            dropped += 1
            continue
        reservations.append(reservation)
    if dropped:
        logger.debug("Skipped %s of %s raw records for %s", dropped, dropped + len(reservations), date)
    reservations.sort(key=lambda r: (r.room_name, r.slot.start, r.slot.end))
    return reservations


def compute_gaps(reservations: Iterable[TimeSlot], window: TimeSlot) -> List[TimeSlot]:
    """Return the maximal free intervals of ``window`` not covered by ``reservations``.

    Overlapping and back-to-back reservations merge through the cursor's
    max-tracking; reservations reaching outside the window are clipped.
    """
    gaps: List[TimeSlot] = []
    cursor = window.start
    for slot in sorted(reservations, key=lambda s: s.start):
        gap_end = min(slot.start, window.end)
        if cursor < gap_end:
            gaps.append(TimeSlot(start=cursor, end=gap_end))
        cursor = max(cursor, slot.end)
    if cursor < window.end:
        gaps.append(TimeSlot(start=cursor, end=window.end))
    return gaps


def check_interval(slot: TimeSlot) -> TimeSlot:
    """Reject intervals that are empty, reversed or outside the day."""
    if not 0 <= slot.start < MINUTES_PER_DAY:
        raise InvalidIntervalError(f"Start {slot.start_time} is outside the day.")
    if slot.end > MINUTES_PER_DAY:
        raise InvalidIntervalError(f"End {slot.end_time} is outside the day.")
    if slot.end <= slot.start:
        raise InvalidIntervalError(f"End {slot.end_time} must be after start {slot.start_time}.")
    return slot


def make_slot(start: str, end: str) -> TimeSlot:
    """Build a validated interval from two ``HH:MM`` strings."""
    return check_interval(TimeSlot(start=parse_time(start), end=parse_time(end)))


def find_conflict(proposed: TimeSlot, reservations: Iterable[Reservation]) -> Optional[Reservation]:
    """Return the earliest reservation overlapping ``proposed``, if any."""
    overlapping = [r for r in reservations if r.slot.overlaps(proposed)]
    if not overlapping:
        return None
    return min(overlapping, key=lambda r: (r.slot.start, r.slot.end))


def is_available(
    proposed: TimeSlot,
    gaps: Sequence[TimeSlot],
    reservations: Sequence[TimeSlot],
    window: TimeSlot,
) -> bool:
    """Decide whether ``proposed`` may be booked.

    Inside working hours the interval must fit entirely in one gap. When it
    reaches outside working hours, gaps do not apply and only overlap with an
    existing reservation denies it.

    Raises:
        InvalidIntervalError: if ``proposed`` is not a valid interval.
    """
    check_interval(proposed)
    if proposed.start >= window.start and proposed.end <= window.end:
        return any(gap.contains(proposed) for gap in gaps)
    return not any(slot.overlaps(proposed) for slot in reservations)


def check_booking(proposed: TimeSlot, availability: RoomAvailability, window: TimeSlot) -> BookingDecision:
    """Admit or deny ``proposed`` and name the conflicting reservation on denial."""
    available = is_available(
        proposed,
        availability.available_slots,
        [r.slot for r in availability.reservations],
        window,
    )
    if available:
        return BookingDecision(available=True)
    return BookingDecision(available=False, conflict=find_conflict(proposed, availability.reservations))


def build_availability(
    rooms: Sequence[MeetingRoom],
    date: str,
    records: Optional[Iterable[Any]],
    window: TimeSlot,
) -> List[RoomAvailability]:
    """Normalize ``records`` and compute reservations and gaps for every room."""
    reservations = normalize_reservations(records, date, [room.name for room in rooms], window)
    by_room: Dict[str, List[Reservation]] = defaultdict(list)
    for reservation in reservations:
        by_room[reservation.room_name].append(reservation)

    result: List[RoomAvailability] = []
    for room in rooms:
        room_reservations = by_room.get(room.name, [])
        result.append(
            RoomAvailability(
                room=room,
                date=date,
                reservations=room_reservations,
                available_slots=compute_gaps([r.slot for r in room_reservations], window),
            )
        )
    return result
