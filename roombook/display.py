"""Console rendering for the ``mr`` command.

Functions here build plain strings; the CLI decides where to print them.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .availability import check_booking
from .models import Reservation, ReservationResult, RoomAvailability, TimeSlot
from .timeutil import DEFAULT_TIMEZONE, format_date_display, format_minutes, parse_time

RULE = "─" * 50

TimelineEntry = Tuple[TimeSlot, Optional[Reservation]]


def build_timeline(availability: RoomAvailability) -> List[TimelineEntry]:
    """Free gaps (reservation None) and reservations merged in start order."""
    entries: List[TimelineEntry] = [(gap, None) for gap in availability.available_slots]
    entries.extend((r.slot, r) for r in availability.reservations)
    entries.sort(key=lambda entry: (entry[0].start, entry[1] is not None))
    return entries


def is_free_all_day(availability: RoomAvailability, window: TimeSlot) -> bool:
    return not availability.reservations and availability.available_slots == [window]


def format_duration(minutes: int) -> str:
    hours, rest = divmod(minutes, 60)
    if not hours:
        return f"{rest}m"
    return f"{hours}h {rest}m" if rest else f"{hours}h"


def render_room(availability: RoomAvailability, window: TimeSlot, filter_slot: Optional[TimeSlot] = None) -> str:
    room = availability.room
    lines = [f"{room.name} ({room.floor})" if room.floor else room.name]

    if filter_slot is not None:
        decision = check_booking(filter_slot, availability, window)
        if decision.available:
            lines.append(f"  ✅ {filter_slot} available")
        elif decision.conflict is not None:
            lines.append(f"  ❌ {filter_slot} booked: {decision.conflict.reserver_name}")
        else:
            lines.append(f"  ❌ {filter_slot} not available")
        return "\n".join(lines)

    if is_free_all_day(availability, window):
        lines.append("  ✅ Available all day")
        return "\n".join(lines)

    timeline = build_timeline(availability)
    if not timeline:
        lines.append("  ⚠️ No information")
    for slot, reservation in timeline:
        if reservation is None:
            lines.append(f"  ✅ {slot}")
        else:
            lines.append(f"  ❌ {slot} ({reservation.reserver_name})")
    return "\n".join(lines)


def render_availability(
    availabilities: Sequence[RoomAvailability],
    window: TimeSlot,
    filter_slot: Optional[TimeSlot] = None,
    *,
    tz: str = DEFAULT_TIMEZONE,
) -> str:
    if not availabilities:
        return "No rooms found."
    date = availabilities[0].date
    parts = ["", f"📅 {format_date_display(date, tz=tz)} meeting rooms", RULE]
    for availability in availabilities:
        parts.append("")
        parts.append(render_room(availability, window, filter_slot))
    parts.append("")
    return "\n".join(parts)


def render_reservation_result(
    result: ReservationResult,
    room_name: str,
    date: str,
    slot: TimeSlot,
    *,
    tz: str = DEFAULT_TIMEZONE,
) -> str:
    if result.success:
        return "\n".join(
            [
                "",
                "✅ Reservation complete!",
                f"   Room: {room_name}",
                f"   When: {format_date_display(date, tz=tz)} {slot}",
                "",
            ]
        )
    return "\n".join(["", "❌ Reservation failed", f"   {result.message}", ""])


def start_choices(availability: RoomAvailability, interval: int = 30) -> List[str]:
    """Start times at ``interval`` steps inside every free gap."""
    choices: List[str] = []
    for gap in availability.available_slots:
        current = gap.start
        while current < gap.end:
            choices.append(format_minutes(current))
            current += interval
    return choices


def end_choices(start: str, availability: RoomAvailability, interval: int = 30) -> List[Tuple[str, str]]:
    """``(label, value)`` end times from ``start`` up to the end of its gap."""
    start_minutes = parse_time(start)
    gap = next(
        (g for g in availability.available_slots if g.start <= start_minutes < g.end),
        None,
    )
    if gap is None:
        return []
    choices: List[Tuple[str, str]] = []
    current = start_minutes + interval
    while current <= gap.end:
        value = format_minutes(current)
        choices.append((f"{value} ({format_duration(current - start_minutes)})", value))
        current += interval
    return choices
