"""Slack message formatting: Block Kit availability, replies and help text."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from .display import build_timeline, is_free_all_day
from .models import Reservation, RoomAvailability, TimeSlot
from .timeutil import DEFAULT_TIMEZONE, format_date_display

MAX_MESSAGE_LENGTH = 500
PARTS_PER_LINE = 3


def _room_text(availability: RoomAvailability, window: TimeSlot) -> str:
    room = availability.room
    lines = [f"*🏢 {room.name} ({room.floor})*"]
    if is_free_all_day(availability, window):
        lines.append("✅ Available all day")
        return "\n".join(lines)

    parts = []
    for slot, reservation in build_timeline(availability):
        if reservation is None:
            parts.append(f"✅ {slot}")
        else:
            parts.append(f"❌ {slot} _{reservation.reserver_name}_")
    for i in range(0, len(parts), PARTS_PER_LINE):
        lines.append(" | ".join(parts[i : i + PARTS_PER_LINE]))
    return "\n".join(lines)


def format_slack_blocks(
    availabilities: Sequence[RoomAvailability],
    date: str,
    window: TimeSlot,
    *,
    tz: str = DEFAULT_TIMEZONE,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    checked_at = (now or datetime.now(ZoneInfo(tz))).strftime("%H:%M:%S")
    blocks: List[Dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": f"📅 {format_date_display(date, tz=tz)} meeting rooms", "emoji": True},
        },
        {"type": "divider"},
    ]
    for availability in availabilities:
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": _room_text(availability, window)}})
    blocks.append({"type": "divider"})
    blocks.append({"type": "context", "elements": [{"type": "mrkdwn", "text": f"🔄 Checked at {checked_at}"}]})
    return blocks


def format_slack_text(
    availabilities: Sequence[RoomAvailability],
    date: str,
    window: TimeSlot,
    *,
    tz: str = DEFAULT_TIMEZONE,
) -> str:
    """Plain-text fallback for clients without Block Kit."""
    lines = [f"📅 {format_date_display(date, tz=tz)} meeting rooms", "─" * 30]
    for availability in availabilities:
        room = availability.room
        lines.append("")
        lines.append(f"🏢 {room.name} ({room.floor})")
        if is_free_all_day(availability, window):
            lines.append("  ✅ Available all day")
            continue
        for slot, reservation in build_timeline(availability):
            if reservation is None:
                lines.append(f"  ✅ {slot}")
            else:
                lines.append(f"  ❌ {slot} ({reservation.reserver_name})")
    return "\n".join(lines)


def format_reservation_success(
    room_name: str, floor: str, date: str, slot: TimeSlot, title: str, *, tz: str = DEFAULT_TIMEZONE
) -> str:
    return "\n".join(
        [
            "✅ *Room reserved*",
            f"   🏢 {room_name} ({floor})" if floor else f"   🏢 {room_name}",
            f"   📅 {format_date_display(date, tz=tz)} {slot}",
            f"   📝 {title}",
        ]
    )


def format_conflict(conflict: Reservation) -> str:
    return f"   ❌ {conflict.start_time}-{conflict.end_time} ({conflict.reserver_name or 'unknown'})"


def format_reservation_error(message: str, conflict: Optional[Reservation] = None) -> str:
    lines = ["❌ *Reservation failed*", f"   {message}"]
    if conflict is not None:
        lines.append(format_conflict(conflict))
    lines.append("   Pick another time or room and try again.")
    return "\n".join(lines)


def format_schedule_success(
    date: str, slot: TimeSlot, title: str, attendees: Sequence[str], *, tz: str = DEFAULT_TIMEZONE
) -> str:
    lines = ["📅 *Calendar event created*", f"   {format_date_display(date, tz=tz)} {slot}", f"   📝 {title}"]
    if attendees:
        lines.append(f"   Invited: {', '.join(attendees)}")
    return "\n".join(lines)


def format_schedule_error(message: str) -> str:
    return f"❌ *Calendar event failed*\n   {message}"


def format_help_message(room_names: Sequence[str]) -> str:
    return "\n".join(
        [
            "*🏢 Meeting room bot*",
            "",
            "*Check availability*",
            "• `@bot 회의실 오늘` / `@bot room today`",
            "• `@bot 회의실 251210` (YYMMDD or YYYY-MM-DD)",
            "• `@bot 회의실 251210 1000` (check one start time)",
            "",
            "*Reserve a room* (duration in hours, 0.5 steps)",
            '• `@bot 회의실 예약 251210 1000 R3.1 1 "Team meeting" @user1 @user2`',
            "",
            "*Calendar event only*",
            '• `@bot 일정 251210 1000 1 "Weekly sync" @user1`',
            "",
            f"Rooms: {', '.join(room_names)}",
        ]
    )


def split_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> List[str]:
    """Split ``text`` into chunks of at most ``max_length``, preferring line breaks."""
    chunks: List[str] = []
    remaining = text
    while remaining:
        if len(remaining) <= max_length:
            chunks.append(remaining)
            break
        split_at = remaining.rfind("\n", 0, max_length)
        if split_at < max_length * 0.5:
            split_at = remaining.rfind(" ", 0, max_length)
        if split_at < max_length * 0.5:
            split_at = max_length
        chunks.append(remaining[:split_at].strip())
        remaining = remaining[split_at:].strip()
    return chunks
