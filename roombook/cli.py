"""``mr``: check and reserve meeting rooms from the terminal.

Usage::

    mr                      interactive: date -> room -> time -> reserve
    mr today                show today's rooms (also 오늘, tomorrow, 251210)
    mr --check 2025-12-10 --time 10:00-11:00
    mr --date tomorrow --time 10:00-11:00 --room R3.1 --title "Sync"
    mr --setup              store groupware credentials in .env
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TypeVar

from dotenv import set_key

from .availability import check_booking
from .booking import RoomBookingService
from .config import ENV_PATH, Settings, validate_config
from .display import end_choices, render_availability, render_reservation_result, start_choices
from .errors import RoombookError
from .google_client import create_calendar_event
from .groupware_client import GroupwareSession
from .models import CalendarEventRequest, RoomAvailability, TimeSlot
from .timeutil import format_date_display, parse_date, parse_time_range, today

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mr",
        description="Check and reserve groupware meeting rooms.",
    )
    parser.add_argument("day", nargs="?", help="date to show: today, tomorrow, YYYY-MM-DD or YYMMDD")
    parser.add_argument("-c", "--check", metavar="DATE", help="show availability on DATE")
    parser.add_argument("-d", "--date", help="reservation date")
    parser.add_argument("-t", "--time", metavar="HH:MM-HH:MM", help="time range, e.g. 10:00-11:00")
    parser.add_argument("-r", "--room", help="room name, e.g. R3.1")
    parser.add_argument("--title", help="reservation title")
    parser.add_argument("--content", help="reservation description")
    parser.add_argument("--calendar", action="store_true", help="also create a Google Calendar event")
    parser.add_argument("--organizer", help="calendar organizer e-mail (default GOOGLE_CALENDAR_USER)")
    parser.add_argument("--headless", action="store_true", default=None, help="hide the browser window")
    parser.add_argument("--setup", action="store_true", help="store groupware credentials")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


# -- prompts -----------------------------------------------------------------


def _ask(prompt: str, *, required: bool = True, secret: bool = False) -> str:
    reader = getpass.getpass if secret else input
    while True:
        answer = reader(f"{prompt} ").strip()
        if answer or not required:
            return answer
        print("  A value is required.")


def _confirm(prompt: str, default: bool = True) -> bool:
    hint = "Y/n" if default else "y/N"
    answer = input(f"{prompt} [{hint}] ").strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")


def _choose(prompt: str, options: Sequence[T], label: Callable[[T], str] = str) -> T:
    print(prompt)
    for number, option in enumerate(options, start=1):
        print(f"  {number}) {label(option)}")
    while True:
        answer = input("> ").strip()
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return options[int(answer) - 1]
        print(f"  Enter a number between 1 and {len(options)}.")


# -- setup -------------------------------------------------------------------


def run_setup(env_path: Path = ENV_PATH) -> None:
    """Prompt for groupware credentials and write them to ``env_path``."""
    print("\nMeeting room booking: initial setup\n")
    print("Enter your groupware login.\n")
    user_id = _ask("Groupware id:")
    password = _ask("Password:", secret=True)
    env_path.touch(exist_ok=True)
    set_key(str(env_path), "GW_USER_ID", user_id)
    set_key(str(env_path), "GW_PASSWORD", password)
    print(f"\n✅ Saved to {env_path}\n")


def needs_setup(cfg: Settings, env_path: Path = ENV_PATH) -> bool:
    return not env_path.exists() and bool(validate_config(cfg))


# -- modes -------------------------------------------------------------------


def cmd_check(service: RoomBookingService, cfg: Settings, day_text: str, time_text: Optional[str]) -> int:
    day = parse_date(day_text, tz=cfg.timezone)
    filter_slot = None
    if time_text:
        start, end = parse_time_range(time_text)
        filter_slot = TimeSlot(start=start, end=end)
    print("Fetching room status...")
    availabilities = service.get_availability(day)
    print(render_availability(availabilities, service.window, filter_slot, tz=cfg.timezone))
    return 0


def _add_calendar_event(
    cfg: Settings, organizer: Optional[str], room_name: str, floor: str, day: str, slot: TimeSlot, title: str
) -> None:
    organizer = organizer or cfg.google_calendar_user
    if not organizer:
        print("⚠️ No calendar organizer; pass --organizer or set GOOGLE_CALENDAR_USER.")
        return
    location = f"{room_name} ({floor})" if floor else room_name
    event = CalendarEventRequest(
        title=f"[{room_name}] {title}",
        description=f"Meeting room: {location}",
        date=day,
        start_time=slot.start_time,
        end_time=slot.end_time,
        location=location,
    )
    result = create_calendar_event(organizer, event, cfg=cfg)
    if result.success:
        print(f"📅 Calendar event created {result.event_link or ''}".rstrip())
    else:
        print(f"⚠️ {result.message}")


def cmd_reserve(service: RoomBookingService, cfg: Settings, args: argparse.Namespace) -> int:
    day = parse_date(args.date, tz=cfg.timezone)
    start, end = parse_time_range(args.time)
    slot = TimeSlot(start=start, end=end)
    room = service.registry.room(args.room)

    print("Checking availability...")
    result = service.reserve(room.name, day, slot, args.title, args.content)
    if not result.success and result.conflict is not None:
        print(f"\n❌ {result.message}")
        print(render_availability([service.room_availability(room.name, day)], service.window, tz=cfg.timezone))
        return 1
    print(render_reservation_result(result, room.name, day, slot, tz=cfg.timezone))
    if not result.success:
        return 1
    if args.calendar:
        _add_calendar_event(cfg, args.organizer, room.name, room.floor, day, slot, args.title)
    return 0


def _pick_date(cfg: Settings) -> str:
    base = today(cfg.timezone)
    labels = {
        "today": format_date_display(base.isoformat(), tz=cfg.timezone, reference=base),
        "tomorrow": format_date_display(parse_date("tomorrow", reference=base), tz=cfg.timezone, reference=base),
        "other": "Enter a date",
    }
    choice = _choose("Choose a date:", list(labels), label=labels.__getitem__)
    while choice == "other":
        try:
            return parse_date(_ask("Date (YYYY-MM-DD):"), tz=cfg.timezone)
        except ValueError as exc:
            print(f"  {exc}")
    return parse_date(choice, tz=cfg.timezone, reference=base)


def cmd_interactive(service: RoomBookingService, cfg: Settings, args: argparse.Namespace) -> int:
    day = _pick_date(cfg)
    print("Fetching room status...")
    availabilities = service.get_availability(day)
    print(render_availability(availabilities, service.window, tz=cfg.timezone))

    if not _confirm("Make a reservation?"):
        print("\nCancelled.\n")
        return 0

    bookable: List[RoomAvailability] = [a for a in availabilities if a.available_slots]
    if not bookable:
        print("❌ No room has free time on this day.")
        return 1
    selected = _choose("Choose a room:", bookable, label=lambda a: a.room.name)

    interval = cfg.time_slot_interval
    start = _choose("Start time:", start_choices(selected, interval))
    ends = end_choices(start, selected, interval)
    if not ends:
        print(f"❌ The free time after {start} is shorter than {interval} minutes.")
        return 1
    end = _choose("End time:", ends, label=lambda c: c[0])[1]
    title = _ask("Title:")
    content = _ask("Description (optional):", required=False) or None

    print("\n📋 Reservation")
    print(f"   Room: {selected.room.name}")
    print(f"   When: {format_date_display(day, tz=cfg.timezone)} {start} - {end}")
    print(f"   Title: {title}")
    if content:
        print(f"   Description: {content}")
    if not _confirm("\nReserve?"):
        print("\nCancelled.\n")
        return 0

    start_minutes, end_minutes = parse_time_range(f"{start}-{end}")
    slot = TimeSlot(start=start_minutes, end=end_minutes)
    if not check_booking(slot, selected, service.window).available:
        print("❌ That time is no longer free.")
        return 1
    result = service.reserve(selected.room.name, day, slot, title, content)
    print(render_reservation_result(result, selected.room.name, day, slot, tz=cfg.timezone))
    if result.success and args.calendar:
        _add_calendar_event(cfg, args.organizer, selected.room.name, selected.room.floor, day, slot, title)
    return 0 if result.success else 1


# -- entry point -------------------------------------------------------------


def run(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.setup:
        run_setup()
        return 0

    cfg = Settings()
    if needs_setup(cfg):
        print("\n⚠️ Initial setup is required.\n")
        run_setup()
        cfg = Settings()

    problems = validate_config(cfg)
    if problems:
        print("❌ Configuration errors:")
        for problem in problems:
            print(f"  - {problem}")
        print("Run `mr --setup` to store your account.")
        return 1

    session = GroupwareSession(cfg, headless=args.headless)
    service = RoomBookingService(session, cfg)
    try:
        service.ensure_login(on_progress=lambda message: print(f"  {message}"))
        if args.day:
            return cmd_check(service, cfg, args.day, args.time)
        if args.check:
            return cmd_check(service, cfg, args.check, args.time)
        if args.date and args.time and args.room and args.title:
            return cmd_reserve(service, cfg, args)
        return cmd_interactive(service, cfg, args)
    except (RoombookError, ValueError) as exc:
        logger.debug("mr failed", exc_info=True)
        print(f"❌ {exc}")
        return 1
    except KeyboardInterrupt:
        print("\nCancelled.")
        return 130
    finally:
        session.close()


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
