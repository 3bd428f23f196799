"""Slack bot answering ``@bot`` mentions with room availability and bookings.

The bot runs in Socket Mode (``roombook-slack``) or behind the FastAPI app in
HTTP mode (``POST /slack/events``). Each mention gets a progress message in
its thread, which is then updated in place with the outcome.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence

from slack_bolt import App
from slack_sdk.errors import SlackApiError

from .availability import check_booking, make_slot
from .booking import RoomBookingService
from .commands import CommandType, ParsedCommand, parse_command
from .config import Settings, settings, validate_config
from .errors import InvalidIntervalError, RoombookError
from .google_client import create_calendar_event, is_calendar_enabled
from .groupware_client import GroupwareSession
from .models import CalendarEventRequest, RoomAvailability, TimeSlot
from .slack_format import (
    format_help_message,
    format_reservation_error,
    format_reservation_success,
    format_schedule_error,
    format_schedule_success,
    format_slack_blocks,
    format_slack_text,
    split_message,
)
from .timeutil import MINUTES_PER_DAY, calculate_end_time, format_date_display, parse_time

logger = logging.getLogger(__name__)

DEFAULT_USER_NAME = "Someone"

CalendarCreator = Callable[..., Any]


class RoomBot:
    """Routes parsed mentions to the booking service and Google Calendar."""

    def __init__(
        self,
        service: RoomBookingService,
        cfg: Optional[Settings] = None,
        calendar_creator: CalendarCreator = create_calendar_event,
    ):
        self.service = service
        self.cfg = cfg or settings
        self.create_event = calendar_creator

    @property
    def window(self) -> TimeSlot:
        return self.cfg.work_window

    # -- Slack lookups -------------------------------------------------------

    def _user_profile(self, client, user_id: Optional[str]) -> Dict[str, str]:
        if not user_id:
            return {"name": DEFAULT_USER_NAME, "email": ""}
        try:
            user = client.users_info(user=user_id)["user"]
        except SlackApiError as exc:
            logger.warning("Could not look up Slack user %s: %s", user_id, exc)
            return {"name": DEFAULT_USER_NAME, "email": ""}
        profile = user.get("profile") or {}
        return {
            "name": user.get("real_name") or user.get("name") or DEFAULT_USER_NAME,
            "email": profile.get("email") or "",
        }

    def attendee_emails(self, client, user_ids: Sequence[str]) -> List[str]:
        """E-mail addresses of the mentioned users; users without one are skipped."""
        emails: List[str] = []
        for user_id in user_ids:
            email = self._user_profile(client, user_id)["email"]
            if email and email not in emails:
                emails.append(email)
        return emails

    # -- entry point ---------------------------------------------------------

    def handle_mention(self, event: Dict[str, Any], client, say) -> None:
        """``app_mention`` listener."""
        thread_ts = event.get("thread_ts") or event.get("ts")
        command = parse_command(
            event.get("text") or "",
            self.service.registry.names,
            tz=self.cfg.timezone,
        )
        logger.info("Mention from %s parsed as %s", event.get("user"), command.type.value)

        if command.type is CommandType.UNKNOWN:
            return
        if command.type is CommandType.HELP:
            say(text=format_help_message(self.service.registry.names), thread_ts=thread_ts)
            return
        if command.error:
            say(text=f"❌ {command.error}", thread_ts=thread_ts)
            return

        channel = event.get("channel")
        if command.type is CommandType.CHECK:
            self.handle_check(channel, thread_ts, client, say, command)
            return

        user = self._user_profile(client, event.get("user"))
        organizer = user["email"] or self.cfg.google_calendar_user
        if command.type is CommandType.RESERVE:
            title = command.title or f"{user['name']} meeting"
            self.handle_reserve(channel, thread_ts, client, say, command, title, organizer)
        elif command.type is CommandType.SCHEDULE:
            self.handle_schedule(channel, thread_ts, client, say, command, organizer)

    # -- handlers ------------------------------------------------------------

    def _free_rooms_at(self, availabilities: Sequence[RoomAvailability], slot: TimeSlot) -> List[str]:
        return [a.room.name for a in availabilities if check_booking(slot, a, self.window).available]

    def handle_check(self, channel: str, thread_ts: str, client, say, command: ParsedCommand) -> None:
        tz = self.cfg.timezone
        loading = say(
            text=f"🔍 Checking meeting rooms for {format_date_display(command.date, tz=tz)}...",
            thread_ts=thread_ts,
        )
        try:
            availabilities = self.service.get_availability(command.date)
            if not availabilities:
                raise RoombookError("No meeting room information available.")
            blocks = format_slack_blocks(availabilities, command.date, self.window, tz=tz)
            text = format_slack_text(availabilities, command.date, self.window, tz=tz)
            if command.time:
                start = parse_time(command.time)
                slot = TimeSlot(start=start, end=min(start + self.cfg.time_slot_interval, MINUTES_PER_DAY))
                free = self._free_rooms_at(availabilities, slot)
                summary = f"📍 Free at {slot}: {', '.join(free) if free else 'none'}"
                text += f"\n\n{summary}"
                blocks.insert(-1, {"type": "section", "text": {"type": "mrkdwn", "text": summary}})
            client.chat_update(channel=channel, ts=loading["ts"], blocks=blocks, text=text)
        except (RoombookError, ValueError) as exc:
            logger.error("Availability check for %s failed: %s", command.date, exc)
            client.chat_update(channel=channel, ts=loading["ts"], text=f"❌ Check failed: {exc}")

    def handle_reserve(
        self,
        channel: str,
        thread_ts: str,
        client,
        say,
        command: ParsedCommand,
        title: str,
        organizer: str,
    ) -> None:
        tz = self.cfg.timezone
        try:
            end_time = calculate_end_time(command.time, command.duration)
        except InvalidIntervalError as exc:
            say(text=f"❌ {exc}", thread_ts=thread_ts)
            return
        loading = say(
            text=(
                f"🔄 Reserving {command.room}... "
                f"({format_date_display(command.date, tz=tz)} {command.time}-{end_time})"
            ),
            thread_ts=thread_ts,
        )
        try:
            slot = make_slot(command.time, end_time)
            room = self.service.registry.room(command.room)
            result = self.service.reserve(room.name, command.date, slot, title)
        except RoombookError as exc:
            logger.error("Reservation of %s failed: %s", command.room, exc)
            client.chat_update(channel=channel, ts=loading["ts"], text=format_reservation_error(str(exc)))
            return

        if not result.success:
            client.chat_update(
                channel=channel,
                ts=loading["ts"],
                text=format_reservation_error(result.message, result.conflict),
            )
            return

        message = format_reservation_success(room.name, room.floor, command.date, slot, title, tz=tz)
        if is_calendar_enabled(self.cfg) and organizer:
            attendees = self.attendee_emails(client, command.attendee_ids)
            location = f"{room.name} ({room.floor})" if room.floor else room.name
            event = CalendarEventRequest(
                title=f"[{room.name}] {title}",
                description=f"Meeting room: {location}\nReserved on the groupware portal",
                date=command.date,
                start_time=slot.start_time,
                end_time=slot.end_time,
                location=location,
                attendees=attendees,
            )
            calendar = self.create_event(organizer, event, cfg=self.cfg)
            if calendar.success:
                message += "\n\n📅 Google Calendar event created"
                if attendees:
                    message += f"\n   Invited: {', '.join(attendees)}"
            else:
                message += f"\n\n⚠️ Calendar event failed: {calendar.message}"
        client.chat_update(channel=channel, ts=loading["ts"], text=message)

    def handle_schedule(
        self,
        channel: str,
        thread_ts: str,
        client,
        say,
        command: ParsedCommand,
        organizer: str,
    ) -> None:
        tz = self.cfg.timezone
        try:
            end_time = calculate_end_time(command.time, command.duration)
        except InvalidIntervalError as exc:
            say(text=f"❌ {exc}", thread_ts=thread_ts)
            return
        loading = say(
            text=f"📅 Creating event... ({format_date_display(command.date, tz=tz)} {command.time}-{end_time})",
            thread_ts=thread_ts,
        )
        if not is_calendar_enabled(self.cfg):
            client.chat_update(
                channel=channel, ts=loading["ts"], text=format_schedule_error("Google Calendar is not configured.")
            )
            return
        if not organizer:
            client.chat_update(
                channel=channel, ts=loading["ts"], text=format_schedule_error("Could not look up your e-mail address.")
            )
            return

        attendees = self.attendee_emails(client, command.attendee_ids)
        event = CalendarEventRequest(
            title=command.title,
            date=command.date,
            start_time=command.time,
            end_time=end_time,
            attendees=attendees,
        )
        result = self.create_event(organizer, event, cfg=self.cfg)
        if result.success:
            slot = make_slot(command.time, end_time)
            text = format_schedule_success(command.date, slot, command.title, attendees, tz=tz)
        else:
            text = format_schedule_error(result.message)
        chunks = split_message(text)
        client.chat_update(channel=channel, ts=loading["ts"], text=chunks[0])
        for chunk in chunks[1:]:
            say(text=chunk, thread_ts=thread_ts)


def create_app(on_mention: Callable[..., None], cfg: Optional[Settings] = None) -> App:
    """Bolt app with ``on_mention(event, client, say)`` listening to ``app_mention``."""
    cfg = cfg or settings
    app = App(token=cfg.slack_bot_token, signing_secret=cfg.slack_signing_secret or None)
    app.event("app_mention")(on_mention)
    return app


class SessionKeepAlive(threading.Thread):
    """Logs the groupware session back in every ``interval`` seconds if it dropped."""

    def __init__(self, service: RoomBookingService, interval: float):
        super().__init__(name="session-keepalive", daemon=True)
        self.service = service
        self.interval = interval
        self._stop_event = threading.Event()

    def run(self) -> None:
        while not self._stop_event.wait(self.interval):
            if self.service.session.is_authenticated:
                continue
            logger.info("Groupware session dropped; logging in again")
            try:
                self.service.ensure_login()
            except RoombookError as exc:
                logger.error("Keep-alive login failed: %s", exc)

    def stop(self) -> None:
        self._stop_event.set()


def run_socket_mode(cfg: Optional[Settings] = None) -> int:
    from slack_bolt.adapter.socket_mode import SocketModeHandler

    cfg = cfg or settings
    problems = validate_config(cfg)
    if not cfg.slack_configured:
        problems.append("SLACK_BOT_TOKEN and SLACK_APP_TOKEN are required.")
    if problems:
        for problem in problems:
            logger.error("Configuration error: %s", problem)
        return 1

    session = GroupwareSession(cfg, headless=True)
    service = RoomBookingService(session, cfg)
    keepalive = SessionKeepAlive(service, cfg.keepalive_minutes * 60)
    try:
        try:
            service.ensure_login()
            logger.info("Logged in to groupware")
        except RoombookError as exc:
            logger.error("Initial groupware login failed, starting anyway: %s", exc)
        logger.info("Google Calendar %s", "enabled" if is_calendar_enabled(cfg) else "disabled (not configured)")

        app = create_app(RoomBot(service, cfg).handle_mention, cfg)
        keepalive.start()
        logger.info("Slack bot running in Socket Mode")
        SocketModeHandler(app, cfg.slack_app_token).start()
    finally:
        keepalive.stop()
        session.close()
    return 0


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    raise SystemExit(run_socket_mode())


if __name__ == "__main__":
    main()
