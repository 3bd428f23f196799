import time
import unittest
from datetime import timedelta

from fakes import FakeSay, FakeSession, FakeSlackClient, make_settings, record

from roombook.booking import RoomBookingService
from roombook.models import CalendarEventResult
from roombook.slack_bot import RoomBot, SessionKeepAlive
from roombook.timeutil import today

TZ = "Asia/Seoul"
USERS = {
    "UREQ": {"real_name": "Kim Minji", "profile": {"email": "minji@example.com"}},
    "U111": {"real_name": "Lee", "profile": {"email": "lee@example.com"}},
    "U222": {"real_name": "Park", "profile": {}},
}


class FakeCalendar:
    def __init__(self, result=None):
        self.result = result or CalendarEventResult(success=True, message="ok", event_id="evt")
        self.calls = []

    def __call__(self, organizer, event, cfg=None):
        self.calls.append((organizer, event))
        return self.result


class RoomBotTest(unittest.TestCase):
    def setUp(self):
        self.day = (today(TZ) + timedelta(days=7)).isoformat()
        self.short_day = self.day[2:].replace("-", "")
        self.session = FakeSession(records=[record("R3.1", "10:00", "11:00", day=self.day)], tree=[])
        self.cfg = make_settings(GOOGLE_SERVICE_ACCOUNT_JSON='{"type": "service_account"}', TIMEZONE=TZ)
        self.service = RoomBookingService(self.session, self.cfg)
        self.calendar = FakeCalendar()
        self.bot = RoomBot(self.service, self.cfg, calendar_creator=self.calendar)
        self.client = FakeSlackClient(USERS)
        self.say = FakeSay()

    def mention(self, text, **extra):
        event = {"text": f"<@UBOT> {text}", "user": "UREQ", "channel": "C1", "ts": "100.1", **extra}
        self.bot.handle_mention(event, self.client, self.say)

    def test_unknown_is_ignored(self):
        self.mention("good morning")
        self.assertEqual(self.say.messages, [])

    def test_help_replies_in_thread(self):
        self.mention("회의실 도움말", thread_ts="99.0")
        self.assertEqual(self.say.messages[0]["thread_ts"], "99.0")
        self.assertIn("R3.5", self.say.messages[0]["text"])

    def test_parse_error_is_reported(self):
        self.mention("회의실 예약 251210 1000 R3.1 9")
        self.assertTrue(self.say.messages[0]["text"].startswith("❌"))

    def test_check_updates_progress_message(self):
        self.mention(f"회의실 {self.short_day} 1030")
        self.assertIn("Checking", self.say.messages[0]["text"])
        update = self.client.updates[0]
        self.assertEqual((update["channel"], update["ts"]), ("C1", "1.000"))
        self.assertIn("R3.1", update["text"])
        self.assertIn("Free at 10:30-11:00: R2.1, R2.2, R3.2, R3.3, R3.5", update["text"])
        self.assertTrue(update["blocks"])

    def test_check_failure(self):
        self.session.fail_fetch = True
        self.mention(f"회의실 {self.short_day}")
        self.assertIn("Check failed", self.client.updates[0]["text"])

    def test_reserve_with_calendar(self):
        self.mention(f'회의실 예약 {self.short_day} 1300 R3.1 1 "Sync" <@U111> <@U222>')
        self.assertIn("Reserving R3.1", self.say.messages[0]["text"])
        request, room_name = self.session.submitted[0]
        self.assertEqual((room_name, str(request.slot), request.title), ("R3.1", "13:00-14:00", "Sync"))
        organizer, event = self.calendar.calls[0]
        self.assertEqual(organizer, "minji@example.com")
        self.assertEqual(event.title, "[R3.1] Sync")
        self.assertEqual(event.location, "R3.1 (3F)")
        self.assertEqual(event.attendees, ["lee@example.com"])
        text = self.client.updates[0]["text"]
        self.assertIn("Room reserved", text)
        self.assertIn("Google Calendar event created", text)

    def test_reserve_default_title(self):
        self.mention(f"회의실 예약 {self.short_day} 1300 R2.1 0.5")
        request, _ = self.session.submitted[0]
        self.assertEqual(request.title, "Kim Minji meeting")
        self.assertEqual(str(request.slot), "13:00-13:30")

    def test_reserve_conflict_names_reservation(self):
        self.mention(f'회의실 예약 {self.short_day} 1030 R3.1 1 "Sync"')
        self.assertEqual(self.session.submitted, [])
        self.assertEqual(self.calendar.calls, [])
        text = self.client.updates[0]["text"]
        self.assertIn("Reservation failed", text)
        self.assertIn("10:00-11:00 (Kim)", text)

    def test_reserve_login_failure(self):
        self.session.login_ok = False
        self.mention(f'회의실 예약 {self.short_day} 1300 R3.1 1 "Sync"')
        self.assertIn("login failed", self.client.updates[0]["text"])

    def test_reserve_past_midnight(self):
        self.mention(f'회의실 예약 {self.short_day} 2330 R3.1 1 "Late"')
        self.assertIn("past midnight", self.say.messages[0]["text"])
        self.assertEqual(self.client.updates, [])

    def test_calendar_failure_keeps_reservation(self):
        self.calendar.result = CalendarEventResult(success=False, message="Calendar event failed: 403")
        self.mention(f'회의실 예약 {self.short_day} 1300 R3.1 1 "Sync"')
        text = self.client.updates[0]["text"]
        self.assertIn("Room reserved", text)
        self.assertIn("Calendar event failed: 403", text)

    def test_schedule(self):
        self.mention(f'일정 {self.short_day} 1000 1.5 "Weekly" <@U111>')
        organizer, event = self.calendar.calls[0]
        self.assertEqual((event.start_time, event.end_time), ("10:00", "11:30"))
        self.assertEqual(event.attendees, ["lee@example.com"])
        self.assertIn("Calendar event created", self.client.updates[0]["text"])
        self.assertEqual(self.session.submitted, [])

    def test_schedule_without_calendar(self):
        bot = RoomBot(self.service, make_settings(), calendar_creator=self.calendar)
        event = {"text": f'<@UBOT> 일정 {self.short_day} 1000 1 "Weekly"', "user": "UREQ", "channel": "C1", "ts": "1"}
        bot.handle_mention(event, self.client, self.say)
        self.assertIn("not configured", self.client.updates[0]["text"])
        self.assertEqual(self.calendar.calls, [])


class KeepAliveTest(unittest.TestCase):
    def test_logs_in_again_when_dropped(self):
        session = FakeSession(tree=[])
        service = RoomBookingService(session, make_settings())
        keepalive = SessionKeepAlive(service, interval=0.01)
        keepalive.start()
        try:
            for _ in range(200):
                if session.is_authenticated:
                    break
                time.sleep(0.01)
        finally:
            keepalive.stop()
            keepalive.join(timeout=1)
        self.assertTrue(session.is_authenticated)
        self.assertFalse(keepalive.is_alive())

    def test_login_failure_is_logged(self):
        session = FakeSession(tree=[], login_ok=False)
        service = RoomBookingService(session, make_settings())
        keepalive = SessionKeepAlive(service, interval=0.01)
        with self.assertLogs("roombook.slack_bot", level="ERROR"):
            keepalive.start()
            keepalive.join(timeout=0.2)
        keepalive.stop()
        keepalive.join(timeout=1)


if __name__ == "__main__":
    unittest.main()
