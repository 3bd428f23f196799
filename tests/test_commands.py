import unittest
from datetime import date

from roombook.commands import RESERVE_USAGE, CommandType, clean_text, extract_mentions, parse_command
from roombook.rooms import TARGET_ROOMS

ROOM_NAMES = [room.name for room in TARGET_ROOMS]
REFERENCE = date(2025, 12, 3)


def parse(text):
    return parse_command(text, ROOM_NAMES, reference=REFERENCE)


class MentionTest(unittest.TestCase):
    def test_bot_mention_is_not_an_attendee(self):
        self.assertEqual(extract_mentions("<@UBOT> 회의실 <@U111> <@U222>"), ["U111", "U222"])

    def test_clean_text_unwraps_tel_links(self):
        self.assertEqual(clean_text("<@UBOT> 회의실 <tel:2512121300|251212 1300>"), "회의실 251212 1300")


class ParseCommandTest(unittest.TestCase):
    def test_help(self):
        self.assertIs(parse("<@UBOT> 회의실 도움말").type, CommandType.HELP)
        self.assertIs(parse("<@UBOT> help").type, CommandType.HELP)

    def test_check_today_and_dates(self):
        command = parse("<@UBOT> 회의실 오늘")
        self.assertIs(command.type, CommandType.CHECK)
        self.assertEqual(command.date, "2025-12-03")
        self.assertIsNone(command.time)

        command = parse("<@UBOT> room 251210 1000")
        self.assertEqual((command.date, command.time), ("2025-12-10", "10:00"))

    def test_bare_room_keyword_means_today(self):
        command = parse("<@UBOT> 회의실")
        self.assertIs(command.type, CommandType.CHECK)
        self.assertEqual(command.date, "2025-12-03")

    def test_bad_check_date(self):
        command = parse("<@UBOT> 회의실 someday")
        self.assertIs(command.type, CommandType.CHECK)
        self.assertIn("Invalid date", command.error)

    def test_reserve(self):
        command = parse('<@UBOT> 회의실 예약 251210 1000 r3.1 1.5 "Team sync" <@U111> <@U222>')
        self.assertIs(command.type, CommandType.RESERVE)
        self.assertIsNone(command.error)
        self.assertEqual(command.date, "2025-12-10")
        self.assertEqual(command.time, "10:00")
        self.assertEqual(command.room, "R3.1")
        self.assertEqual(command.duration, 1.5)
        self.assertEqual(command.title, "Team sync")
        self.assertEqual(command.attendee_ids, ["U111", "U222"])

    def test_reserve_without_title(self):
        command = parse("<@UBOT> room book tomorrow 1400 R2.2 1")
        self.assertEqual((command.room, command.date, command.title), ("R2.2", "2025-12-04", None))

    def test_reserve_validation(self):
        self.assertIn("between", parse("<@UBOT> 회의실 예약 251210 1000 R3.1 9").error)
        self.assertIn("30 minute", parse("<@UBOT> 회의실 예약 251210 1000 R3.1 1.25").error)
        self.assertIn("Unknown room", parse("<@UBOT> 회의실 예약 251210 1000 R3.4 1").error)

    def test_incomplete_reserve_shows_usage(self):
        command = parse("<@UBOT> 회의실 예약 251210")
        self.assertIs(command.type, CommandType.RESERVE)
        self.assertEqual(command.error, RESERVE_USAGE)

    def test_schedule(self):
        command = parse('<@UBOT> 일정 251210 1000 2 "Weekly" <@U111>')
        self.assertIs(command.type, CommandType.SCHEDULE)
        self.assertEqual((command.date, command.time, command.duration), ("2025-12-10", "10:00", 2.0))
        self.assertEqual(command.title, "Weekly")
        self.assertEqual(command.attendee_ids, ["U111"])

    def test_unrelated_text_is_unknown(self):
        self.assertIs(parse("<@UBOT> good morning").type, CommandType.UNKNOWN)


if __name__ == "__main__":
    unittest.main()
