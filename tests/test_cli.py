import io
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest import mock

from dotenv import dotenv_values
from fakes import DATE, FakeSession, make_settings, record

from roombook import cli
from roombook.booking import RoomBookingService
from roombook.models import ReservationResult


class CliTest(unittest.TestCase):
    def setUp(self):
        self.cfg = make_settings()
        self.session = FakeSession(records=[record("R3.1", "10:00", "11:00")], tree=[])
        self.service = RoomBookingService(self.session, self.cfg)

    def run_quietly(self, fn, *args):
        out = io.StringIO()
        with redirect_stdout(out):
            code = fn(*args)
        return code, out.getvalue()

    def test_parser(self):
        args = cli.build_parser().parse_args(["--date", "tomorrow", "-t", "10:00-11:00", "-r", "R3.1", "--title", "x"])
        self.assertEqual((args.date, args.time, args.room, args.title), ("tomorrow", "10:00-11:00", "R3.1", "x"))
        self.assertIsNone(args.headless)
        self.assertIsNone(args.day)

    def test_check(self):
        code, out = self.run_quietly(cli.cmd_check, self.service, self.cfg, DATE, "10:30-11:00")
        self.assertEqual(code, 0)
        self.assertIn("❌ 10:30-11:00 booked: Kim", out)

    def test_direct_reservation(self):
        args = cli.build_parser().parse_args(["-d", DATE, "-t", "13:00-14:00", "-r", "r3.1", "--title", "Sync"])
        code, out = self.run_quietly(cli.cmd_reserve, self.service, self.cfg, args)
        self.assertEqual(code, 0)
        self.assertIn("Reservation complete", out)
        self.assertEqual(self.session.submitted[0][1], "R3.1")

    def test_direct_reservation_conflict(self):
        args = cli.build_parser().parse_args(["-d", DATE, "-t", "10:30-11:30", "-r", "R3.1", "--title", "Sync"])
        code, out = self.run_quietly(cli.cmd_reserve, self.service, self.cfg, args)
        self.assertEqual(code, 1)
        self.assertIn("already booked", out)
        self.assertEqual(self.session.submitted, [])

    def test_direct_reservation_refused(self):
        self.session.submit_result = ReservationResult(success=False, message="Refused")
        args = cli.build_parser().parse_args(["-d", DATE, "-t", "13:00-14:00", "-r", "R3.1", "--title", "Sync"])
        code, out = self.run_quietly(cli.cmd_reserve, self.service, self.cfg, args)
        self.assertEqual(code, 1)
        self.assertIn("Refused", out)

    def test_interactive(self):
        # date: other -> DATE, reserve, room 1 (R2.1), start 09:00, end 10:00, title, no content, confirm
        answers = ["3", DATE, "y", "1", "1", "2", "Planning", "", "y"]
        args = cli.build_parser().parse_args([])
        with mock.patch("builtins.input", side_effect=answers):
            code, out = self.run_quietly(cli.cmd_interactive, self.service, self.cfg, args)
        self.assertEqual(code, 0)
        request, room_name = self.session.submitted[0]
        self.assertEqual((room_name, str(request.slot), request.title), ("R2.1", "09:00-10:00", "Planning"))

    def test_setup_writes_env(self):
        with tempfile.TemporaryDirectory() as tmp:
            env_path = Path(tmp) / ".env"
            with mock.patch("builtins.input", return_value="kim"), mock.patch(
                "getpass.getpass", return_value="pw"
            ), redirect_stdout(io.StringIO()):
                cli.run_setup(env_path)
            self.assertEqual(dotenv_values(env_path), {"GW_USER_ID": "kim", "GW_PASSWORD": "pw"})

    def test_run_reports_missing_credentials(self):
        with mock.patch.object(cli, "Settings", return_value=make_settings(GW_USER_ID="", GW_PASSWORD="")), mock.patch.object(
            cli, "needs_setup", return_value=False
        ):
            code, out = self.run_quietly(cli.run, ["today"])
        self.assertEqual(code, 1)
        self.assertIn("GW_USER_ID", out)


if __name__ == "__main__":
    unittest.main()
