import unittest

from fakes import DATE, FakeSession, make_settings, record

from roombook.availability import make_slot
from roombook.booking import RoomBookingService
from roombook.errors import GroupwareError, InvalidIntervalError, LoginError, UnknownRoomError
from roombook.models import ReservationResult, TimeSlot
from roombook.rooms import FALLBACK_RES_SEQ

TREE = [{"resNm": "R3.1", "resSeq": "3001"}]


class RoomBookingServiceTest(unittest.TestCase):
    def setUp(self):
        self.session = FakeSession(records=[record("R3.1", "10:30", "11:30")], tree=TREE)
        self.service = RoomBookingService(self.session, make_settings())

    def test_login_loads_resource_ids(self):
        self.service.ensure_login()
        self.service.ensure_login()
        self.assertEqual(self.session.logins, 1)
        self.assertEqual(self.service.registry.resolve("R3.1"), 3001)

    def test_refused_login(self):
        self.session.login_ok = False
        with self.assertRaises(LoginError):
            self.service.ensure_login()

    def test_missing_tree_falls_back_to_static_ids(self):
        self.session.tree = None
        with self.assertLogs("roombook.booking", level="WARNING"):
            self.service.ensure_login()
        self.assertEqual(self.service.registry.room("R3.1").res_seq, FALLBACK_RES_SEQ["R3.1"])

    def test_every_query_fetches_a_fresh_snapshot(self):
        self.service.get_availability(DATE)
        self.session.records.append(record("R3.1", "14:00", "15:00"))
        availability = self.service.room_availability("R3.1", DATE)
        self.assertEqual(self.session.fetches, [DATE, DATE])
        self.assertEqual(len(availability.reservations), 2)

    def test_expired_session_logs_in_again(self):
        self.service.ensure_login()
        self.session.expire_next_fetch = True
        result = self.service.get_availability(DATE)
        self.assertEqual(self.session.logins, 2)
        self.assertEqual(len(result), 6)

    def test_failed_fetch_is_not_reported_as_free(self):
        self.session.fail_fetch = True
        with self.assertRaises(GroupwareError):
            self.service.get_availability(DATE)

    def test_check(self):
        self.assertFalse(self.service.check("r3.1", DATE, make_slot("10:00", "11:00")).available)
        self.assertTrue(self.service.check("R3.1", DATE, make_slot("11:30", "12:30")).available)
        with self.assertRaises(UnknownRoomError):
            self.service.check("R9.9", DATE, make_slot("10:00", "11:00"))

    def test_reserve_conflict_is_not_submitted(self):
        result = self.service.reserve("R3.1", DATE, make_slot("10:00", "11:00"), "Sync")
        self.assertFalse(result.success)
        self.assertEqual(result.conflict.reserver_name, "Kim")
        self.assertIn("10:30-11:30", result.message)
        self.assertEqual(self.session.submitted, [])

    def test_reserve_submits_with_resolved_id(self):
        result = self.service.reserve("r3.1", DATE, make_slot("13:00", "14:00"), "Sync", "notes")
        self.assertTrue(result.success)
        request, room_name = self.session.submitted[0]
        self.assertEqual(room_name, "R3.1")
        self.assertEqual(request.res_seq, 3001)
        self.assertEqual(str(request.slot), "13:00-14:00")
        self.assertEqual(request.content, "notes")

    def test_portal_refusal_is_returned(self):
        self.session.submit_result = ReservationResult(success=False, message="Already reserved")
        result = self.service.reserve("R3.1", DATE, make_slot("13:00", "14:00"), "Sync")
        self.assertFalse(result.success)
        self.assertEqual(result.message, "Already reserved")

    def test_reserve_rejects_invalid_interval(self):
        with self.assertRaises(InvalidIntervalError):
            self.service.reserve("R3.1", DATE, TimeSlot(start=600, end=540), "Sync")
        self.assertEqual(self.session.logins, 0)


if __name__ == "__main__":
    unittest.main()
