import unittest

from fakes import DATE, FakeSession, make_settings, record
from fastapi.testclient import TestClient

from roombook import main
from roombook.booking import RoomBookingService


class ApiTest(unittest.TestCase):
    def setUp(self):
        self.session = FakeSession(records=[record("R3.1", "10:00", "11:00")], tree=[])
        self.service = RoomBookingService(self.session, make_settings())
        main.app.dependency_overrides[main.get_service] = lambda: self.service
        self.client = TestClient(main.app)

    def tearDown(self):
        main.app.dependency_overrides.clear()

    def test_rooms(self):
        response = self.client.get("/api/rooms")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["count"], 6)
        self.assertEqual(body["items"][0]["name"], "R2.1")
        self.assertTrue(all(item["res_seq"] for item in body["items"]))

    def test_availability(self):
        response = self.client.get("/api/availability", params={"date": DATE})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["date"], DATE)
        self.assertEqual(body["workingHours"], {"start": "09:00", "end": "18:00"})
        r31 = next(item for item in body["items"] if item["room"]["name"] == "R3.1")
        self.assertEqual(r31["available_slots"], [{"start": 540, "end": 600}, {"start": 660, "end": 1080}])

    def test_availability_bad_date(self):
        self.assertEqual(self.client.get("/api/availability", params={"date": "soon"}).status_code, 400)

    def test_availability_upstream_failure(self):
        self.session.fail_fetch = True
        self.assertEqual(self.client.get("/api/availability", params={"date": DATE}).status_code, 502)

    def test_check_conflict(self):
        response = self.client.get(
            "/api/availability/check", params={"room": "r3.1", "date": DATE, "time": "10:30-11:30"}
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertFalse(body["available"])
        self.assertEqual(body["room"], "R3.1")
        self.assertEqual(body["conflict"]["reserver_name"], "Kim")

    def test_check_free(self):
        response = self.client.get(
            "/api/availability/check", params={"room": "R3.1", "date": DATE, "time": "11:00-12:00"}
        )
        self.assertTrue(response.json()["available"])
        self.assertIsNone(response.json()["conflict"])

    def test_check_errors(self):
        params = {"room": "R3.1", "date": DATE, "time": "11:00-10:00"}
        self.assertEqual(self.client.get("/api/availability/check", params=params).status_code, 400)
        params = {"room": "R9.9", "date": DATE, "time": "10:00-11:00"}
        self.assertEqual(self.client.get("/api/availability/check", params=params).status_code, 404)

    def test_healthz(self):
        response = self.client.get("/healthz")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["ok"])

    def test_shutdown_closes_shared_session(self):
        self.addCleanup(setattr, main, "_service", main._service)
        main._service = self.service
        with TestClient(main.app) as client:
            client.get("/healthz")
            self.assertFalse(self.session.closed)
        self.assertTrue(self.session.closed)


if __name__ == "__main__":
    unittest.main()
