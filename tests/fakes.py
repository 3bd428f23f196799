"""In-memory stand-ins for the browser session and Slack client used by tests."""

from roombook.config import Settings
from roombook.errors import GroupwareError
from roombook.groupware_client import SessionState
from roombook.models import ReservationResult

DATE = "2025-12-05"


def make_settings(**overrides):
    values = {
        "GW_USER_ID": "tester",
        "GW_PASSWORD": "secret",
        "WORK_HOURS_START": "09:00",
        "WORK_HOURS_END": "18:00",
        "GOOGLE_SERVICE_ACCOUNT_JSON": "",
        "SLACK_SIGNING_SECRET": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def record(room, start, end, name="Kim", day=DATE):
    return {
        "resName": room,
        "startDate": f"{day} {start}:00",
        "endDate": f"{day} {end}:00",
        "empName": name,
        "reqText": f"{name} meeting",
    }


class FakeSession:
    """Implements the parts of ``GroupwareSession`` the booking service calls."""

    def __init__(self, records=None, tree=None, login_ok=True, submit_result=None):
        self.records = list(records or [])
        self.tree = tree
        self.login_ok = login_ok
        self.submit_result = submit_result or ReservationResult(
            success=True, message="Reservation complete.", reservation_id="9001"
        )
        self.state = SessionState.CLOSED
        self.logins = 0
        self.fetches = []
        self.submitted = []
        self.expire_next_fetch = False
        self.fail_fetch = False
        self.closed = False

    @property
    def is_authenticated(self):
        return self.state is SessionState.AUTHENTICATED

    def login(self, user_id=None, password=None, on_progress=None):
        self.logins += 1
        if self.login_ok:
            self.state = SessionState.AUTHENTICATED
        return self.login_ok

    def fetch_resource_tree(self):
        if self.tree is None:
            raise GroupwareError("tree unavailable")
        return self.tree

    def fetch_reservations(self, date):
        self.fetches.append(date)
        if self.expire_next_fetch:
            self.expire_next_fetch = False
            self.state = SessionState.OPEN
            raise GroupwareError("Groupware session expired; log in again.")
        if self.fail_fetch:
            raise GroupwareError("Groupware request failed: timeout")
        return list(self.records)

    def submit_reservation(self, request, room_name):
        self.submitted.append((request, room_name))
        return self.submit_result

    def close(self):
        self.closed = True
        self.state = SessionState.CLOSED


class FakeSlackClient:
    """Records ``chat_update`` calls and answers ``users_info`` from a dict."""

    def __init__(self, users=None):
        self.users = users or {}
        self.updates = []

    def users_info(self, user):
        return {"user": self.users.get(user, {"name": user, "profile": {}})}

    def chat_update(self, **kwargs):
        self.updates.append(kwargs)
        return {"ok": True}


class FakeSay:
    def __init__(self):
        self.messages = []

    def __call__(self, text=None, thread_ts=None, **kwargs):
        self.messages.append({"text": text, "thread_ts": thread_ts, **kwargs})
        return {"ok": True, "ts": f"{len(self.messages)}.000"}
