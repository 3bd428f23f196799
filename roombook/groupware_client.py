"""Browser session against the groupware portal.

The portal has no public API. We log in through its web UI with Playwright
and then call its internal JSON endpoints with ``fetch`` from inside the
authenticated page, so the browser's cookies and session state apply.

``GroupwareSession`` is an explicitly owned object with a guarded lifecycle
(closed -> open -> authenticated -> closed). Playwright's sync API is bound to
the thread that started it, so every browser call is funnelled through one
dedicated worker thread; callers on other threads (Slack listeners, FastAPI's
thread pool) can share a session safely.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from .config import (
    INSERT_RESERVATION_PATH,
    LOGIN_PATH,
    RESERVATION_LIST_PATH,
    RESOURCE_TREE_PATH,
    SCHEDULE_BASE_PATH,
    Settings,
    settings,
)
from .errors import GroupwareError, LoginError, SessionStateError
from .models import ReservationRequest, ReservationResult

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"

# Accessible names of the portal's UI elements (Korean portal).
LOGIN_ID_BOX = "아이디 입력"
LOGIN_PASSWORD_BOX = "패스워드 입력"
SCHEDULE_MENU_CELL = "일정"
ROOM_RESERVATION_MENU = "회의실예약"
MAIN_PAGE_MARKER = "userMain.do"

# Timeouts (ms)
PAGE_LOAD_TIMEOUT = 20_000
LOGIN_SETTLE = 3_000
REDIRECT_POLLS = 10

_FETCH_JSON = """
async ({url, body}) => {
  const res = await fetch(url, {
    method: 'POST',
    headers: {'Content-Type': 'application/json'},
    body: JSON.stringify(body),
    credentials: 'include',
  });
  const text = await res.text();
  try { return JSON.parse(text); } catch (e) { return text; }
}
"""


class SessionState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    AUTHENTICATED = "authenticated"


_TRANSITIONS = {
    SessionState.CLOSED: {SessionState.OPEN},
    SessionState.OPEN: {SessionState.AUTHENTICATED, SessionState.CLOSED},
    # back to OPEN when the portal session expires
    SessionState.AUTHENTICATED: {SessionState.OPEN, SessionState.CLOSED},
}


def is_success_response(response: Any) -> bool:
    """The insert endpoint answers in several shapes; recognise all success forms."""
    if response == "SUCCESS":
        return True
    if not isinstance(response, dict):
        return False
    if str(response.get("resultCode")) == "0":
        return True
    if response.get("resultMessage") == "SUCCESS" or response.get("status") == "SUCCESS":
        return True
    result = response.get("result")
    return isinstance(result, str) and "SUCCESS" in result


class GroupwareSession:
    """One logged-in browser against the portal."""

    def __init__(self, cfg: Optional[Settings] = None, *, headless: Optional[bool] = None):
        self.cfg = cfg or settings
        self.headless = self.cfg.headless if headless is None else headless
        self._state = SessionState.CLOSED
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="groupware")
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    # -- lifecycle -----------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_authenticated(self) -> bool:
        return self._state is SessionState.AUTHENTICATED

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in _TRANSITIONS[self._state]:
            raise SessionStateError(f"Cannot go from {self._state.value} to {new_state.value}")
        logger.debug("Groupware session %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    def _require(self, state: SessionState) -> None:
        if self._state is not state:
            raise SessionStateError(f"Session is {self._state.value}, expected {state.value}")

    def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        return self._executor.submit(fn, *args).result()

    def open(self) -> None:
        self._require(SessionState.CLOSED)
        self._call(self._launch)
        self._transition(SessionState.OPEN)

    def _launch(self) -> None:
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(headless=self.headless)
        self._context = self._browser.new_context(user_agent=USER_AGENT)
        self._page = self._context.new_page()
        self._page.set_default_timeout(PAGE_LOAD_TIMEOUT)
        # The portal opens notice pop-ups after login; close them.
        self._context.on("page", lambda popup: popup.close())

    def close(self) -> None:
        if self._state is SessionState.CLOSED:
            return
        try:
            self._call(self._shutdown)
        finally:
            self._transition(SessionState.CLOSED)

    def _shutdown(self) -> None:
        try:
            if self._browser is not None:
                self._browser.close()
        finally:
            if self._playwright is not None:
                self._playwright.stop()
            self._playwright = self._browser = self._context = self._page = None

    def mark_expired(self) -> None:
        """Drop back to the open state so the next caller logs in again."""
        if self._state is SessionState.AUTHENTICATED:
            self._transition(SessionState.OPEN)

    def __enter__(self) -> "GroupwareSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
        self._executor.shutdown(wait=True)

    # -- login ---------------------------------------------------------------

    def login(
        self,
        user_id: Optional[str] = None,
        password: Optional[str] = None,
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> bool:
        """Log in and open the room reservation page.

        Returns False when the portal did not accept the login.

        Raises:
            LoginError: if no credentials are configured.
        """
        uid = user_id or self.cfg.gw_user_id
        pw = password or self.cfg.gw_password
        if not uid or not pw:
            raise LoginError("Groupware credentials are not configured. Run `mr --setup`.")
        if self._state is SessionState.AUTHENTICATED:
            return True

        progress = on_progress or (lambda message: None)
        if self._state is SessionState.CLOSED:
            progress("Starting browser...")
            self.open()

        try:
            ok = self._call(self._login_flow, uid, pw, progress)
        except PlaywrightError as exc:
            logger.error("Groupware login failed: %s", exc)
            return False
        if ok:
            self._transition(SessionState.AUTHENTICATED)
            logger.info("Logged in to groupware as %s", uid)
        else:
            logger.warning("Groupware did not accept the login for %s", uid)
        return ok

    def _login_flow(self, user_id: str, password: str, progress: Callable[[str], None]) -> bool:
        page = self._page
        progress("Opening login page...")
        page.goto(f"{self.cfg.gw_base_url}{LOGIN_PATH}", wait_until="networkidle")

        progress("Entering credentials...")
        page.get_by_role("textbox", name=LOGIN_ID_BOX).fill(user_id)
        page.get_by_role("textbox", name=LOGIN_PASSWORD_BOX).fill(password)

        progress("Signing in...")
        page.evaluate("actionLogin()")
        page.wait_for_timeout(LOGIN_SETTLE)
        for _ in range(REDIRECT_POLLS):
            if MAIN_PAGE_MARKER in page.url:
                break
            page.wait_for_timeout(1_000)
        if MAIN_PAGE_MARKER not in page.url:
            return False

        progress("Opening room reservation menu...")
        page.get_by_role("cell", name=SCHEDULE_MENU_CELL).click()
        page.wait_for_timeout(1_500)
        page.locator("span").filter(has_text=ROOM_RESERVATION_MENU).first.click()
        page.wait_for_timeout(500)
        page.get_by_role("link", name=ROOM_RESERVATION_MENU).first.click()
        page.wait_for_timeout(2_000)
        return True

    # -- JSON endpoints ------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self.cfg.gw_base_url}{SCHEDULE_BASE_PATH}{path}"

    def _fetch_json(self, path: str, body: Dict[str, Any]) -> Any:
        return self._page.evaluate(_FETCH_JSON, {"url": self._url(path), "body": body})

    def _post_json(
        self,
        path: str,
        body: Dict[str, Any],
        *,
        max_retries: int = 2,
        backoff_seconds: float = 1.0,
    ) -> Any:
        """POST ``body`` to a read endpoint, retrying transient browser errors."""
        self._require(SessionState.AUTHENTICATED)
        attempt = 0
        while True:
            try:
                response = self._call(self._fetch_json, path, body)
                break
            except PlaywrightError as exc:
                attempt += 1
                if attempt <= max_retries:
                    delay = backoff_seconds * (2 ** (attempt - 1))
                    logger.warning(
                        "Groupware request %s failed, retrying in %.1fs (attempt %s/%s): %s",
                        path,
                        delay,
                        attempt,
                        max_retries,
                        exc,
                    )
                    time.sleep(delay)
                    continue
                logger.error("Groupware request %s failed after %s attempts: %s", path, attempt, exc)
                raise GroupwareError(f"Groupware request failed: {exc}") from exc
        if not isinstance(response, (dict, list)):
            # An HTML login page instead of JSON means the portal session ended.
            self.mark_expired()
            raise GroupwareError("Groupware session expired; log in again.")
        return response

    def fetch_resource_tree(self) -> Any:
        response = self._post_json(RESOURCE_TREE_PATH, {})
        return response.get("result") if isinstance(response, dict) else response

    def fetch_reservations(self, date: str) -> List[Dict[str, Any]]:
        """Raw reservation records of every resource on ``date``."""
        response = self._post_json(
            RESERVATION_LIST_PATH,
            {"start": f"{date}T00:00:00", "end": f"{date}T23:59:59", "favoriteYn": "N"},
        )
        if isinstance(response, list):
            return response
        result = response.get("result")
        if isinstance(result, dict):
            return list(result.get("resList") or [])
        if isinstance(result, list):
            return result
        return []

    def submit_reservation(self, request: ReservationRequest, room_name: str) -> ReservationResult:
        """Create a reservation. Not retried: the portal decides, and may refuse."""
        self._require(SessionState.AUTHENTICATED)
        payload = {
            "resSeq": str(request.res_seq),
            "reqText": request.title,
            "descText": request.content or "",
            "alldayYn": "N",
            "apprYn": "N",
            "startDate": f"{request.date} {request.slot.start_time}:00",
            "endDate": f"{request.date} {request.slot.end_time}:00",
            "resName": room_name,
            "resSubscriberList": [self.cfg.subscriber()],
        }
        try:
            response = self._call(self._fetch_json, INSERT_RESERVATION_PATH, payload)
        except PlaywrightError as exc:
            logger.error("Reservation submission for %s failed: %s", room_name, exc)
            return ReservationResult(success=False, message=f"Reservation error: {exc}")

        if is_success_response(response):
            reservation_id = "" if isinstance(response, str) else str(response.get("result") or "")
            return ReservationResult(success=True, message="Reservation complete.", reservation_id=reservation_id)

        if isinstance(response, dict):
            message = response.get("resultMessage") or str(response.get("result") or "") or "Reservation failed."
        else:
            message = str(response) or "Reservation failed."
        logger.warning("Portal refused reservation of %s: %s", room_name, message)
        return ReservationResult(success=False, message=message)
