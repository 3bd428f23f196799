"""Availability queries and reservations on top of a groupware session.

Every call fetches a fresh reservation snapshot from the portal; nothing is
cached between calls. The local conflict check only filters out bookings that
are known to clash; the portal's answer to the submission is authoritative.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from .availability import build_availability, check_booking, check_interval
from .config import Settings, settings
from .errors import GroupwareError, LoginError
from .groupware_client import GroupwareSession
from .models import BookingDecision, ReservationRequest, ReservationResult, RoomAvailability, TimeSlot
from .rooms import RoomRegistry

logger = logging.getLogger(__name__)


class RoomBookingService:
    """Checks and books target rooms through an injected ``GroupwareSession``."""

    def __init__(self, session: GroupwareSession, cfg: Optional[Settings] = None):
        self.session = session
        self.cfg = cfg or settings
        self.registry = RoomRegistry()
        self._login_lock = threading.Lock()

    def ensure_login(self, on_progress=None) -> None:
        """Log in when needed and refresh the room id registry.

        Raises:
            LoginError: if the portal refuses the login.
        """
        with self._login_lock:
            if self.session.is_authenticated:
                return
            if not self.session.login(on_progress=on_progress):
                raise LoginError("Groupware login failed. Check your id/password (`mr --setup`).")
            self.registry = self._load_registry()

    def _load_registry(self) -> RoomRegistry:
        try:
            tree = self.session.fetch_resource_tree()
        except GroupwareError as exc:
            logger.warning("Could not load the resource tree (%s); using the static room id table", exc)
            return RoomRegistry()
        return RoomRegistry.from_resource_tree(tree)

    @property
    def window(self) -> TimeSlot:
        return self.cfg.work_window

    def get_availability(self, date: str) -> List[RoomAvailability]:
        """Reservations and free gaps of every target room on ``date``.

        Raises:
            GroupwareError: if the snapshot could not be fetched. The engine
                is not run on a failed fetch, so an empty result always means
                the rooms really are free.
        """
        self.ensure_login()
        try:
            records = self.session.fetch_reservations(date)
        except GroupwareError:
            if self.session.is_authenticated:
                raise
            # session expired mid-flight: log in once more and retry
            self.ensure_login()
            records = self.session.fetch_reservations(date)
        logger.info("Fetched %s raw reservation records for %s", len(records), date)
        return build_availability(self.registry.rooms(), date, records, self.window)

    def room_availability(self, room_name: str, date: str) -> RoomAvailability:
        canonical = self.registry.canonical_name(room_name)
        for availability in self.get_availability(date):
            if availability.room.name == canonical:
                return availability
        raise GroupwareError(f"No availability for {canonical} on {date}")

    def check(self, room_name: str, date: str, slot: TimeSlot) -> BookingDecision:
        check_interval(slot)
        availability = self.room_availability(room_name, date)
        return check_booking(slot, availability, self.window)

    def reserve(
        self,
        room_name: str,
        date: str,
        slot: TimeSlot,
        title: str,
        content: Optional[str] = None,
    ) -> ReservationResult:
        """Book ``room_name`` for ``slot`` on ``date``.

        A clash with a known reservation is reported without contacting the
        portal; otherwise the portal's answer is returned as is.
        """
        check_interval(slot)
        self.ensure_login()
        room = self.registry.room(room_name)
        res_seq = self.registry.resolve(room.name)

        decision = self.check(room.name, date, slot)
        if not decision.available:
            conflict = decision.conflict
            if conflict is not None:
                message = (
                    f"{room.name} is already booked at {conflict.start_time}-{conflict.end_time}"
                    f" ({conflict.reserver_name or 'unknown'})."
                )
            else:
                message = f"{room.name} is not available at {slot}."
            return ReservationResult(success=False, message=message, conflict=conflict)

        request = ReservationRequest(res_seq=res_seq, title=title, content=content, date=date, slot=slot)
        result = self.session.submit_reservation(request, room.name)
        if result.success:
            logger.info("Reserved %s on %s %s (%s)", room.name, date, slot, title)
        return result
