"""Pydantic data models shared by the CLI, the chat bot and the HTTP API.

These models are our canonical representation of rooms, reservations and
availability. They are separate from the groupware portal's raw JSON so the
rest of the code never depends on the portal's field naming.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .timeutil import format_minutes


class TimeSlot(BaseModel):
    """A half-open ``[start, end)`` interval in minutes since midnight."""

    model_config = ConfigDict(frozen=True)

    start: int
    end: int

    @property
    def start_time(self) -> str:
        return format_minutes(self.start)

    @property
    def end_time(self) -> str:
        return format_minutes(self.end)

    @property
    def duration(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "TimeSlot") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeSlot") -> bool:
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        return f"{self.start_time}-{self.end_time}"


class MeetingRoom(BaseModel):
    """A bookable room and its groupware resource id."""

    name: str
    res_seq: int = 0
    floor: str = ""
    location: str = ""


class Reservation(BaseModel):
    """A normalized reservation of one room on one date."""

    res_seq: int = 0
    room_name: str
    date: str
    slot: TimeSlot
    title: str = ""
    content: Optional[str] = None
    reserver_name: str = ""
    reserver_id: str = ""

    @property
    def start_time(self) -> str:
        return self.slot.start_time

    @property
    def end_time(self) -> str:
        return self.slot.end_time


class RoomAvailability(BaseModel):
    """Reservations and free gaps of one room on one date, both time ordered."""

    room: MeetingRoom
    date: str
    reservations: List[Reservation] = []
    available_slots: List[TimeSlot] = []


class BookingDecision(BaseModel):
    """Outcome of a local conflict check for a proposed booking."""

    available: bool
    conflict: Optional[Reservation] = None


class ReservationRequest(BaseModel):
    """Parameters sent to the groupware portal to create a reservation."""

    res_seq: int
    title: str
    content: Optional[str] = None
    date: str
    slot: TimeSlot


class ReservationResult(BaseModel):
    """Result of a reservation submission; the portal has the final word."""

    success: bool
    message: str
    reservation_id: Optional[str] = None
    conflict: Optional[Reservation] = None


class CalendarEventRequest(BaseModel):
    """A calendar event to create on the organizer's primary calendar."""

    title: str
    description: Optional[str] = None
    date: str
    start_time: str
    end_time: str
    location: Optional[str] = None
    attendees: List[str] = []


class CalendarEventResult(BaseModel):
    success: bool
    message: str
    event_id: Optional[str] = None
    event_link: Optional[str] = None
