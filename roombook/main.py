"""HTTP entry point for the meeting room booking service.

This module defines the FastAPI application and serves a small JSON API over
the same ``RoomBookingService`` the CLI and the Slack bot use. Every request
fetches a fresh snapshot from the groupware portal; nothing is cached.

Endpoints:
  - ``/api/rooms``: the target rooms and their resolved resource ids.
  - ``/api/availability``: reservations and free gaps of every room on a date.
  - ``/api/availability/check``: whether one room can be booked for an interval.
  - ``/healthz``: simple health check endpoint.
  - ``/slack/events``: Slack Events API in HTTP mode, only when
    ``SLACK_SIGNING_SECRET`` is set.

One browser session is created lazily on first use and shared by all requests.
"""

from __future__ import annotations

import logging
import threading
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from .availability import check_booking, check_interval
from .booking import RoomBookingService
from .config import settings
from .errors import GroupwareError, InvalidIntervalError, UnknownRoomError
from .groupware_client import GroupwareSession
from .models import TimeSlot
from .timeutil import parse_date, parse_time_range

logger = logging.getLogger("roombook")
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

_service_lock = threading.Lock()
_service: Optional[RoomBookingService] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso_z(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def get_service() -> RoomBookingService:
    """Return the shared booking service, starting a headless session on first use."""
    global _service
    with _service_lock:
        if _service is None:
            _service = RoomBookingService(GroupwareSession(settings, headless=True), settings)
        return _service


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    yield
    with _service_lock:
        if _service is not None:
            _service.session.close()


app = FastAPI(title="Meeting Room Booking Service", lifespan=lifespan)

# CORS is off by default; set ENABLE_CORS=yes to expose the read API to other origins.
if settings.enable_cors:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )


@app.get("/api/rooms")
def api_rooms(service: RoomBookingService = Depends(get_service)) -> Dict[str, Any]:
    """Return the target rooms with their groupware resource ids."""
    try:
        service.ensure_login()
    except GroupwareError as exc:
        # Static ids still answer the question when the portal is down.
        logger.warning("Serving rooms without a groupware login: %s", exc)
    rooms = service.registry.rooms()
    return {"count": len(rooms), "items": [room.model_dump() for room in rooms]}


@app.get("/api/availability")
def api_availability(
    date: str = Query("today", description="YYYY-MM-DD, YYMMDD, today or tomorrow"),
    service: RoomBookingService = Depends(get_service),
) -> Dict[str, Any]:
    """Return reservations and free gaps of every room on ``date``."""
    try:
        day = parse_date(date, tz=settings.timezone)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    try:
        availabilities = service.get_availability(day)
    except GroupwareError as exc:
        logger.exception("Error fetching availability for %s: %s", day, exc)
        raise HTTPException(status_code=502, detail=str(exc))
    window = service.window
    return {
        "generatedAt": _iso_z(_utcnow()),
        "date": day,
        "workingHours": {"start": window.start_time, "end": window.end_time},
        "items": [a.model_dump() for a in availabilities],
    }


@app.get("/api/availability/check")
def api_check(
    room: str = Query(..., description="Room name, e.g. R3.1"),
    date: str = Query("today"),
    time: str = Query(..., description="HH:MM-HH:MM"),
    service: RoomBookingService = Depends(get_service),
) -> Dict[str, Any]:
    """Decide whether ``room`` can be booked for the ``time`` interval on ``date``."""
    try:
        day = parse_date(date, tz=settings.timezone)
        start, end = parse_time_range(time)
        slot = check_interval(TimeSlot(start=start, end=end))
    except (InvalidIntervalError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    try:
        availability = service.room_availability(room, day)
    except UnknownRoomError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except GroupwareError as exc:
        logger.exception("Error checking %s on %s: %s", room, day, exc)
        raise HTTPException(status_code=502, detail=str(exc))
    decision = check_booking(slot, availability, service.window)
    return {
        "room": availability.room.name,
        "date": day,
        "start": slot.start_time,
        "end": slot.end_time,
        "available": decision.available,
        "conflict": decision.conflict.model_dump() if decision.conflict else None,
    }


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    """Health check endpoint for monitoring."""
    with _service_lock:
        state = _service.session.state.value if _service is not None else "closed"
    return {"ok": True, "time": _iso_z(_utcnow()), "session": state}


if settings.slack_signing_secret:
    from slack_bolt.adapter.fastapi import SlackRequestHandler

    from .slack_bot import RoomBot, create_app

    def _on_mention(event, client, say) -> None:
        RoomBot(get_service(), settings).handle_mention(event, client, say)

    _slack_handler = SlackRequestHandler(create_app(_on_mention, settings))

    @app.post("/slack/events")
    async def slack_events(req: Request):
        return await _slack_handler.handle(req)
