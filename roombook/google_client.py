"""Google Calendar client utilities for room bookings.

This module loads service account credentials and creates calendar events on
behalf of the meeting organizer through domain-wide delegation. It retries
transient errors with exponential back-off. All credentials and settings are
provided via the ``Settings`` object in ``roombook.config``.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional, Tuple

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .config import Settings, settings
from .errors import CalendarError
from .models import CalendarEventRequest, CalendarEventResult
from .timeutil import to_iso_datetime

logger = logging.getLogger(__name__)

SCOPES: Tuple[str, ...] = ("https://www.googleapis.com/auth/calendar",)

REMINDERS = {
    "useDefault": False,
    "overrides": [
        {"method": "popup", "minutes": 10},
        {"method": "email", "minutes": 30},
    ],
}


def is_calendar_enabled(cfg: Optional[Settings] = None) -> bool:
    return (cfg or settings).calendar_configured


def _load_sa_info(cfg: Settings) -> dict:
    """Load the service account key from inline JSON or a file path."""
    raw = cfg.google_service_account_json.strip()
    if not raw:
        raise CalendarError("Google Calendar is not configured (GOOGLE_SERVICE_ACCOUNT_JSON).")
    if raw.startswith("{"):
        return json.loads(raw)
    with open(raw, "r", encoding="utf-8") as fh:
        return json.load(fh)


def get_delegated_credentials(subject: str, cfg: Optional[Settings] = None) -> service_account.Credentials:
    """Service account credentials impersonating ``subject``."""
    cfg = cfg or settings
    creds = service_account.Credentials.from_service_account_info(_load_sa_info(cfg), scopes=SCOPES)
    return creds.with_subject(subject)


def get_calendar_service(subject: str, cfg: Optional[Settings] = None):
    """Build and return a Calendar service client acting as ``subject``."""
    creds = get_delegated_credentials(subject, cfg)
    return build("calendar", "v3", credentials=creds, cache_discovery=False)


def build_event_body(event: CalendarEventRequest, timezone: str) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "summary": event.title,
        "start": {"dateTime": to_iso_datetime(event.date, event.start_time), "timeZone": timezone},
        "end": {"dateTime": to_iso_datetime(event.date, event.end_time), "timeZone": timezone},
        "attendees": [{"email": email, "responseStatus": "needsAction"} for email in event.attendees],
        "reminders": REMINDERS,
    }
    if event.description:
        body["description"] = event.description
    if event.location:
        body["location"] = event.location
    return body


def create_calendar_event(
    organizer_email: str,
    event: CalendarEventRequest,
    *,
    cfg: Optional[Settings] = None,
    service=None,
    max_retries: int = 3,
    backoff_seconds: float = 1.0,
) -> CalendarEventResult:
    """Create ``event`` on the organizer's primary calendar and invite attendees.

    Returns a failed ``CalendarEventResult`` instead of raising, because the
    room reservation has already succeeded when this is called.
    """
    cfg = cfg or settings
    if service is None:
        if not cfg.calendar_configured:
            return CalendarEventResult(success=False, message="Google Calendar is not configured.")
        try:
            service = get_calendar_service(organizer_email, cfg)
        except (CalendarError, OSError, ValueError) as exc:
            logger.error("Could not authorize Google Calendar for %s: %s", organizer_email, exc)
            return CalendarEventResult(success=False, message=f"Calendar authorization failed: {exc}")

    body = build_event_body(event, cfg.timezone)
    attempt = 0
    while True:
        try:
            created = (
                service.events()
                .insert(calendarId="primary", body=body, sendUpdates="all")
                .execute()
            )
            break
        except HttpError as exc:
            attempt += 1
            # Retry on 5xx or rate-limit errors.
            status = getattr(exc.resp, "status", None)
            if attempt <= max_retries and status in (429, 500, 502, 503, 504):
                delay = backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "Calendar insert transient error (status=%s), retrying in %.1fs (attempt %s/%s)",
                    status,
                    delay,
                    attempt,
                    max_retries,
                )
                time.sleep(delay)
                continue
            logger.error("Calendar insert failed after %s attempts: %s", attempt, exc)
            return CalendarEventResult(success=False, message=f"Calendar event failed: {exc}")

    logger.info("Created calendar event %s for %s", created.get("id"), organizer_email)
    return CalendarEventResult(
        success=True,
        message="Calendar event created.",
        event_id=created.get("id"),
        event_link=created.get("htmlLink"),
    )
