import requests
import secrets
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from urllib.parse import quote

from backend.core.config import settings
from backend.core.exceptions import MeetingProviderError

logger = logging.getLogger(__name__)

PROVIDER = "google_meet"
CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"

if not settings.GOOGLE_CALENDAR_ACCESS_TOKEN:
    logger.warning("GOOGLE_CALENDAR_ACCESS_TOKEN not set. Google Meet classes cannot be created.")

def _event_times(start_time: datetime, duration: int) -> Dict[str, Dict[str, str]]:
    if start_time.tzinfo is None:
        start_time = start_time.replace(tzinfo=timezone.utc)
    end_time = start_time + timedelta(minutes=duration)
    return {
        "start": {"dateTime": start_time.isoformat(), "timeZone": settings.LIVE_CLASS_TIMEZONE},
        "end": {"dateTime": end_time.isoformat(), "timeZone": settings.LIVE_CLASS_TIMEZONE},
    }

def _events_url(event_id: Optional[str] = None) -> str:
    url = f"{CALENDAR_API_BASE}/calendars/{quote(settings.GOOGLE_CALENDAR_ID, safe='')}/events"
    return f"{url}/{event_id}" if event_id else url

def _request(method: str, url: str, json_body: Optional[Dict[str, Any]] = None, params: Optional[Dict[str, Any]] = None) -> Any:
    if not settings.GOOGLE_CALENDAR_ACCESS_TOKEN:
        raise MeetingProviderError("Google Calendar is not configured.", provider=PROVIDER)
    headers = {"Authorization": f"Bearer {settings.GOOGLE_CALENDAR_ACCESS_TOKEN}", "Content-Type": "application/json"}
    try:
        response = requests.request(
            method, url, headers=headers, json=json_body, params=params, timeout=settings.HTTP_TIMEOUT_SECONDS
        )
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error(f"Google Calendar {method} {url} failed: {e}", exc_info=True)
        raise MeetingProviderError(f"Google Calendar API error: {e}", provider=PROVIDER) from e
    return response.json() if response.content else {}

def calendar_link(event_id: str) -> str:
    return f"https://calendar.google.com/calendar/event?eid={event_id}"

def create_meeting(summary: str, start_time: datetime, duration: int, description: Optional[str] = None) -> Dict[str, Any]:
    """Inserts a calendar event with a Meet conference attached; the join link is the event's hangoutLink."""
    event = {
        "summary": summary,
        "description": description or "",
        **_event_times(start_time, duration),
        "conferenceData": {
            "createRequest": {
                "requestId": secrets.token_hex(8),
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
            }
        },
    }
    created = _request("POST", _events_url(), event, params={"conferenceDataVersion": 1})
    logger.info(f"Google Calendar event {created.get('id')} created for '{summary}'.")
    return created

def update_meeting(event_id: str, summary: str, start_time: datetime, duration: int) -> None:
    _request("PATCH", _events_url(event_id), {"summary": summary, **_event_times(start_time, duration)})
    logger.info(f"Google Calendar event {event_id} updated.")

def delete_meeting(event_id: str) -> None:
    _request("DELETE", _events_url(event_id))
    logger.info(f"Google Calendar event {event_id} deleted.")
