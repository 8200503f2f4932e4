import requests
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from backend.core.config import settings
from backend.core.exceptions import MeetingProviderError

logger = logging.getLogger(__name__)

PROVIDER = "zoom"
ZOOM_OAUTH_URL = "https://zoom.us/oauth/token"
ZOOM_API_BASE = "https://api.zoom.us/v2"

if not (settings.ZOOM_ACCOUNT_ID and settings.ZOOM_CLIENT_ID and settings.ZOOM_CLIENT_SECRET):
    logger.warning("ZOOM_ACCOUNT_ID/ZOOM_CLIENT_ID/ZOOM_CLIENT_SECRET not set. Zoom meetings cannot be created.")

def _to_zoom_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

def get_access_token() -> str:
    """Server-to-server OAuth: exchanges the account credentials for a short-lived bearer token."""
    if not (settings.ZOOM_ACCOUNT_ID and settings.ZOOM_CLIENT_ID and settings.ZOOM_CLIENT_SECRET):
        raise MeetingProviderError("Zoom is not configured.", provider=PROVIDER)
    try:
        response = requests.post(
            ZOOM_OAUTH_URL,
            params={"grant_type": "account_credentials", "account_id": settings.ZOOM_ACCOUNT_ID},
            auth=(settings.ZOOM_CLIENT_ID, settings.ZOOM_CLIENT_SECRET),
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        return response.json()["access_token"]
    except (requests.exceptions.RequestException, KeyError, ValueError) as e:
        logger.error(f"Zoom OAuth token request failed: {e}", exc_info=True)
        raise MeetingProviderError(f"Zoom authentication failed: {e}", provider=PROVIDER) from e

def _request(method: str, path: str, json_body: Optional[Dict[str, Any]] = None) -> Any:
    headers = {"Authorization": f"Bearer {get_access_token()}", "Content-Type": "application/json"}
    try:
        response = requests.request(
            method, f"{ZOOM_API_BASE}{path}", headers=headers, json=json_body, timeout=settings.HTTP_TIMEOUT_SECONDS
        )
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error(f"Zoom {method} {path} failed: {e}", exc_info=True)
        raise MeetingProviderError(f"Zoom API error: {e}", provider=PROVIDER) from e
    # PATCH and DELETE answer 204 No Content
    return response.json() if response.content else {}

def create_meeting(topic: str, start_time: datetime, duration: int, agenda: Optional[str] = None) -> Dict[str, Any]:
    payload = {
        "topic": topic,
        "type": 2, # Scheduled meeting
        "start_time": _to_zoom_time(start_time),
        "duration": duration,
        "timezone": settings.LIVE_CLASS_TIMEZONE,
        "agenda": agenda or "",
        "settings": {
            "host_video": True,
            "participant_video": True,
            "join_before_host": False,
            "mute_upon_entry": True,
            "waiting_room": True,
            "auto_recording": "cloud",
        },
    }
    meeting = _request("POST", "/users/me/meetings", payload)
    logger.info(f"Zoom meeting {meeting.get('id')} created for '{topic}' at {payload['start_time']}.")
    return meeting

def update_meeting(meeting_id: str, topic: str, start_time: datetime, duration: int) -> None:
    _request("PATCH", f"/meetings/{meeting_id}", {
        "topic": topic,
        "start_time": _to_zoom_time(start_time),
        "duration": duration,
    })
    logger.info(f"Zoom meeting {meeting_id} updated.")

def delete_meeting(meeting_id: str) -> None:
    _request("DELETE", f"/meetings/{meeting_id}")
    logger.info(f"Zoom meeting {meeting_id} deleted.")

def get_recording_url(meeting_id: str) -> Optional[str]:
    """Download URL of the first cloud recording, or None when nothing has been recorded."""
    recordings = _request("GET", f"/meetings/{meeting_id}/recordings")
    files = recordings.get("recording_files") or []
    return files[0].get("download_url") if files else None
