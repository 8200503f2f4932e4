# Live class meeting providers (Zoom, Google Meet via Google Calendar).

from . import zoom_service, google_meet_service

__all__ = ["zoom_service", "google_meet_service"]
