import logging
import os

import firebase_admin
from firebase_admin import credentials

from backend.core.config import settings

logger = logging.getLogger(__name__)

def is_firebase_configured() -> bool:
    """Firebase ID tokens are only accepted when a service account is configured."""
    return bool(settings.GOOGLE_APPLICATION_CREDENTIALS)

def initialize_firebase_app() -> firebase_admin.App:
    """
    Starts the default Firebase Admin app from the service account at GOOGLE_APPLICATION_CREDENTIALS.
    Calling it again returns the running app.

    Raises:
        ValueError when no service account is configured.
        FileNotFoundError when the key file does not exist.
    """
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass  # not started yet

    cred_path = settings.GOOGLE_APPLICATION_CREDENTIALS
    if not cred_path:
        raise ValueError("GOOGLE_APPLICATION_CREDENTIALS is not set; Firebase ID tokens cannot be verified.")
    if not os.path.exists(cred_path):
        logger.error(f"Firebase service account key file not found at path: {cred_path}")
        raise FileNotFoundError(f"Firebase service account key file not found at path: {cred_path}")

    app = firebase_admin.initialize_app(credentials.Certificate(cred_path))
    logger.info(f"Firebase Admin SDK initialized for project {app.project_id or '(from credentials)'}.")
    return app

# Token verification goes through here so the SDK starts lazily on the first Firebase token
get_firebase_app = initialize_firebase_app
