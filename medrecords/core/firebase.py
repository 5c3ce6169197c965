"""
Firebase admin initialization and helpers.

This module initializes the Firebase Admin SDK for use in the API.
Clients authenticate with Firebase Authentication and pass Firebase ID
tokens to the backend. The backend verifies those tokens, reads and writes
Firestore, and sends push notifications through Firebase Cloud Messaging.
"""

import logging
import os

import firebase_admin
from firebase_admin import credentials, firestore

from medrecords.core.config import settings

logger = logging.getLogger(__name__)

# Global references to avoid re-initialization
_firebase_app = None
db = None


def init_firebase(cred_path: str = None, timeout: float = None):
    """
    Initialize Firebase Admin SDK if not already initialized.

    Priority:
    1. Explicit ``cred_path`` argument
    2. FIREBASE_CREDENTIALS setting (env var or .env)

    ``timeout`` becomes the SDK's ``httpTimeout`` so a stuck FCM or
    Firestore call cannot hold the notification drain loop forever.
    """

    global _firebase_app, db

    # Prevent re-initialization (important for Uvicorn reload)
    if firebase_admin._apps:
        _firebase_app = firebase_admin.get_app()
        db = firestore.client(_firebase_app)
        return _firebase_app

    cred_path = cred_path or os.environ.get("FIREBASE_CREDENTIALS", settings.FIREBASE_CREDENTIALS)

    if not os.path.exists(cred_path):
        raise RuntimeError(
            f"Firebase credentials not found at: {cred_path}\n"
            "Set FIREBASE_CREDENTIALS env var or place firebase_key.json correctly."
        )

    options = {"httpTimeout": timeout or settings.PUSH_TIMEOUT_SECONDS}
    if settings.FIREBASE_PROJECT_ID:
        options["projectId"] = settings.FIREBASE_PROJECT_ID

    cred = credentials.Certificate(cred_path)
    _firebase_app = firebase_admin.initialize_app(cred, options)

    db = firestore.client(_firebase_app)

    logger.info("Firebase Admin initialized successfully.")
    return _firebase_app


def get_app():
    return _firebase_app


def get_db():
    return db
