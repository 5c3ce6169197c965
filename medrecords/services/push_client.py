"""
Push Notification Client

Sends push notifications through Firebase Cloud Messaging using the
Firebase Admin SDK, and resolves a user's registered FCM token from the
document store.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from medrecords.core.errors import DeliveryError, MissingTokenError

logger = logging.getLogger(__name__)

# Provider codes that mean the token itself is bad; resending won't help
NON_RETRYABLE_CODES = {"NOT_FOUND", "INVALID_ARGUMENT", "UNREGISTERED", "SENDER_ID_MISMATCH"}

TOKEN_COLLECTIONS = ("users", "patients", "doctors")


class TokenResolver:
    """Looks up ``fcmToken`` for a uid across the profile collections."""

    def __init__(self, store, collections=TOKEN_COLLECTIONS):
        self.store = store
        self.collections = collections

    def resolve(self, user_id: str) -> str:
        for collection in self.collections:
            doc = self.store.get(collection, user_id)
            if doc and doc.get("fcmToken"):
                return doc["fcmToken"]
        raise MissingTokenError(user_id)


class FcmPushClient:
    """
    Sends one message per call.

    The per-request timeout comes from the Firebase app's ``httpTimeout``
    option, set in ``medrecords.core.firebase.init_firebase``.
    """

    def __init__(self, app=None, android_channel: str = "default", color: str = "#4CAF50"):
        self.app = app
        self.android_channel = android_channel
        self.color = color

    def build_message(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
        priority: str = "high",
    ) -> messaging.Message:
        # FCM data payloads only carry string values
        payload = {k: "" if v is None else str(v) for k, v in (data or {}).items()}
        payload["timestamp"] = datetime.now(timezone.utc).isoformat()

        return messaging.Message(
            token=token,
            notification=messaging.Notification(title=title, body=body),
            data=payload,
            android=messaging.AndroidConfig(
                priority="high" if priority == "high" else "normal",
                notification=messaging.AndroidNotification(
                    channel_id=self.android_channel,
                    icon="ic_notification",
                    color=self.color,
                    sound="default",
                ),
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(aps=messaging.Aps(sound="default", badge=1)),
            ),
        )

    def send(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
        priority: str = "high",
    ) -> str:
        """Returns the FCM message id; raises DeliveryError on provider failure."""
        message = self.build_message(token, title, body, data, priority)
        try:
            return messaging.send(message, app=self.app)
        except firebase_exceptions.FirebaseError as exc:
            code = getattr(exc, "code", None) or "UNKNOWN"
            retryable = code not in NON_RETRYABLE_CODES and not isinstance(
                exc, messaging.UnregisteredError
            )
            raise DeliveryError(str(exc), code=code, retryable=retryable) from exc
