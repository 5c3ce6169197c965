# medrecords/core/config.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Service account JSON used by the Firebase Admin SDK
    FIREBASE_CREDENTIALS: str = "medrecords/core/firebase_key.json"
    FIREBASE_PROJECT_ID: str = ""

    # Upper bound on a single FCM send, keeps drain latency bounded
    PUSH_TIMEOUT_SECONDS: float = 10.0

    # Notification dispatcher
    NOTIFICATION_MAX_RETRIES: int = 3
    NOTIFICATION_RETRY_DELAY_SECONDS: float = 1.0
    NOTIFICATION_POLL_INTERVAL_SECONDS: float = 2.0

    # Cache-aside TTLs
    CACHE_TTL_SECONDS: float = 300.0
    SEARCH_CACHE_TTL_SECONDS: float = 30.0

    LOG_LEVEL: str = "INFO"
    DEBUG_EVENTS: bool = False

    # Background workers
    ENABLE_TRIGGER_WORKER: bool = False
    ENABLE_RECONCILE_WORKER: bool = True
    RECONCILE_INTERVAL_SECONDS: float = 86400.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
