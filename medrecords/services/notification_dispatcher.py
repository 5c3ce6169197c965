"""Notification dispatch.

Two implementations share the ``send(notification)`` contract:

- ``QueuedDispatcher`` for the long-lived API process: an in-memory queue
  drained by one worker at a time, with bounded retries and linear backoff.
  Outcomes are written to ``notifications`` (delivered) or
  ``failedNotifications`` (dead-letter) keyed
  ``{timestamp_ms}_{userId}_{seq}``.
- ``DirectDispatcher`` for trigger handlers, which run without persistent
  in-memory state: resolve the token and send once.
"""
from __future__ import annotations

import itertools
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

from medrecords.core.errors import DeliveryError
from medrecords.models.notification import Notification
from medrecords.services.logger import log_event

logger = logging.getLogger(__name__)

DELIVERED_COLLECTION = "notifications"
FAILED_COLLECTION = "failedNotifications"

MAX_RETRIES = 3
RETRY_DELAY = 1.0  # seconds, multiplied by the retry count
POLL_INTERVAL = 2.0


class DirectDispatcher:
    def __init__(self, push_client, token_resolver):
        self.push_client = push_client
        self.token_resolver = token_resolver

    def send(self, notification) -> str:
        """Raises MissingTokenError / DeliveryError; callers own the boundary."""
        n = Notification.parse(notification)
        token = self.token_resolver.resolve(n.userId)
        message_id = self.push_client.send(token, n.title, n.body, n.data, n.priority)
        logger.info("Sent %s notification to %s", n.type.value, n.userId)
        return message_id


class QueuedDispatcher:
    def __init__(
        self,
        store,
        push_client,
        token_resolver,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        poll_interval: float = POLL_INTERVAL,
        clock: Callable[[], float] = time.time,
        background: bool = True,
    ):
        """
        ``background=False`` leaves draining to whoever calls
        ``process_queue()``; enqueue then only appends.
        """
        self.store = store
        self.push_client = push_client
        self.token_resolver = token_resolver
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.poll_interval = poll_interval
        self.background = background
        self._clock = clock

        self._queue: List[Notification] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()
        self._is_processing = False
        self._stop = threading.Event()
        self._timer: Optional[threading.Thread] = None

    # -------------------------
    # Producer side
    # -------------------------
    def enqueue(self, notification) -> None:
        """
        Fire-and-forget. Raises only ValidationError for a malformed payload;
        delivery failures never reach the caller.
        """
        n = Notification.parse(notification)
        n.retries = 0
        n.timestamp = self._clock()
        n.nextRetry = None

        with self._lock:
            n.seq = next(self._seq)
            self._queue.append(n)
            busy = self._is_processing

        log_event("notification_enqueued", n.to_record())
        if not busy and self.background:
            threading.Thread(target=self._safe_process, daemon=True).start()

    send = enqueue

    def pending(self) -> List[Notification]:
        with self._lock:
            return [n.model_copy() for n in self._queue]

    # -------------------------
    # Drain loop
    # -------------------------
    def process_queue(self) -> int:
        """
        Drain every entry that is ready now. Entries still inside their
        backoff window stay queued for a later pass. Returns the number of
        delivery attempts made; 0 if another drain is already running.
        """
        attempts = 0
        while True:
            with self._lock:
                if self._is_processing:
                    return attempts
                self._is_processing = True

            try:
                while True:
                    n = self._take_ready()
                    if n is None:
                        break
                    self._attempt(n)
                    attempts += 1
            finally:
                with self._lock:
                    self._is_processing = False
                    # enqueue() saw the flag still set and left this entry to us
                    again = self._has_ready()
            if not again:
                return attempts

    def _has_ready(self) -> bool:
        # Caller holds self._lock
        now = self._clock()
        return any(n.nextRetry is None or n.nextRetry <= now for n in self._queue)

    def _take_ready(self) -> Optional[Notification]:
        now = self._clock()
        with self._lock:
            for i, n in enumerate(self._queue):
                if n.nextRetry is None or n.nextRetry <= now:
                    return self._queue.pop(i)
        return None

    def _attempt(self, n: Notification):
        try:
            token = self.token_resolver.resolve(n.userId)
            self.push_client.send(token, n.title, n.body, n.data, n.priority)
        except DeliveryError as exc:
            self._on_failure(n, exc)
        except Exception as exc:
            # Store or transport trouble while sending; worth another try
            self._on_failure(n, DeliveryError(str(exc), code=type(exc).__name__))
        else:
            self._log_delivered(n)

    def _on_failure(self, n: Notification, exc: DeliveryError):
        if not exc.retryable:
            logger.warning("Dropping %s notification for %s: %s", n.type.value, n.userId, exc)
            self._log_failed(n, exc)
            return

        n.retries += 1
        if n.retries >= self.max_retries:
            logger.error(
                "Failed to send notification after %d attempts: %s", n.retries, exc
            )
            self._log_failed(n, exc)
            return

        n.nextRetry = self._clock() + self.retry_delay * n.retries
        with self._lock:
            self._queue.append(n)

    # -------------------------
    # Outcome log
    # -------------------------
    def _log_delivered(self, n: Notification):
        record = {
            **n.to_record(),
            "status": "delivered",
            "deliveredAt": datetime.now(timezone.utc),
        }
        try:
            self.store.set(DELIVERED_COLLECTION, n.log_id, record)
        except Exception:
            # Already delivered; resending would duplicate the push
            logger.exception("Could not record delivered notification %s", n.log_id)

    def _log_failed(self, n: Notification, exc: DeliveryError):
        record = {
            **n.to_record(),
            "status": "failed",
            "error": {"message": exc.message, "code": exc.code},
            "failedAt": datetime.now(timezone.utc),
        }
        try:
            self.store.set(FAILED_COLLECTION, n.log_id, record)
        except Exception:
            logger.exception("Could not record failed notification %s", n.log_id)

    # -------------------------
    # Periodic drain
    # -------------------------
    def _safe_process(self):
        try:
            self.process_queue()
        except Exception:
            logger.exception("Error in notification drain")

    def _run_timer(self):
        while not self._stop.wait(self.poll_interval):
            self._safe_process()

    def start(self):
        if self._timer is not None and self._timer.is_alive():
            return
        self._stop.clear()
        self._timer = threading.Thread(target=self._run_timer, daemon=True)
        self._timer.start()

    def stop(self, timeout: float = 5.0):
        self._stop.set()
        if self._timer is not None:
            self._timer.join(timeout)
            self._timer = None
