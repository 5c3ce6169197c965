"""
Hosts the trigger handlers on Firestore real-time listeners.

Listens on the ``medicalRecords``, ``permissions`` and ``accessRequests``
collection groups and routes each document change to TriggerHandlers.
The first snapshot of a listener replays existing documents; it is ignored
except for access requests, whose ``notificationSent`` marker makes a replay
safe and catches requests created while the worker was down.

Run standalone:
    python -m medrecords.workers.trigger_worker
"""

import logging
import threading
import time
from collections import namedtuple
from typing import Any, Dict, Optional

from medrecords.core.config import settings
from medrecords.core.firebase import get_app, get_db, init_firebase
from medrecords.services.document_store import FirestoreDocumentStore
from medrecords.services.logger import configure_logging
from medrecords.services.notification_dispatcher import DirectDispatcher
from medrecords.services.push_client import FcmPushClient, TokenResolver
from medrecords.triggers.handlers import TriggerHandlers

logger = logging.getLogger(__name__)

WATCHED_GROUPS = ("medicalRecords", "permissions", "accessRequests")

Change = namedtuple("Change", ["before", "after"])


class PriorRecord:
    """Stands in for the previous snapshot; only the diagnosis is kept."""

    exists = True

    def __init__(self, diagnosis):
        self.diagnosis = diagnosis

    def to_dict(self):
        return {"diagnosis": self.diagnosis}


def path_params(path: str) -> Optional[Dict[str, str]]:
    """``patients/{patientId}/{group}/{docId}`` -> handler params."""
    parts = path.split("/")
    if len(parts) != 4 or parts[0] != "patients":
        return None
    _, patient_id, group, doc_id = parts
    key = "recordId" if group == "medicalRecords" else "doctorId"
    return {"patientId": patient_id, key: doc_id}


class TriggerWorker:
    def __init__(self, db, handlers: TriggerHandlers):
        self.db = db
        self.handlers = handlers
        self._watches = []
        self._initialized = set()
        # Last seen diagnosis per medical record path, to rebuild before/after
        self._diagnoses: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def start(self):
        for group in WATCHED_GROUPS:
            watch = self.db.collection_group(group).on_snapshot(self._callback(group))
            self._watches.append(watch)
        logger.info("Trigger worker listening on %s", ", ".join(WATCHED_GROUPS))

    def stop(self):
        for watch in self._watches:
            watch.unsubscribe()
        self._watches = []

    def _callback(self, group: str):
        def _on_snapshot(docs, changes, read_time):
            try:
                self.handle_changes(group, changes)
            except Exception:
                logger.exception("Error in %s listener", group)

        return _on_snapshot

    def handle_changes(self, group: str, changes):
        with self._lock:
            initial = group not in self._initialized
            self._initialized.add(group)

        for change in changes:
            doc = change.document
            params = path_params(doc.reference.path)
            if params is None:
                continue

            kind = change.type.name
            before = None
            if group == "medicalRecords":
                path = doc.reference.path
                with self._lock:
                    if path in self._diagnoses:
                        before = PriorRecord(self._diagnoses[path])
                    if kind == "REMOVED":
                        self._diagnoses.pop(path, None)
                    else:
                        self._diagnoses[path] = (doc.to_dict() or {}).get("diagnosis")

            if initial and group != "accessRequests":
                continue

            self._route(group, kind, before, doc, params)

    def _route(self, group, kind, before, doc, params):
        if group == "medicalRecords" and kind == "MODIFIED":
            self.handlers.on_diagnosis_update(Change(before, doc), params)
        elif group == "permissions" and kind == "ADDED":
            self.handlers.on_permission_granted(doc, params)
        elif group == "permissions" and kind == "REMOVED":
            # Removal changes carry the last known document
            self.handlers.on_permission_revoked(doc, params)
        elif group == "accessRequests" and kind == "ADDED":
            self.handlers.on_access_request_created(doc, params)


def build_trigger_worker(db=None, app=None) -> TriggerWorker:
    db = db or get_db()
    store = FirestoreDocumentStore(db)
    dispatcher = DirectDispatcher(FcmPushClient(app=app or get_app()), TokenResolver(store))
    return TriggerWorker(db, TriggerHandlers(dispatcher, store))


def start_trigger_worker() -> TriggerWorker:
    worker = build_trigger_worker()
    worker.start()
    return worker


def main():
    configure_logging()
    init_firebase(timeout=settings.PUSH_TIMEOUT_SECONDS)
    worker = start_trigger_worker()
    try:
        while True:
            time.sleep(3600)
    except KeyboardInterrupt:
        worker.stop()


if __name__ == "__main__":
    main()
