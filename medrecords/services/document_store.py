"""Firestore document store adapter.

Typed get/set/update/delete/query against the collection + document model.
Collections may be slash-joined sub-collection paths, e.g.
``patients/{patientId}/permissions``. Query results carry the document id
under ``id`` and the full document path under ``_path``.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from firebase_admin import firestore
from google.api_core.exceptions import NotFound
from google.cloud.firestore import FieldFilter

from medrecords.core.errors import NotFoundError

logger = logging.getLogger(__name__)

Condition = Tuple[str, str, Any]


def _snapshot_to_dict(snap) -> Dict[str, Any]:
    data = snap.to_dict() or {}
    data["id"] = snap.id
    data["_path"] = snap.reference.path
    return data


class FirestoreTransaction:
    """Transaction handle; all reads must happen before the first write."""

    def __init__(self, db, transaction):
        self._db = db
        self._tx = transaction

    def _ref(self, collection: str, doc_id: str):
        return self._db.collection(collection).document(doc_id)

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snap = self._ref(collection, doc_id).get(transaction=self._tx)
        return snap.to_dict() if snap.exists else None

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False):
        self._tx.set(self._ref(collection, doc_id), data, merge=merge)

    def update(self, collection: str, doc_id: str, partial: Dict[str, Any]):
        self._tx.update(self._ref(collection, doc_id), partial)

    def delete(self, collection: str, doc_id: str):
        self._tx.delete(self._ref(collection, doc_id))


class FirestoreDocumentStore:
    def __init__(self, client=None):
        self._db = client or firestore.client()

    @property
    def client(self):
        return self._db

    def _ref(self, collection: str, doc_id: str):
        return self._db.collection(collection).document(doc_id)

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snap = self._ref(collection, doc_id).get()
        return snap.to_dict() if snap.exists else None

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False):
        self._ref(collection, doc_id).set(data, merge=merge)

    def update(self, collection: str, doc_id: str, partial: Dict[str, Any]):
        try:
            self._ref(collection, doc_id).update(partial)
        except NotFound as exc:
            raise NotFoundError(f"{collection}/{doc_id}") from exc

    def delete(self, collection: str, doc_id: str):
        self._ref(collection, doc_id).delete()

    def query(self, collection: str, conditions: Iterable[Condition] = ()) -> List[Dict[str, Any]]:
        q = self._db.collection(collection)
        for field, op, value in conditions:
            q = q.where(filter=FieldFilter(field, op, value))
        return [_snapshot_to_dict(d) for d in q.stream()]

    def query_group(self, name: str, conditions: Iterable[Condition] = ()) -> List[Dict[str, Any]]:
        q = self._db.collection_group(name)
        for field, op, value in conditions:
            q = q.where(filter=FieldFilter(field, op, value))
        return [_snapshot_to_dict(d) for d in q.stream()]

    def run_transaction(self, fn: Callable[[FirestoreTransaction], Any]) -> Any:
        """Run ``fn`` atomically. Firestore may call ``fn`` more than once."""
        transaction = self._db.transaction()

        @firestore.transactional
        def _run(tx):
            return fn(FirestoreTransaction(self._db, tx))

        return _run(transaction)

    def server_timestamp(self):
        return firestore.SERVER_TIMESTAMP
