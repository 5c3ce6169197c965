"""In-process document store with the FirestoreDocumentStore contract.

Test double for the suites in this directory. Documents are keyed by their
full path; sub-collections are independent of their parent document, as in
Firestore.
"""
from __future__ import annotations

import copy
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from medrecords.core.errors import NotFoundError

Condition = Tuple[str, str, Any]


def _lookup(data: Dict[str, Any], field: str):
    value: Any = data
    for part in field.split("."):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


def _matches(data: Dict[str, Any], conditions: Iterable[Condition]) -> bool:
    for field, op, expected in conditions:
        actual = _lookup(data, field)
        if op == "==":
            ok = actual == expected
        elif op == "!=":
            ok = actual is not None and actual != expected
        elif op == "in":
            ok = actual in expected
        elif op == "array_contains":
            ok = isinstance(actual, list) and expected in actual
        elif actual is None:
            ok = False
        elif op == "<":
            ok = actual < expected
        elif op == "<=":
            ok = actual <= expected
        elif op == ">":
            ok = actual > expected
        elif op == ">=":
            ok = actual >= expected
        else:
            raise ValueError(f"Unsupported query operator: {op}")
        if not ok:
            return False
    return True


def _split(path: str):
    collection, _, doc_id = path.rpartition("/")
    return collection, doc_id


class MemoryTransaction:
    def __init__(self, store: "InMemoryDocumentStore"):
        self._store = store
        self._writes: List[Tuple[str, str, str, Any, bool]] = []

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return self._store.get(collection, doc_id)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False):
        self._writes.append(("set", collection, doc_id, data, merge))

    def update(self, collection: str, doc_id: str, partial: Dict[str, Any]):
        if self._store.get(collection, doc_id) is None:
            raise NotFoundError(f"{collection}/{doc_id}")
        self._writes.append(("update", collection, doc_id, partial, False))

    def delete(self, collection: str, doc_id: str):
        self._writes.append(("delete", collection, doc_id, None, False))

    def commit(self):
        for op, collection, doc_id, data, merge in self._writes:
            if op == "set":
                self._store.set(collection, doc_id, data, merge=merge)
            elif op == "update":
                self._store.update(collection, doc_id, data)
            else:
                self._store.delete(collection, doc_id)


class InMemoryDocumentStore:
    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None):
        # RLock: a transaction holds it while its body reads through get()
        self._lock = threading.RLock()
        self._docs: Dict[str, Dict[str, Any]] = {}
        for path, data in (initial or {}).items():
            self._docs[path] = copy.deepcopy(data)

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            data = self._docs.get(f"{collection}/{doc_id}")
            return copy.deepcopy(data) if data is not None else None

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False):
        path = f"{collection}/{doc_id}"
        with self._lock:
            if merge and path in self._docs:
                self._docs[path].update(copy.deepcopy(data))
            else:
                self._docs[path] = copy.deepcopy(data)

    def update(self, collection: str, doc_id: str, partial: Dict[str, Any]):
        path = f"{collection}/{doc_id}"
        with self._lock:
            if path not in self._docs:
                raise NotFoundError(path)
            self._docs[path].update(copy.deepcopy(partial))

    def delete(self, collection: str, doc_id: str):
        with self._lock:
            self._docs.pop(f"{collection}/{doc_id}", None)

    def _select(self, accept: Callable[[str], bool], conditions) -> List[Dict[str, Any]]:
        out = []
        with self._lock:
            for path, data in sorted(self._docs.items()):
                collection, doc_id = _split(path)
                if not accept(collection) or not _matches(data, conditions):
                    continue
                out.append({**copy.deepcopy(data), "id": doc_id, "_path": path})
        return out

    def query(self, collection: str, conditions: Iterable[Condition] = ()) -> List[Dict[str, Any]]:
        conditions = list(conditions)
        return self._select(lambda c: c == collection, conditions)

    def query_group(self, name: str, conditions: Iterable[Condition] = ()) -> List[Dict[str, Any]]:
        conditions = list(conditions)
        return self._select(lambda c: c.rsplit("/", 1)[-1] == name, conditions)

    def run_transaction(self, fn: Callable[[MemoryTransaction], Any]) -> Any:
        with self._lock:
            tx = MemoryTransaction(self)
            result = fn(tx)
            tx.commit()
            return result

    def server_timestamp(self):
        return datetime.now(timezone.utc)
