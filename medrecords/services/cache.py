"""Cache-aside wrapper for the document store.

Entries are keyed ``collection:docId`` for documents and
``search:{collection}:{params}`` for search results. Expiry is lazy: an
entry past its TTL is dropped on the next read, nothing sweeps the map.
Every write that goes through ``CachedDocumentStore`` invalidates the
document key and the collection's search results.
"""
from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

_MISSING = object()


@dataclass
class CacheEntry:
    key: str
    data: Any
    timestamp: float
    ttl: float


class TTLCache:
    def __init__(self, default_ttl: float = 300.0, clock: Callable[[], float] = time.time):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default=None):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if self._clock() - entry.timestamp >= entry.ttl:
                del self._entries[key]
                return default
            return entry.data

    def put(self, key: str, data: Any, ttl: Optional[float] = None):
        with self._lock:
            self._entries[key] = CacheEntry(
                key=key,
                data=data,
                timestamp=self._clock(),
                ttl=self.default_ttl if ttl is None else ttl,
            )

    def get_or_load(self, key: str, loader: Callable[[], Any], ttl: Optional[float] = None):
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        # Loader runs outside the lock; two concurrent misses may both load
        data = loader()
        self.put(key, data, ttl)
        return data

    def invalidate(self, key: str):
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_prefix(self, prefix: str):
        with self._lock:
            for key in [k for k in self._entries if k.startswith(prefix)]:
                del self._entries[key]

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        with self._lock:
            return len(self._entries)


def doc_key(collection: str, doc_id: str) -> str:
    return f"{collection}:{doc_id}"


def search_key(collection: str, params: Dict[str, Any]) -> str:
    return f"search:{collection}:{json.dumps(params, sort_keys=True, default=str)}"


class _InvalidatingTransaction:
    def __init__(self, tx, written: List[tuple]):
        self._tx = tx
        self._written = written

    def get(self, collection, doc_id):
        return self._tx.get(collection, doc_id)

    def set(self, collection, doc_id, data, merge=False):
        self._tx.set(collection, doc_id, data, merge=merge)
        self._written.append((collection, doc_id))

    def update(self, collection, doc_id, partial):
        self._tx.update(collection, doc_id, partial)
        self._written.append((collection, doc_id))

    def delete(self, collection, doc_id):
        self._tx.delete(collection, doc_id)
        self._written.append((collection, doc_id))


class CachedDocumentStore:
    """Read-through on ``get`` and ``search``; queries are never cached."""

    def __init__(self, store, cache: Optional[TTLCache] = None, search_ttl: float = 30.0):
        self.store = store
        self.cache = cache or TTLCache()
        self.search_ttl = search_ttl

    def _invalidate(self, collection: str, doc_id: str):
        self.cache.invalidate(doc_key(collection, doc_id))
        self.cache.invalidate_prefix(f"search:{collection}:")

    def get(self, collection: str, doc_id: str):
        return self.cache.get_or_load(
            doc_key(collection, doc_id),
            lambda: self.store.get(collection, doc_id),
        )

    def search(self, collection: str, params: Dict[str, Any], conditions: Iterable) -> list:
        conditions = list(conditions)
        return self.cache.get_or_load(
            search_key(collection, params),
            lambda: self.store.query(collection, conditions),
            ttl=self.search_ttl,
        )

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False):
        self.store.set(collection, doc_id, data, merge=merge)
        self._invalidate(collection, doc_id)

    def update(self, collection: str, doc_id: str, partial: Dict[str, Any]):
        try:
            self.store.update(collection, doc_id, partial)
        finally:
            self._invalidate(collection, doc_id)

    def delete(self, collection: str, doc_id: str):
        self.store.delete(collection, doc_id)
        self._invalidate(collection, doc_id)

    def query(self, collection: str, conditions: Iterable = ()):
        return self.store.query(collection, conditions)

    def query_group(self, name: str, conditions: Iterable = ()):
        return self.store.query_group(name, conditions)

    def run_transaction(self, fn):
        written: List[tuple] = []

        def _wrapped(tx):
            # Firestore retries the body on contention; keep only the last attempt
            del written[:]
            return fn(_InvalidatingTransaction(tx, written))

        try:
            return self.store.run_transaction(_wrapped)
        finally:
            for collection, doc_id in written:
                self._invalidate(collection, doc_id)

    def server_timestamp(self):
        return self.store.server_timestamp()
