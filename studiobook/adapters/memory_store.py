"""
In-memory document store with transactions and a push-based change feed.

Mirrors the semantics of a managed document database closely enough for the
booking services: single-document atomic writes, serialized multi-document
transactions, and subscribe-to-query listeners that receive the full result
set plus incremental diffs.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from ..domain.exceptions import DocumentNotFoundError, TransientStoreError
from ..services.store import Document, Filter, QuerySnapshot, matches

logger = logging.getLogger(__name__)


@dataclass
class _Subscription:
    collection: str
    filters: Tuple[Filter, ...]
    callback: Callable[[QuerySnapshot], None]
    last: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    active: bool = True


def _sort_key(doc: Document, name: str) -> Tuple[bool, Any]:
    value = doc.data.get(name)
    return value is None, value


class InMemoryTransaction:
    """
    Buffered writes applied atomically on commit.

    Reads see committed state overlaid with this transaction's own writes.
    """

    def __init__(self, store: "InMemoryDocumentStore"):
        self._store = store
        self._writes: List[Tuple[str, str, str, Optional[Dict[str, Any]]]] = []
        self._overlay: Dict[Tuple[str, str], Optional[Dict[str, Any]]] = {}

    def _current(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        key = (collection, doc_id)
        if key in self._overlay:
            return self._overlay[key]
        return self._store._collections[collection].get(doc_id)

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        self._store._check_failure("get", collection)
        data = self._current(collection, doc_id)
        return copy.deepcopy(data) if data is not None else None

    def query(self, collection: str, filters: Sequence[Filter] = ()) -> List[Document]:
        self._store._check_failure("query", collection)
        ids = set(self._store._collections[collection])
        ids.update(doc_id for (coll, doc_id) in self._overlay if coll == collection)
        results = []
        for doc_id in sorted(ids):
            data = self._current(collection, doc_id)
            if data is not None and matches(data, filters):
                results.append(Document(id=doc_id, data=copy.deepcopy(data)))
        return results

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        body = copy.deepcopy(data)
        self._writes.append(("set", collection, doc_id, body))
        self._overlay[(collection, doc_id)] = body

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        current = self._current(collection, doc_id)
        if current is None:
            raise DocumentNotFoundError(collection, doc_id)
        merged = {**current, **copy.deepcopy(fields)}
        self._writes.append(("update", collection, doc_id, merged))
        self._overlay[(collection, doc_id)] = merged

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes.append(("delete", collection, doc_id, None))
        self._overlay[(collection, doc_id)] = None

    @property
    def touched(self) -> Set[str]:
        return {collection for _, collection, _, _ in self._writes}


class InMemoryDocumentStore:
    """
    Thread-safe in-process document store.

    ``inject_failure`` makes the next N calls of an operation raise
    TransientStoreError so partial-failure paths can be exercised.
    """

    def __init__(self, initial: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None):
        self._lock = threading.RLock()
        self._notify_lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self._subscriptions: List[_Subscription] = []
        self._failures: Dict[Tuple[str, Optional[str]], int] = {}
        for collection, documents in (initial or {}).items():
            self._collections[collection].update(copy.deepcopy(documents))

    # -- fault injection ------------------------------------------------

    def inject_failure(self, operation: str, collection: Optional[str] = None, times: int = 1) -> None:
        """Fail the next ``times`` calls of ``operation`` (optionally per collection)."""
        with self._lock:
            self._failures[(operation, collection)] = times

    def _check_failure(self, operation: str, collection: Optional[str]) -> None:
        for key in ((operation, collection), (operation, None)):
            remaining = self._failures.get(key, 0)
            if remaining > 0:
                self._failures[key] = remaining - 1
                raise TransientStoreError(
                    f"Simulated {operation} failure on {collection or 'store'}"
                )

    # -- single-document operations -------------------------------------

    def new_id(self, collection: str) -> str:
        return uuid.uuid4().hex[:20]

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._check_failure("get", collection)
            data = self._collections[collection].get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Sequence[str] = (),
    ) -> List[Document]:
        """
        Return matching documents, ordered by the given fields.

        Prefix a field with ``-`` for descending order.
        """
        with self._lock:
            self._check_failure("query", collection)
            results = [
                Document(id=doc_id, data=copy.deepcopy(data))
                for doc_id, data in sorted(self._collections[collection].items())
                if matches(data, filters)
            ]

        for key in reversed(list(order_by)):
            descending = key.startswith("-")
            name = key.lstrip("-")
            results.sort(key=lambda doc: _sort_key(doc, name), reverse=descending)
        return results

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._check_failure("set", collection)
            self._collections[collection][doc_id] = copy.deepcopy(data)
            self._after_write()
        self._notify({collection})

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        with self._lock:
            self._check_failure("update", collection)
            current = self._collections[collection].get(doc_id)
            if current is None:
                raise DocumentNotFoundError(collection, doc_id)
            current.update(copy.deepcopy(fields))
            self._after_write()
        self._notify({collection})

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            self._check_failure("delete", collection)
            existed = self._collections[collection].pop(doc_id, None) is not None
            if existed:
                self._after_write()
        if existed:
            self._notify({collection})
        return existed

    # -- transactions ---------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[InMemoryTransaction]:
        """
        Serialized read-check-write block.

        The store lock is held for the whole block, so a check performed
        inside it cannot be invalidated by a concurrent writer. Writes are
        discarded if the block raises.
        """
        with self._lock:
            txn = InMemoryTransaction(self)
            yield txn
            self._commit(txn)
        self._notify(txn.touched)

    def _commit(self, txn: InMemoryTransaction) -> None:
        self._check_failure("commit", None)
        for collection in txn.touched:
            self._check_failure("commit", collection)

        for op, collection, doc_id, body in txn._writes:
            if op == "delete":
                self._collections[collection].pop(doc_id, None)
            else:
                self._collections[collection][doc_id] = body
        if txn._writes:
            self._after_write()

    def _after_write(self) -> None:
        """Hook for persistent subclasses; called with the store lock held."""

    # -- change feed ----------------------------------------------------

    def subscribe(
        self,
        collection: str,
        callback: Callable[[QuerySnapshot], None],
        filters: Sequence[Filter] = (),
    ) -> Callable[[], None]:
        subscription = _Subscription(collection=collection, filters=tuple(filters), callback=callback)
        with self._notify_lock:
            with self._lock:
                self._subscriptions.append(subscription)
            self._deliver(subscription, initial=True)

        def unsubscribe() -> None:
            with self._lock:
                subscription.active = False
                if subscription in self._subscriptions:
                    self._subscriptions.remove(subscription)

        return unsubscribe

    def _notify(self, collections: Set[str]) -> None:
        if not collections:
            return
        with self._notify_lock:
            with self._lock:
                targets = [s for s in self._subscriptions if s.collection in collections]
            for subscription in targets:
                self._deliver(subscription)

    def _deliver(self, subscription: _Subscription, initial: bool = False) -> None:
        if not subscription.active:
            return
        with self._lock:
            current = {
                doc_id: copy.deepcopy(data)
                for doc_id, data in sorted(self._collections[subscription.collection].items())
                if matches(data, subscription.filters)
            }

        previous = subscription.last
        added = [Document(i, d) for i, d in current.items() if i not in previous]
        removed = [Document(i, d) for i, d in previous.items() if i not in current]
        modified = [
            Document(i, d) for i, d in current.items() if i in previous and previous[i] != d
        ]
        if not initial and not (added or removed or modified):
            return

        subscription.last = current
        snapshot = QuerySnapshot(
            documents=[Document(i, copy.deepcopy(d)) for i, d in current.items()],
            added=added,
            modified=modified,
            removed=removed,
        )
        try:
            subscription.callback(snapshot)
        except Exception:
            logger.exception("Change listener on %s failed", subscription.collection)

    # -- inspection -----------------------------------------------------

    def dump(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        with self._lock:
            return copy.deepcopy({name: dict(docs) for name, docs in self._collections.items()})
