"""
Observes the live reservation feed and emits domain events.

New reservations are detected by diffing identifier sets against an explicit
watermark rather than by comparing counts, so a delete and a create landing
in the same observation cannot cancel each other out. Delivery (email,
desktop notification) belongs to the sinks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from .store import RESERVATIONS, Document, DocumentStoreProtocol, QuerySnapshot

logger = logging.getLogger(__name__)

NEW_RESERVATION = "new_reservation"
STATUS_CHANGED = "status_changed"


@dataclass(frozen=True)
class ReservationEvent:
    type: str
    reservation_id: str
    date: str
    slot: Optional[int]
    status: str
    previous_status: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "reservationId": self.reservation_id,
            "date": self.date,
            "slot": self.slot,
            "status": self.status,
        }


@dataclass
class NotifierState:
    """
    Per-session watermark: the ids present in the last snapshot and their
    statuses. Ids are never reused, so an id that leaves the feed is dropped.
    """
    seen_ids: Set[str] = field(default_factory=set)
    statuses: Dict[str, str] = field(default_factory=dict)
    primed: bool = False


EventSink = Callable[[ReservationEvent], None]


class ChangeNotifier:
    def __init__(
        self,
        store: DocumentStoreProtocol,
        sinks: Iterable[EventSink] = (),
        state: NotifierState | None = None,
        notify_existing: bool = False,
    ):
        """
        Args:
            store: Document store to watch
            sinks: Callables receiving each event
            state: Watermark carried over from an earlier run of the session
            notify_existing: Emit events for records present on the first
                observation instead of silently priming the watermark
        """
        self._store = store
        self._sinks: List[EventSink] = list(sinks)
        self.state = state or NotifierState()
        self._notify_existing = notify_existing
        self._unsubscribe: Optional[Callable[[], None]] = None

    def add_sink(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(RESERVATIONS, self._on_snapshot)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_snapshot(self, snapshot: QuerySnapshot) -> None:
        self.observe(snapshot.documents)

    def observe(self, documents: Iterable[Document]) -> List[ReservationEvent]:
        """Diff one full snapshot against the watermark and emit the events."""
        current = {doc.id: doc.data for doc in documents}
        state = self.state
        events: List[ReservationEvent] = []

        if not state.primed and not self._notify_existing:
            state.seen_ids = set(current)
            state.statuses = {i: d.get("status", "") for i, d in current.items()}
            state.primed = True
            logger.debug("Notifier primed with %d reservations", len(current))
            return events
        state.primed = True

        new_ids = [i for i in current if i not in state.seen_ids]
        new_ids.sort(key=lambda i: current[i].get("created_at") or "")
        for doc_id in new_ids:
            data = current[doc_id]
            events.append(self._event(NEW_RESERVATION, doc_id, data))

        for doc_id, data in current.items():
            if doc_id in new_ids:
                continue
            status = data.get("status", "")
            previous = state.statuses.get(doc_id)
            if previous is not None and previous != status:
                events.append(self._event(STATUS_CHANGED, doc_id, data, previous))

        state.seen_ids = set(current)
        state.statuses = {i: d.get("status", "") for i, d in current.items()}

        for event in events:
            self._dispatch(event)
        return events

    @staticmethod
    def _event(kind: str, doc_id: str, data: Dict[str, Any], previous: str | None = None) -> ReservationEvent:
        return ReservationEvent(
            type=kind,
            reservation_id=doc_id,
            date=data.get("date", ""),
            slot=data.get("slot_index"),
            status=data.get("status", ""),
            previous_status=previous,
        )

    def _dispatch(self, event: ReservationEvent) -> None:
        for sink in self._sinks:
            try:
                sink(event)
            except Exception:
                logger.exception("Event sink failed for %s %s", event.type, event.reservation_id)
