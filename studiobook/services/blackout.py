"""
Blackout registry: administrator-declared fully unbookable dates.

Blocking a date only prevents new reservations; existing ones stay untouched
so staff can decide whether to cancel them.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.exceptions import DuplicateBlockError, InvalidReservationError
from ..domain.models import BlackoutDate, iso_timestamp, normalize_date
from .store import BLACKOUTS, DocumentStoreProtocol

logger = logging.getLogger(__name__)


class BlackoutRegistry:
    def __init__(self, store: DocumentStoreProtocol, clock: Callable[[], DateTime] | None = None):
        self._store = store
        self._clock = clock or (lambda: pendulum.now("UTC"))

    def entries_for(self, date: str) -> List[BlackoutDate]:
        """All registry entries for a date, earliest first (normally at most one)."""
        docs = self._store.query(BLACKOUTS, [("date", "==", normalize_date(date))], order_by=["created_at"])
        return [BlackoutDate.from_document(doc.id, doc.data) for doc in docs]

    def get(self, date: str) -> Optional[BlackoutDate]:
        entries = self.entries_for(date)
        if len(entries) > 1:
            logger.warning("Date %s has %d blackout entries", date, len(entries))
        return entries[0] if entries else None

    def is_blocked(self, date: str) -> bool:
        return self.get(date) is not None

    def list_all(self) -> List[BlackoutDate]:
        docs = self._store.query(BLACKOUTS, order_by=["date", "created_at"])
        return [BlackoutDate.from_document(doc.id, doc.data) for doc in docs]

    def block(self, date: str, reason: str) -> BlackoutDate:
        """
        Add a date to the registry.

        Raises:
            DuplicateBlockError: If the date is already blocked; the existing
                reason is never overwritten
            InvalidReservationError: If the date is invalid or reason empty
        """
        day = normalize_date(date)
        reason = (reason or "").strip()
        if not reason:
            raise InvalidReservationError("A blackout reason is required")

        with self._store.transaction() as txn:
            existing = txn.query(BLACKOUTS, [("date", "==", day)])
            if existing:
                raise DuplicateBlockError(day, existing[0].data.get("reason", ""))

            blackout = BlackoutDate(
                id=self._store.new_id(BLACKOUTS),
                date=day,
                reason=reason,
                created_at=iso_timestamp(self._clock()),
            )
            txn.set(BLACKOUTS, blackout.id, blackout.to_document())

        logger.info("Blocked %s: %s", day, reason)
        return blackout

    def unblock(self, date: str) -> int:
        """Remove every entry for a date and return how many were removed."""
        day = normalize_date(date)
        with self._store.transaction() as txn:
            entries = txn.query(BLACKOUTS, [("date", "==", day)])
            for doc in entries:
                txn.delete(BLACKOUTS, doc.id)

        if len(entries) > 1:
            logger.warning("Removed %d blackout entries for %s; expected at most one", len(entries), day)
        elif entries:
            logger.info("Unblocked %s", day)
        return len(entries)
