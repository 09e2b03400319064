"""
Slot occupancy index: the denormalized (date, slot) mirror of the ledger.

Entries are written only as a side effect of ledger operations. The mirror
is best-effort outside of ``create``; the reconciliation sweep repairs drift.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..domain.exceptions import DocumentNotFoundError, TransientStoreError
from ..domain.models import OccupancyEntry, Reservation, ReservationStatus, Slot
from ..domain.slot_grid import slot_by_index
from .store import OCCUPANCY, DocumentStoreProtocol, TransactionProtocol

logger = logging.getLogger(__name__)


def time_label(reservation: Reservation, grid: Sequence[Slot]) -> str:
    """Canonical slot label for the mirror, or the raw label when unresolved."""
    slot = slot_by_index(grid, reservation.slot_index)
    return slot.start_label if slot else reservation.raw_time


def active_holder(entries: Sequence[OccupancyEntry], slot_index: int) -> Optional[OccupancyEntry]:
    for entry in entries:
        if entry.slot_index == slot_index and entry.is_active:
            return entry
    return None


class OccupancyIndex:
    """Fast "is this (date, slot) taken" lookups without loading reservations."""

    def __init__(self, store: DocumentStoreProtocol, grid: Sequence[Slot]):
        self._store = store
        self._grid = grid

    def get(self, reservation_id: str) -> Optional[OccupancyEntry]:
        data = self._store.get(OCCUPANCY, reservation_id)
        return OccupancyEntry.from_document(reservation_id, data) if data else None

    def entries_for_date(self, date: str) -> List[OccupancyEntry]:
        return [
            OccupancyEntry.from_document(doc.id, doc.data)
            for doc in self._store.query(OCCUPANCY, [("date", "==", date)])
        ]

    def entries_between(self, start_date: str, end_date: str) -> List[OccupancyEntry]:
        return [
            OccupancyEntry.from_document(doc.id, doc.data)
            for doc in self._store.query(
                OCCUPANCY, [("date", ">=", start_date), ("date", "<=", end_date)]
            )
        ]

    def holder_of(self, date: str, slot_index: int) -> Optional[OccupancyEntry]:
        """The active entry holding a slot, if any."""
        return active_holder(self.entries_for_date(date), slot_index)

    def is_taken(self, date: str, slot_index: int) -> bool:
        return self.holder_of(date, slot_index) is not None

    # -- writes driven by the ledger ------------------------------------

    def entries_in_transaction(self, txn: TransactionProtocol, date: str) -> List[OccupancyEntry]:
        return [
            OccupancyEntry.from_document(doc.id, doc.data)
            for doc in txn.query(OCCUPANCY, [("date", "==", date)])
        ]

    def write_in_transaction(self, txn: TransactionProtocol, reservation: Reservation) -> OccupancyEntry:
        entry = OccupancyEntry.for_reservation(reservation, time_label(reservation, self._grid))
        txn.set(OCCUPANCY, entry.id, entry.to_document())
        return entry

    def write(self, reservation: Reservation) -> OccupancyEntry:
        entry = OccupancyEntry.for_reservation(reservation, time_label(reservation, self._grid))
        self._store.set(OCCUPANCY, entry.id, entry.to_document())
        return entry

    def mirror_status(self, reservation_id: str, status: ReservationStatus) -> bool:
        """
        Copy a status change into the mirror.

        Returns False when the mirror is missing or the write failed; both are
        tolerated and left for reconciliation.
        """
        try:
            self._store.update(OCCUPANCY, reservation_id, {"status": status.value})
        except DocumentNotFoundError:
            logger.warning("No occupancy entry to mirror status for reservation %s", reservation_id)
            return False
        except TransientStoreError as exc:
            logger.warning(
                "Could not mirror status '%s' for reservation %s: %s",
                status.value,
                reservation_id,
                exc,
            )
            return False
        return True

    def retract(self, reservation_id: str) -> bool:
        """Best-effort removal of a mirror entry; False only when the delete failed."""
        try:
            removed = self._store.delete(OCCUPANCY, reservation_id)
        except TransientStoreError as exc:
            logger.warning("Could not retract occupancy entry %s: %s", reservation_id, exc)
            return False
        if not removed:
            logger.info("Occupancy entry %s was already gone", reservation_id)
        return True

    def remove(self, entry_id: str) -> bool:
        return self._store.delete(OCCUPANCY, entry_id)
