"""
Availability index: derived per-date view of open, occupied and blocked slots.

Nothing here is persisted. Views are advisory snapshots; booking commits
re-validate through the ledger's transactional path.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence

from ..domain.models import (
    BlackoutDate,
    DayView,
    Reservation,
    Slot,
    SlotState,
    normalize_date,
)
from .blackout import BlackoutRegistry
from .occupancy import OccupancyIndex
from .store import BLACKOUTS, RESERVATIONS, DocumentStoreProtocol, QuerySnapshot

logger = logging.getLogger(__name__)


def build_states(
    grid: Sequence[Slot],
    reservations: Sequence[Reservation],
    blackout: Optional[BlackoutDate],
) -> Dict[int, SlotState]:
    """
    Label every slot: blocked when the day is blacked out, else occupied when
    an active reservation holds it, else open. Unresolved reservations
    occupy nothing until they are rescheduled.
    """
    if blackout is not None:
        return {slot.index: SlotState.BLOCKED for slot in grid}

    occupied = {
        r.slot_index for r in reservations if r.is_active and r.slot_index is not None
    }

    return {
        slot.index: SlotState.OCCUPIED if slot.index in occupied else SlotState.OPEN
        for slot in grid
    }


class AvailabilityIndex:
    def __init__(
        self,
        store: DocumentStoreProtocol,
        grid: Sequence[Slot],
        blackouts: BlackoutRegistry | None = None,
        occupancy: OccupancyIndex | None = None,
    ):
        self._store = store
        self._grid = tuple(grid)
        self._blackouts = blackouts or BlackoutRegistry(store)
        self._occupancy = occupancy or OccupancyIndex(store, self._grid)

    def _reservations(self, date: str) -> List[Reservation]:
        docs = self._store.query(RESERVATIONS, [("date", "==", date)], order_by=["created_at"])
        return [Reservation.from_document(doc.id, doc.data) for doc in docs]

    def compute(self, date: str) -> Dict[int, SlotState]:
        day = normalize_date(date)
        return build_states(self._grid, self._reservations(day), self._blackouts.get(day))

    def day_view(self, date: str) -> DayView:
        """Slot states together with the block reason and existing reservations."""
        day = normalize_date(date)
        reservations = self._reservations(day)
        blackout = self._blackouts.get(day)
        return DayView(
            date=day,
            states=build_states(self._grid, reservations, blackout),
            blackout=blackout,
            reservations=reservations,
            unresolved=[r for r in reservations if r.is_active and r.is_unresolved],
        )

    def is_bookable(self, date: str, slot_index: int) -> bool:
        """Advisory fast check through the occupancy mirror and blackout registry."""
        day = normalize_date(date)
        if not 0 <= slot_index < len(self._grid):
            return False
        if self._blackouts.is_blocked(day):
            return False
        return not self._occupancy.is_taken(day, slot_index)

    def watch(self, date: str, callback: Callable[[DayView], None]) -> Callable[[], None]:
        """
        Push a fresh DayView to ``callback`` whenever the date's reservations
        or blackout entries change.

        Returns:
            A function that stops watching
        """
        day = normalize_date(date)
        state: Dict[str, object] = {"reservations": None, "blackouts": None}

        def emit() -> None:
            if state["reservations"] is None or state["blackouts"] is None:
                return
            reservations: List[Reservation] = state["reservations"]  # type: ignore[assignment]
            blackouts: List[BlackoutDate] = state["blackouts"]  # type: ignore[assignment]
            blackout = min(blackouts, key=lambda b: b.created_at) if blackouts else None
            callback(
                DayView(
                    date=day,
                    states=build_states(self._grid, reservations, blackout),
                    blackout=blackout,
                    reservations=reservations,
                    unresolved=[r for r in reservations if r.is_active and r.is_unresolved],
                )
            )

        def on_reservations(snapshot: QuerySnapshot) -> None:
            state["reservations"] = sorted(
                (Reservation.from_document(doc.id, doc.data) for doc in snapshot.documents),
                key=lambda r: r.created_at,
            )
            emit()

        def on_blackouts(snapshot: QuerySnapshot) -> None:
            state["blackouts"] = [BlackoutDate.from_document(doc.id, doc.data) for doc in snapshot.documents]
            emit()

        stop_reservations = self._store.subscribe(RESERVATIONS, on_reservations, [("date", "==", day)])
        stop_blackouts = self._store.subscribe(BLACKOUTS, on_blackouts, [("date", "==", day)])
        logger.debug("Watching availability for %s", day)

        def unsubscribe() -> None:
            stop_reservations()
            stop_blackouts()

        return unsubscribe
