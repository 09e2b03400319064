"""
Reconciliation sweep between the ledger and its occupancy mirror.

Ledger and mirror are written by separate operations outside of ``create``,
so partial failures leave drift behind. The sweep is the repair mechanism:
it fixes what has exactly one correct resolution and escalates the rest.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from ..domain.models import OccupancyEntry, Reservation, Slot, normalize_date
from .blackout import BlackoutRegistry
from .occupancy import OccupancyIndex, time_label
from .store import BLACKOUTS, RESERVATIONS, DocumentStoreProtocol

logger = logging.getLogger(__name__)


@dataclass
class Anomaly:
    """A detected inconsistency and what was (or was not) done about it."""
    kind: str
    date: str
    ids: Tuple[str, ...]
    detail: str = ""
    repaired: bool = False


@dataclass
class ReconciliationReport:
    start_date: str
    end_date: str
    reservations_checked: int = 0
    entries_checked: int = 0
    repairs: List[Anomaly] = field(default_factory=list)
    escalations: List[Anomaly] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.repairs and not self.escalations

    def count(self, kind: str) -> int:
        return sum(1 for a in self.repairs + self.escalations if a.kind == kind)


MISSING_MIRROR = "missing_mirror"
STALE_MIRROR = "stale_mirror"
DANGLING_MIRROR = "dangling_mirror"
DUPLICATE_BLACKOUT = "duplicate_blackout"
DOUBLE_BOOKING = "double_booking"
UNRESOLVED_TIME = "unresolved_time"


class Reconciler:
    def __init__(
        self,
        store: DocumentStoreProtocol,
        grid: Sequence[Slot],
        occupancy: OccupancyIndex | None = None,
        blackouts: BlackoutRegistry | None = None,
    ):
        self._store = store
        self._grid = tuple(grid)
        self._occupancy = occupancy or OccupancyIndex(store, self._grid)
        self._blackouts = blackouts or BlackoutRegistry(store)

    def reconcile(self, start_date: str, end_date: str, repair: bool = True) -> ReconciliationReport:
        """
        Diff reservations against mirror entries for a date range.

        With ``repair`` set, missing and stale mirrors are rewritten, dangling
        mirrors deleted and duplicate blackouts collapsed to the earliest.
        Double bookings and unresolved time labels are only escalated.
        """
        start, end = normalize_date(start_date), normalize_date(end_date)
        if end < start:
            start, end = end, start
        report = ReconciliationReport(start_date=start, end_date=end)

        reservations = {
            doc.id: Reservation.from_document(doc.id, doc.data)
            for doc in self._store.query(RESERVATIONS, [("date", ">=", start), ("date", "<=", end)])
        }
        entries = {e.id: e for e in self._occupancy.entries_between(start, end)}
        report.reservations_checked = len(reservations)
        report.entries_checked = len(entries)

        for reservation in reservations.values():
            entry = entries.get(reservation.id)
            if entry is None:
                # mirror may live under a different date if the reservation moved
                entry = self._occupancy.get(reservation.id)
            self._check_mirror(reservation, entry, report, repair)

        for entry in entries.values():
            if entry.id not in reservations and self._store.get(RESERVATIONS, entry.id) is None:
                anomaly = Anomaly(DANGLING_MIRROR, entry.date, (entry.id,), f"slot {entry.slot_index}")
                if repair:
                    self._occupancy.remove(entry.id)
                    anomaly.repaired = True
                report.repairs.append(anomaly)

        self._check_double_bookings(reservations.values(), report)
        self._check_blackouts(start, end, report, repair)

        for anomaly in report.repairs:
            logger.info(
                "Reconciliation %s on %s %s (%s)%s",
                anomaly.kind,
                anomaly.date,
                ", ".join(anomaly.ids),
                anomaly.detail,
                "" if anomaly.repaired else " [not repaired]",
            )
        for anomaly in report.escalations:
            logger.warning(
                "Reconciliation needs a human: %s on %s %s (%s)",
                anomaly.kind,
                anomaly.date,
                ", ".join(anomaly.ids),
                anomaly.detail,
            )
        return report

    def _expected_entry(self, reservation: Reservation) -> OccupancyEntry:
        return OccupancyEntry.for_reservation(reservation, time_label(reservation, self._grid))

    def _check_mirror(
        self,
        reservation: Reservation,
        entry: OccupancyEntry | None,
        report: ReconciliationReport,
        repair: bool,
    ) -> None:
        expected = self._expected_entry(reservation)
        if entry is None:
            anomaly = Anomaly(MISSING_MIRROR, reservation.date, (reservation.id,), reservation.status.value)
        elif entry.to_document() != expected.to_document():
            anomaly = Anomaly(
                STALE_MIRROR,
                reservation.date,
                (reservation.id,),
                f"mirror {entry.status.value}@{entry.slot_index}, "
                f"ledger {reservation.status.value}@{reservation.slot_index}",
            )
        else:
            return

        if repair:
            self._occupancy.write(reservation)
            anomaly.repaired = True
        report.repairs.append(anomaly)

    def _check_double_bookings(self, reservations, report: ReconciliationReport) -> None:
        holders: Dict[Tuple[str, int], List[str]] = defaultdict(list)
        for reservation in reservations:
            if not reservation.is_active:
                continue
            if reservation.is_unresolved:
                report.escalations.append(
                    Anomaly(UNRESOLVED_TIME, reservation.date, (reservation.id,), repr(reservation.raw_time))
                )
                continue
            holders[(reservation.date, reservation.slot_index)].append(reservation.id)

        for (date, slot_index), ids in sorted(holders.items()):
            if len(ids) > 1:
                report.escalations.append(
                    Anomaly(DOUBLE_BOOKING, date, tuple(ids), f"slot {slot_index}")
                )

    def _check_blackouts(self, start: str, end: str, report: ReconciliationReport, repair: bool) -> None:
        by_date: Dict[str, list] = defaultdict(list)
        for blackout in self._blackouts.list_all():
            if start <= blackout.date <= end:
                by_date[blackout.date].append(blackout)

        for date, entries in by_date.items():
            if len(entries) < 2:
                continue
            entries.sort(key=lambda b: b.created_at)
            keep, extra = entries[0], entries[1:]
            anomaly = Anomaly(
                DUPLICATE_BLACKOUT,
                date,
                tuple(b.id for b in extra),
                f"keeping {keep.id} ({keep.reason})",
            )
            if repair:
                for blackout in extra:
                    self._store.delete(BLACKOUTS, blackout.id)
                anomaly.repaired = True
            report.repairs.append(anomaly)
