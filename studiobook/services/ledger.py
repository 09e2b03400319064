"""
Reservation ledger: the authoritative record of every booking.

``create`` and ``reschedule`` arbitrate slot ownership inside a single store
transaction (read occupancy, check, dual-write reservation and mirror).
Status changes and deletes touch one document each and mirror best-effort;
the reconciliation sweep is the backstop for drift between the two.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Callable, List, Optional, Sequence, Tuple

import pendulum
from pendulum import DateTime

from ..domain.contact import CONTACT_FIELDS, clean_contact
from ..domain.exceptions import (
    DateBlockedError,
    InvalidReservationError,
    InvalidTransitionError,
    ReservationNotFoundError,
    SlotTakenError,
)
from ..domain.models import (
    EDITABLE_FIELDS,
    LedgerTotals,
    Reservation,
    ReservationDetails,
    ReservationSource,
    ReservationStatus,
    Slot,
    can_transition,
    is_active_status,
    iso_timestamp,
    normalize_date,
)
from ..domain.reference import generate_reference
from ..domain.time_matcher import match_slot
from .occupancy import OccupancyIndex, active_holder
from .store import BLACKOUTS, OCCUPANCY, RESERVATIONS, DocumentStoreProtocol, TransactionProtocol, call_with_retry

logger = logging.getLogger(__name__)


class ReservationLedger:
    def __init__(
        self,
        store: DocumentStoreProtocol,
        grid: Sequence[Slot],
        occupancy: OccupancyIndex | None = None,
        *,
        clock: Callable[[], DateTime] | None = None,
        reference_prefix: str = "IOS",
        retry_attempts: int = 3,
        retry_base_delay: float = 0.2,
    ):
        self._store = store
        self.grid = tuple(grid)
        self.occupancy = occupancy or OccupancyIndex(store, self.grid)
        self._clock = clock or (lambda: pendulum.now("UTC"))
        self._reference_prefix = reference_prefix
        self._retry_attempts = retry_attempts
        self._retry_base_delay = retry_base_delay

    def _retry(self, func: Callable[[], Any], description: str) -> Any:
        return call_with_retry(
            func,
            attempts=self._retry_attempts,
            base_delay=self._retry_base_delay,
            description=description,
        )

    # -- reads ----------------------------------------------------------

    def get(self, reservation_id: str) -> Reservation:
        data = self._store.get(RESERVATIONS, reservation_id)
        if data is None:
            raise ReservationNotFoundError(reservation_id)
        return Reservation.from_document(reservation_id, data)

    def find(self, reservation_id: str) -> Optional[Reservation]:
        try:
            return self.get(reservation_id)
        except ReservationNotFoundError:
            return None

    def list_for_date(self, date: str) -> List[Reservation]:
        docs = self._store.query(
            RESERVATIONS, [("date", "==", normalize_date(date))], order_by=["created_at"]
        )
        return [Reservation.from_document(doc.id, doc.data) for doc in docs]

    def list_range(self, start_date: str, end_date: str) -> List[Reservation]:
        docs = self._store.query(
            RESERVATIONS,
            [("date", ">=", normalize_date(start_date)), ("date", "<=", normalize_date(end_date))],
            order_by=["date", "created_at"],
        )
        return [Reservation.from_document(doc.id, doc.data) for doc in docs]

    def list_all(self) -> List[Reservation]:
        docs = self._store.query(RESERVATIONS, order_by=["date", "created_at"])
        return [Reservation.from_document(doc.id, doc.data) for doc in docs]

    def daily_rows(self, date: str) -> List[Tuple[Slot, Optional[Reservation]]]:
        """Sales-ledger rows: every slot with the active reservation holding it."""
        by_slot = {
            r.slot_index: r
            for r in self.list_for_date(date)
            if r.is_active and r.slot_index is not None
        }
        return [(slot, by_slot.get(slot.index)) for slot in self.grid]

    def totals_for_date(self, date: str) -> LedgerTotals:
        return LedgerTotals.from_reservations([r for r in self.list_for_date(date) if r.is_active])

    # -- create ---------------------------------------------------------

    def create(
        self,
        date: str,
        raw_time: str,
        details: ReservationDetails,
        *,
        status: ReservationStatus | str = ReservationStatus.PENDING,
        source: ReservationSource | str = ReservationSource.CUSTOMER,
    ) -> Reservation:
        """
        Record a new reservation and its occupancy mirror atomically.

        Customer and walk-in labels must be canonical (``"9:00 AM"``,
        ``"09:00"``) and their phone and email valid; imported rows are
        matched tolerantly and keep partial phone numbers. An unresolved
        label is accepted and flagged for manual matching.

        Raises:
            InvalidReservationError: Missing date or client name, invalid
                contact details, bad status
            DateBlockedError: The date is in the blackout registry
            SlotTakenError: Another active reservation holds the slot
            TransientStoreError: The store kept failing after retries
        """
        day = normalize_date(date)
        if details is None:
            raise InvalidReservationError("A client name is required")

        try:
            status = ReservationStatus(status)
            source = ReservationSource(source)
        except ValueError as exc:
            raise InvalidReservationError(str(exc)) from exc
        if not status.is_active:
            raise InvalidReservationError("New reservations cannot start out rejected")
        details = clean_contact(details, strict=source is not ReservationSource.IMPORT)

        raw_time = "" if raw_time is None else str(raw_time).strip()
        # Only imported labels get the tolerant substring matching
        slot_index = match_slot(raw_time, self.grid, exact_only=source is not ReservationSource.IMPORT)
        if slot_index is None:
            logger.warning(
                "Time label %r on %s did not match the slot grid; reservation needs manual matching",
                raw_time,
                day,
            )

        now = self._clock()
        reservation = Reservation(
            id=self._store.new_id(RESERVATIONS),
            date=day,
            raw_time=raw_time,
            slot_index=slot_index,
            details=details,
            status=status,
            source=source,
            reference=generate_reference(self._reference_prefix, now),
            created_at=iso_timestamp(now),
        )

        def commit() -> None:
            with self._store.transaction() as txn:
                self._ensure_not_blocked(txn, day)
                if slot_index is not None:
                    self._ensure_slot_free(txn, day, slot_index)
                txn.set(RESERVATIONS, reservation.id, reservation.to_document())
                self.occupancy.write_in_transaction(txn, reservation)

        self._retry(commit, f"create reservation on {day}")
        logger.info(
            "Created reservation %s (%s) for %s on %s slot %s",
            reservation.id,
            reservation.reference,
            reservation.client_name,
            day,
            slot_index,
        )
        return reservation

    def _ensure_not_blocked(self, txn: TransactionProtocol, day: str) -> None:
        blackouts = txn.query(BLACKOUTS, [("date", "==", day)])
        if blackouts:
            raise DateBlockedError(day, blackouts[0].data.get("reason", ""))

    def _ensure_slot_free(
        self,
        txn: TransactionProtocol,
        day: str,
        slot_index: int,
        ignore_id: str | None = None,
    ) -> None:
        entries = [
            e for e in self.occupancy.entries_in_transaction(txn, day) if e.id != ignore_id
        ]
        holder = active_holder(entries, slot_index)
        while holder is not None:
            if txn.get(RESERVATIONS, holder.id) is not None:
                raise SlotTakenError(day, slot_index, holder.id)
            # Left behind by a delete whose retraction failed
            logger.warning(
                "Removing dangling occupancy entry %s for slot %s on %s", holder.id, slot_index, day
            )
            txn.delete(OCCUPANCY, holder.id)
            entries = [e for e in entries if e.id != holder.id]
            holder = active_holder(entries, slot_index)

        # A reservation whose mirror went missing still owns its slot
        for doc in txn.query(RESERVATIONS, [("date", "==", day), ("slot_index", "==", slot_index)]):
            if doc.id != ignore_id and is_active_status(doc.data.get("status")):
                logger.warning("Reservation %s holds slot %s on %s without a mirror", doc.id, slot_index, day)
                raise SlotTakenError(day, slot_index, doc.id)

    # -- updates --------------------------------------------------------

    def update_status(
        self,
        reservation_id: str,
        new_status: ReservationStatus | str,
        reason: str | None = None,
    ) -> Reservation:
        """
        Move a reservation through the status machine.

        ``rejected`` requires a reason. The occupancy mirror is updated after
        the reservation; a missing or failed mirror is logged, not raised.
        """
        reservation = self.get(reservation_id)
        try:
            target = ReservationStatus(new_status)
        except ValueError as exc:
            raise InvalidReservationError(str(exc)) from exc

        if target is reservation.status:
            logger.info("Reservation %s is already %s", reservation_id, target.value)
            return reservation

        if not can_transition(reservation.status, target):
            raise InvalidTransitionError(reservation.status.value, target.value)

        reason = (reason or "").strip()
        if target is ReservationStatus.REJECTED and not reason:
            raise InvalidReservationError("A rejection reason is required")

        fields = {
            "status": target.value,
            "rejection_reason": reason if target is ReservationStatus.REJECTED else None,
        }
        self._retry(
            lambda: self._store.update(RESERVATIONS, reservation_id, fields),
            f"update status of {reservation_id}",
        )
        logger.info(
            "Reservation %s: %s -> %s", reservation_id, reservation.status.value, target.value
        )

        if not self.occupancy.mirror_status(reservation_id, target):
            logger.warning("Occupancy mirror for %s is stale; reconciliation will repair it", reservation_id)

        reservation.status = target
        reservation.rejection_reason = fields["rejection_reason"]
        return reservation

    def update_details(self, reservation_id: str, **fields: Any) -> Reservation:
        """Staff edits of contact, package, payment and note fields."""
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise InvalidReservationError(f"Unknown reservation field(s): {', '.join(sorted(unknown))}")
        reservation = self.get(reservation_id)
        merged = {**asdict(reservation.details), **fields}
        if CONTACT_FIELDS & set(fields):
            cleaned = asdict(clean_contact(ReservationDetails(**merged), strict="phone" in fields))
            fields = {**fields, **{name: cleaned[name] for name in CONTACT_FIELDS & set(fields)}}
            merged.update(fields)

        self._retry(
            lambda: self._store.update(RESERVATIONS, reservation_id, fields),
            f"update details of {reservation_id}",
        )
        reservation.details = ReservationDetails(**merged)
        return reservation

    def reschedule(self, reservation_id: str, raw_time: str) -> Reservation:
        """
        Re-resolve a reservation's time label (typically fixing an unresolved one).

        Runs the same transactional slot arbitration as ``create``.
        """
        raw_time = "" if raw_time is None else str(raw_time).strip()
        slot_index = match_slot(raw_time, self.grid, exact_only=True)
        holder: dict = {}

        def commit() -> None:
            with self._store.transaction() as txn:
                data = txn.get(RESERVATIONS, reservation_id)
                if data is None:
                    raise ReservationNotFoundError(reservation_id)
                reservation = Reservation.from_document(reservation_id, data)
                if reservation.is_active and slot_index is not None:
                    self._ensure_slot_free(txn, reservation.date, slot_index, ignore_id=reservation_id)
                reservation.raw_time = raw_time
                reservation.slot_index = slot_index
                txn.update(RESERVATIONS, reservation_id, {"time": raw_time, "slot_index": slot_index})
                self.occupancy.write_in_transaction(txn, reservation)
                holder["reservation"] = reservation

        self._retry(commit, f"reschedule {reservation_id}")
        logger.info("Rescheduled %s to %r (slot %s)", reservation_id, raw_time, slot_index)
        return holder["reservation"]

    # -- delete ---------------------------------------------------------

    def delete(self, reservation_id: str) -> None:
        """
        Remove a reservation, then retract its mirror best-effort.

        A failed retraction leaves a dangling entry for reconciliation to
        remove; the delete itself still succeeds.
        """
        self.get(reservation_id)
        self._retry(
            lambda: self._store.delete(RESERVATIONS, reservation_id),
            f"delete reservation {reservation_id}",
        )
        logger.info("Deleted reservation %s", reservation_id)

        if not self.occupancy.retract(reservation_id):
            logger.warning("Occupancy entry for deleted reservation %s may be dangling", reservation_id)
