"""
Tests for the ledger/mirror reconciliation sweep.
"""

from studiobook.domain.models import ReservationDetails, ReservationStatus
from studiobook.services.reconciliation import (
    DANGLING_MIRROR,
    DOUBLE_BOOKING,
    DUPLICATE_BLACKOUT,
    MISSING_MIRROR,
    STALE_MIRROR,
    UNRESOLVED_TIME,
)
from studiobook.services.store import BLACKOUTS, OCCUPANCY, RESERVATIONS

DATE = "2025-12-20"


def _book(studio, time, name="Jane", date=DATE):
    return studio.ledger.create(date, time, ReservationDetails(client_name=name))


class TestReconcile:
    def test_consistent_store_is_clean(self, studio):
        _book(studio, "9:00")
        _book(studio, "10:00", "John")

        report = studio.reconciler.reconcile(DATE, DATE)

        assert report.is_clean
        assert report.reservations_checked == 2
        assert report.entries_checked == 2

    def test_missing_mirror_is_recreated(self, studio, store):
        reservation = _book(studio, "9:00")
        store.delete(OCCUPANCY, reservation.id)

        report = studio.reconciler.reconcile(DATE, DATE)

        assert report.count(MISSING_MIRROR) == 1
        assert report.repairs[0].repaired
        assert studio.occupancy.get(reservation.id).slot_index == 0

    def test_stale_mirror_after_failed_status_write(self, studio, store):
        """A rejection whose mirror write failed is repaired so the slot frees up."""
        reservation = _book(studio, "9:00")
        store.inject_failure("update", OCCUPANCY)
        studio.ledger.update_status(reservation.id, "rejected", "no payment")
        assert studio.occupancy.is_taken(DATE, 0)

        report = studio.reconciler.reconcile(DATE, DATE)

        assert report.count(STALE_MIRROR) == 1
        assert studio.occupancy.get(reservation.id).status is ReservationStatus.REJECTED
        assert not studio.occupancy.is_taken(DATE, 0)

    def test_dangling_mirror_is_removed(self, studio, store):
        reservation = _book(studio, "9:00")
        store.inject_failure("delete", OCCUPANCY)
        studio.ledger.delete(reservation.id)
        assert studio.occupancy.is_taken(DATE, 0)

        report = studio.reconciler.reconcile(DATE, DATE)

        assert report.count(DANGLING_MIRROR) == 1
        assert studio.occupancy.get(reservation.id) is None
        assert studio.availability.is_bookable(DATE, 0)

    def test_dry_run_reports_without_repairing(self, studio, store):
        reservation = _book(studio, "9:00")
        store.delete(OCCUPANCY, reservation.id)

        report = studio.reconciler.reconcile(DATE, DATE, repair=False)

        assert report.count(MISSING_MIRROR) == 1
        assert not report.repairs[0].repaired
        assert studio.occupancy.get(reservation.id) is None

    def test_double_booking_is_escalated_not_repaired(self, studio, store):
        first = _book(studio, "9:00")
        store.set(
            RESERVATIONS,
            "legacy",
            {"date": DATE, "time": "9:00 am", "slot_index": 0, "status": "confirmed", "client_name": "Legacy"},
        )

        report = studio.reconciler.reconcile(DATE, DATE)

        assert report.count(DOUBLE_BOOKING) == 1
        doubled = next(a for a in report.escalations if a.kind == DOUBLE_BOOKING)
        assert set(doubled.ids) == {first.id, "legacy"}
        assert studio.ledger.get(first.id).status is ReservationStatus.PENDING
        assert studio.ledger.get("legacy").status is ReservationStatus.CONFIRMED

    def test_unresolved_time_is_escalated(self, studio):
        reservation = _book(studio, "whenever")

        report = studio.reconciler.reconcile(DATE, DATE)

        assert report.repairs == []
        assert [a.kind for a in report.escalations] == [UNRESOLVED_TIME]
        assert report.escalations[0].ids == (reservation.id,)

    def test_duplicate_blackouts_keep_earliest(self, studio, store):
        store.set(BLACKOUTS, "late", {"date": DATE, "reason": "Repairs", "created_at": "2025-12-02"})
        store.set(BLACKOUTS, "early", {"date": DATE, "reason": "Holiday", "created_at": "2025-12-01"})

        report = studio.reconciler.reconcile(DATE, DATE)

        assert report.count(DUPLICATE_BLACKOUT) == 1
        assert [b.id for b in studio.blackouts.entries_for(DATE)] == ["early"]
        assert studio.blackouts.get(DATE).reason == "Holiday"

    def test_range_limits_the_sweep(self, studio, store):
        inside = _book(studio, "9:00", date="2025-12-20")
        outside = _book(studio, "9:00", date="2025-12-28")
        store.delete(OCCUPANCY, inside.id)
        store.delete(OCCUPANCY, outside.id)

        report = studio.reconciler.reconcile("2025-12-22", "2025-12-18")

        assert report.start_date == "2025-12-18"
        assert report.count(MISSING_MIRROR) == 1
        assert studio.occupancy.get(outside.id) is None
