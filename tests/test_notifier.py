"""
Tests for the reservation change notifier.
"""

import logging

from studiobook.domain.models import ReservationDetails
from studiobook.services.notifier import (
    NEW_RESERVATION,
    STATUS_CHANGED,
    ChangeNotifier,
    NotifierState,
)
from studiobook.services.store import Document

DATE = "2025-12-20"


def _doc(doc_id, status="pending", created_at="2025-12-01T00:00:00.000000Z", slot=0):
    return Document(doc_id, {"date": DATE, "slot_index": slot, "status": status, "created_at": created_at})


class TestObserve:
    def test_first_observation_primes_silently(self, store):
        events = []
        notifier = ChangeNotifier(store, [events.append])

        assert notifier.observe([_doc("a"), _doc("b")]) == []
        assert events == []
        assert notifier.state.seen_ids == {"a", "b"}
        assert notifier.state.primed

    def test_notify_existing_emits_on_first_observation(self, store):
        notifier = ChangeNotifier(store, notify_existing=True)

        events = notifier.observe([_doc("a")])

        assert [e.type for e in events] == [NEW_RESERVATION]

    def test_new_reservation_event(self, store):
        events = []
        notifier = ChangeNotifier(store, [events.append])
        notifier.observe([_doc("a")])

        notifier.observe([_doc("a"), _doc("b", slot=3, created_at="2025-12-02T00:00:00.000000Z")])

        [event] = events
        assert event.type == NEW_RESERVATION
        assert event.to_dict() == {
            "type": "new_reservation",
            "reservationId": "b",
            "date": DATE,
            "slot": 3,
            "status": "pending",
        }
        assert notifier.state.seen_ids == {"a", "b"}

    def test_delete_and_create_in_one_observation(self, store):
        """A count-based check would see no change here; the id diff does."""
        events = []
        notifier = ChangeNotifier(store, [events.append])
        notifier.observe([_doc("a"), _doc("b")])

        notifier.observe([_doc("a"), _doc("c")])

        assert [(e.type, e.reservation_id) for e in events] == [(NEW_RESERVATION, "c")]

    def test_each_new_id_is_reported_once(self, store):
        events = []
        notifier = ChangeNotifier(store, [events.append])
        notifier.observe([])

        notifier.observe([_doc("a")])
        notifier.observe([_doc("a")])
        notifier.observe([_doc("a"), _doc("b")])

        assert [e.reservation_id for e in events] == ["a", "b"]

    def test_deleted_ids_leave_the_watermark(self, store):
        notifier = ChangeNotifier(store)
        notifier.observe([_doc("a"), _doc("b")])

        notifier.observe([_doc("b", status="confirmed")])

        assert notifier.state.seen_ids == {"b"}
        assert notifier.state.statuses == {"b": "confirmed"}

    def test_status_change_event(self, store):
        events = []
        notifier = ChangeNotifier(store, [events.append])
        notifier.observe([_doc("a")])

        notifier.observe([_doc("a", status="confirmed")])

        [event] = events
        assert event.type == STATUS_CHANGED
        assert event.previous_status == "pending"
        assert event.status == "confirmed"

    def test_state_carries_over_between_notifiers(self, store):
        state = NotifierState()
        ChangeNotifier(store, state=state).observe([_doc("a")])

        events = ChangeNotifier(store, state=state).observe([_doc("a"), _doc("b")])

        assert [e.reservation_id for e in events] == ["b"]

    def test_failing_sink_does_not_stop_others(self, store, caplog):
        received = []

        def broken(event):
            raise RuntimeError("smtp down")

        notifier = ChangeNotifier(store, [broken, received.append])
        notifier.observe([])

        with caplog.at_level(logging.ERROR):
            notifier.observe([_doc("a")])

        assert [e.reservation_id for e in received] == ["a"]
        assert "Event sink failed" in caplog.text


class TestLiveFeed:
    def test_start_and_stop(self, studio, store):
        """Events follow ledger writes through the store's change feed."""
        studio.ledger.create(DATE, "9:00", ReservationDetails(client_name="Existing"))
        events = []
        notifier = ChangeNotifier(store, [events.append])
        notifier.start()

        created = studio.ledger.create(DATE, "10:00", ReservationDetails(client_name="Jane"))
        studio.ledger.update_status(created.id, "confirmed")

        assert [(e.type, e.reservation_id) for e in events] == [
            (NEW_RESERVATION, created.id),
            (STATUS_CHANGED, created.id),
        ]
        assert events[0].slot == 2

        notifier.stop()
        studio.ledger.create(DATE, "11:00", ReservationDetails(client_name="John"))
        assert len(events) == 2
