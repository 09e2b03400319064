"""
Domain-specific exception hierarchy for the studio booking engine.
"""

from __future__ import annotations


class BookingError(Exception):
    """Base class for all application-level errors."""


class ConfigurationError(BookingError):
    """Raised when the slot grid or application settings are invalid."""


class InvalidReservationError(BookingError):
    """Raised when reservation input is missing required data or malformed."""


class ReservationNotFoundError(BookingError):
    """Raised when a reservation id does not exist in the ledger."""

    def __init__(self, reservation_id: str):
        super().__init__(f"Reservation not found: {reservation_id}")
        self.reservation_id = reservation_id


class InvalidTransitionError(BookingError):
    """Raised when a status change is not allowed by the status machine."""

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move reservation from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class SlotTakenError(BookingError):
    """Raised when another active reservation already holds the slot."""

    def __init__(self, date: str, slot_index: int, holder_id: str | None = None):
        super().__init__(f"Slot {slot_index} on {date} is already taken")
        self.date = date
        self.slot_index = slot_index
        self.holder_id = holder_id


class DateBlockedError(BookingError):
    """Raised when a booking targets a blacked-out date."""

    def __init__(self, date: str, reason: str = ""):
        message = f"{date} is blocked"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.date = date
        self.reason = reason


class DuplicateBlockError(BookingError):
    """Raised when a date is already present in the blackout registry."""

    def __init__(self, date: str, existing_reason: str = ""):
        super().__init__(f"{date} is already blocked ({existing_reason or 'no reason given'})")
        self.date = date
        self.existing_reason = existing_reason


class TransientStoreError(BookingError):
    """Raised when the backing store fails in a retryable way (timeout, network)."""


class DocumentNotFoundError(BookingError):
    """Raised by the store when an update targets a missing document."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"No document '{doc_id}' in collection '{collection}'")
        self.collection = collection
        self.doc_id = doc_id


class RowError(BookingError):
    """
    A per-row import problem.

    Collected by the importer instead of aborting the batch.
    """

    def __init__(
        self,
        row_number: int,
        reason: str,
        client_name: str = "",
        cause: BaseException | None = None,
    ):
        super().__init__(f"Row {row_number}: {reason}")
        self.row_number = row_number
        self.reason = reason
        self.client_name = client_name
        self.cause = cause
