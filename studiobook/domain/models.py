"""
Domain models for slots, reservations, occupancy mirrors and blackout dates.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional

import pendulum

from .exceptions import InvalidReservationError

MINUTES_PER_DAY = 24 * 60


def format_12h(minute_of_day: int) -> str:
    """Format minutes after midnight as ``"9:00 am"``."""
    hour, minute = divmod(minute_of_day % MINUTES_PER_DAY, 60)
    period = "pm" if hour >= 12 else "am"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {period}"


def format_24h(minute_of_day: int) -> str:
    """Format minutes after midnight as ``"09:00"``."""
    hour, minute = divmod(minute_of_day % MINUTES_PER_DAY, 60)
    return f"{hour:02d}:{minute:02d}"


def iso_timestamp(moment: pendulum.DateTime) -> str:
    """Fixed-width UTC timestamp; sorts chronologically as a string."""
    return moment.in_timezone("UTC").format("YYYY-MM-DD[T]HH:mm:ss.SSSSSS[Z]")


def normalize_date(value: Any) -> str:
    """
    Validate a calendar day and return it in ISO ``YYYY-MM-DD`` form.

    Raises:
        InvalidReservationError: If the value is empty or not a valid date
    """
    if value is None or not str(value).strip():
        raise InvalidReservationError("A booking date is required")

    if hasattr(value, "isoformat") and not isinstance(value, str):
        return value.isoformat()[:10]

    text = str(value).strip()
    try:
        return pendulum.from_format(text, "YYYY-MM-DD").to_date_string()
    except ValueError as exc:
        raise InvalidReservationError(f"Invalid date '{text}', expected YYYY-MM-DD") from exc


@dataclass(frozen=True)
class Slot:
    """
    One fixed-length bookable window in the day's canonical grid.

    Identity is the positional index within the generated sequence.
    """
    index: int
    start_minute: int
    duration_minutes: int

    @property
    def end_minute(self) -> int:
        return self.start_minute + self.duration_minutes

    @property
    def start_label(self) -> str:
        return format_12h(self.start_minute)

    @property
    def end_label(self) -> str:
        return format_12h(self.end_minute)

    @property
    def clock_label(self) -> str:
        return format_24h(self.start_minute)

    @property
    def label(self) -> str:
        """Ledger row label, e.g. ``"9:00 am-9:30 am"``."""
        return f"{self.start_label}-{self.end_label}"

    def __str__(self) -> str:
        return self.label


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    REJECTED = "rejected"

    @property
    def is_active(self) -> bool:
        """Active reservations hold their slot."""
        return self is not ReservationStatus.REJECTED


ACTIVE_STATUSES = frozenset(s for s in ReservationStatus if s.is_active)

# completed and rejected are terminal
ALLOWED_TRANSITIONS: Dict[ReservationStatus, frozenset] = {
    ReservationStatus.PENDING: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.REJECTED}),
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.COMPLETED, ReservationStatus.REJECTED}),
    ReservationStatus.COMPLETED: frozenset(),
    ReservationStatus.REJECTED: frozenset(),
}


def can_transition(current: ReservationStatus, new: ReservationStatus) -> bool:
    """Check whether the status machine allows ``current -> new``."""
    return new in ALLOWED_TRANSITIONS[current]


def is_active_status(value: Any) -> bool:
    try:
        return ReservationStatus(value).is_active
    except ValueError:
        return False


class ReservationSource(str, Enum):
    CUSTOMER = "customer"
    WALK_IN = "walk_in"
    IMPORT = "import"


class SlotState(str, Enum):
    OPEN = "open"
    OCCUPIED = "occupied"
    BLOCKED = "blocked"


@dataclass
class ReservationDetails:
    """
    Caller-supplied reservation data (client, package and ledger money fields).
    """
    client_name: str
    phone: str = ""
    email: str = ""
    package: str = ""
    pax: str = ""
    base_price: float = 0.0
    add_ons: str = ""
    add_ons_amount: float = 0.0
    discount: float = 0.0
    downpayment_date: str = ""
    downpayment_amount: float = 0.0
    downpayment_ref: str = ""
    full_payment_gcash: float = 0.0
    full_payment_cash: float = 0.0
    full_payment_ref: str = ""
    notes: str = ""


EDITABLE_FIELDS = frozenset(f.name for f in fields(ReservationDetails))


@dataclass
class Reservation:
    """
    A booking record in the ledger, whatever its current status.

    ``slot_index`` is None when the raw time label could not be matched to
    the grid; such reservations need manual reconciliation.
    """
    id: str
    date: str
    raw_time: str
    slot_index: Optional[int]
    details: ReservationDetails
    status: ReservationStatus = ReservationStatus.PENDING
    source: ReservationSource = ReservationSource.CUSTOMER
    reference: str = ""
    created_at: str = ""
    rejection_reason: Optional[str] = None

    @property
    def client_name(self) -> str:
        return self.details.client_name

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def is_unresolved(self) -> bool:
        return self.slot_index is None

    @property
    def total_due(self) -> float:
        """Package price plus add-ons, less discount."""
        d = self.details
        return d.base_price + d.add_ons_amount - d.discount

    def to_document(self) -> Dict[str, Any]:
        doc = asdict(self.details)
        doc.update(
            date=self.date,
            time=self.raw_time,
            slot_index=self.slot_index,
            status=self.status.value,
            source=self.source.value,
            reference=self.reference,
            created_at=self.created_at,
            rejection_reason=self.rejection_reason,
        )
        return doc

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Reservation":
        details = ReservationDetails(
            **{name: data[name] for name in EDITABLE_FIELDS if name in data}
        )
        return cls(
            id=doc_id,
            date=data["date"],
            raw_time=data.get("time") or "",
            slot_index=data.get("slot_index"),
            details=details,
            status=ReservationStatus(data.get("status", "pending")),
            source=ReservationSource(data.get("source", "customer")),
            reference=data.get("reference", ""),
            created_at=data.get("created_at", ""),
            rejection_reason=data.get("rejection_reason"),
        )


@dataclass
class OccupancyEntry:
    """
    Denormalized shadow of a reservation used for fast slot-taken checks.

    Shares its id with the reservation it mirrors.
    """
    id: str
    date: str
    time: str
    slot_index: Optional[int]
    status: ReservationStatus

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @classmethod
    def for_reservation(cls, reservation: Reservation, time_label: str) -> "OccupancyEntry":
        return cls(
            id=reservation.id,
            date=reservation.date,
            time=time_label,
            slot_index=reservation.slot_index,
            status=reservation.status,
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "time": self.time,
            "slot_index": self.slot_index,
            "status": self.status.value,
        }

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "OccupancyEntry":
        return cls(
            id=doc_id,
            date=data["date"],
            time=data.get("time", ""),
            slot_index=data.get("slot_index"),
            status=ReservationStatus(data.get("status", "pending")),
        )


@dataclass
class BlackoutDate:
    """An administrator-declared fully unbookable day."""
    id: str
    date: str
    reason: str
    created_at: str = ""

    def to_document(self) -> Dict[str, Any]:
        return {"date": self.date, "reason": self.reason, "created_at": self.created_at}

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "BlackoutDate":
        return cls(
            id=doc_id,
            date=data["date"],
            reason=data.get("reason", ""),
            created_at=data.get("created_at", ""),
        )


@dataclass
class LedgerTotals:
    """Per-day sales ledger footer."""
    amount: float = 0.0
    add_ons: float = 0.0
    discount: float = 0.0

    @property
    def net(self) -> float:
        return self.amount + self.add_ons - self.discount

    @classmethod
    def from_reservations(cls, reservations: List[Reservation]) -> "LedgerTotals":
        totals = cls()
        for reservation in reservations:
            totals.amount += reservation.details.base_price
            totals.add_ons += reservation.details.add_ons_amount
            totals.discount += reservation.details.discount
        return totals


@dataclass
class DayView:
    """
    Everything the calendar needs for one date: slot states, the blackout
    (if any), the day's reservations and the ones needing manual matching.
    """
    date: str
    states: Dict[int, SlotState]
    blackout: Optional[BlackoutDate] = None
    reservations: List[Reservation] = field(default_factory=list)
    unresolved: List[Reservation] = field(default_factory=list)

    @property
    def is_blocked(self) -> bool:
        return self.blackout is not None

    def open_slots(self) -> List[int]:
        return [index for index, state in self.states.items() if state is SlotState.OPEN]
