"""
Domain layer - slot grid, time matching and booking records.
"""

from .models import (
    BlackoutDate,
    DayView,
    OccupancyEntry,
    Reservation,
    ReservationDetails,
    ReservationSource,
    ReservationStatus,
    Slot,
    SlotState,
)
from .slot_grid import generate_slots
from .time_matcher import match_slot, normalize_label

__all__ = [
    "BlackoutDate",
    "DayView",
    "OccupancyEntry",
    "Reservation",
    "ReservationDetails",
    "ReservationSource",
    "ReservationStatus",
    "Slot",
    "SlotState",
    "generate_slots",
    "match_slot",
    "normalize_label",
]
