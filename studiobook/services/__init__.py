"""
Service layer helpers that orchestrate the store and domain logic.
"""

from .availability import AvailabilityIndex
from .blackout import BlackoutRegistry
from .importer import ImportResult, ReconciliationImporter
from .ledger import ReservationLedger
from .notifier import ChangeNotifier, NotifierState, ReservationEvent
from .occupancy import OccupancyIndex
from .reconciliation import ReconciliationReport, Reconciler
from .store import DocumentStoreProtocol, call_with_retry
from .studio import Studio

__all__ = [
    "AvailabilityIndex",
    "BlackoutRegistry",
    "ChangeNotifier",
    "DocumentStoreProtocol",
    "ImportResult",
    "NotifierState",
    "OccupancyIndex",
    "ReconciliationImporter",
    "ReconciliationReport",
    "Reconciler",
    "ReservationEvent",
    "ReservationLedger",
    "Studio",
    "call_with_retry",
]
