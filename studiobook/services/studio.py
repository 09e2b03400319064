"""
Wires the booking services around one store and one slot grid.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import pendulum

from ..domain.models import Slot
from .availability import AvailabilityIndex
from .blackout import BlackoutRegistry
from .importer import ReconciliationImporter
from .ledger import ReservationLedger
from .occupancy import OccupancyIndex
from .reconciliation import Reconciler
from .store import DocumentStoreProtocol


@dataclass
class Studio:
    """The full scheduler for a single studio timeline."""
    store: DocumentStoreProtocol
    grid: Sequence[Slot]
    occupancy: OccupancyIndex
    blackouts: BlackoutRegistry
    ledger: ReservationLedger
    availability: AvailabilityIndex
    reconciler: Reconciler
    importer: ReconciliationImporter

    @classmethod
    def build(
        cls,
        store: DocumentStoreProtocol,
        grid: Sequence[Slot],
        *,
        reference_prefix: str = "IOS",
        retry_attempts: int = 3,
        retry_base_delay: float = 0.2,
        clock=None,
    ) -> "Studio":
        grid = tuple(grid)
        occupancy = OccupancyIndex(store, grid)
        blackouts = BlackoutRegistry(store, clock=clock)
        ledger = ReservationLedger(
            store,
            grid,
            occupancy,
            clock=clock,
            reference_prefix=reference_prefix,
            retry_attempts=retry_attempts,
            retry_base_delay=retry_base_delay,
        )
        return cls(
            store=store,
            grid=grid,
            occupancy=occupancy,
            blackouts=blackouts,
            ledger=ledger,
            availability=AvailabilityIndex(store, grid, blackouts, occupancy),
            reconciler=Reconciler(store, grid, occupancy, blackouts),
            importer=ReconciliationImporter(ledger),
        )

    @classmethod
    def from_config(cls, config, store: DocumentStoreProtocol) -> "Studio":
        return cls.build(
            store,
            config.grid.build(),
            reference_prefix=config.reference_prefix,
            retry_attempts=config.retry.attempts,
            retry_base_delay=config.retry.base_delay_seconds,
            clock=lambda: pendulum.now(config.timezone),
        )
