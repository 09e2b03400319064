"""
Imports a day's worth of spreadsheet rows into the ledger.

Columns are positional. Every row is validated on its own and nothing is
written until an operator confirms the number of candidate rows. Commits
happen row by row: a failure part-way leaves earlier rows committed, and the
result says exactly which rows made it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date as date_type, datetime
from typing import Any, Callable, List, Optional, Sequence

from ..domain.contact import clean_contact
from ..domain.exceptions import (
    DateBlockedError,
    InvalidReservationError,
    RowError,
    SlotTakenError,
    TransientStoreError,
)
from ..domain.models import (
    Reservation,
    ReservationDetails,
    ReservationSource,
    ReservationStatus,
    normalize_date,
)
from ..domain.time_matcher import match_slot
from .ledger import ReservationLedger

logger = logging.getLogger(__name__)

# Column positions in the studio's daily sheet
COL_SEQUENCE = 0
COL_NAME = 2
COL_PAX = 3
COL_PHONE = 4
COL_TIME = 5
COL_PACKAGE = 6
COL_ADD_ONS = 8
COL_ADD_ONS_AMOUNT = 9
COL_DISCOUNT = 10
COL_TOTAL = 11
COL_DOWNPAYMENT_DATE = 12
COL_DOWNPAYMENT_AMOUNT = 13
COL_DOWNPAYMENT_REF = 14
COL_FULL_PAYMENT_GCASH = 15
COL_FULL_PAYMENT_REF = 16
COL_FULL_PAYMENT_CASH = 17

HEADER_ROWS = 2

_AMOUNT_JUNK = re.compile(r"[^\d.\-]")


@dataclass
class ImportCandidate:
    row_number: int
    raw_time: str
    details: ReservationDetails


@dataclass
class ImportPlan:
    target_date: str
    candidates: List[ImportCandidate] = field(default_factory=list)
    skipped: List[RowError] = field(default_factory=list)


@dataclass
class ImportedRow:
    row_number: int
    reservation: Reservation


@dataclass
class ImportResult:
    target_date: str
    imported: List[ImportedRow] = field(default_factory=list)
    skipped: List[RowError] = field(default_factory=list)
    cancelled: bool = False

    @property
    def reservations(self) -> List[Reservation]:
        return [row.reservation for row in self.imported]

    @property
    def imported_rows(self) -> List[int]:
        return [row.row_number for row in self.imported]


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _amount(value: Any, column: int) -> float:
    """Parse a money cell like ``"₱1,299.00"``; blanks are zero."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"column {column}: expected an amount, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = _AMOUNT_JUNK.sub("", str(value))
    if cleaned in ("", "-", "."):
        return 0.0
    try:
        return float(cleaned)
    except ValueError as exc:
        raise ValueError(f"column {column}: expected an amount, got {value!r}") from exc


def _date_text(value: Any) -> str:
    if isinstance(value, (datetime, date_type)):
        return value.isoformat()[:10]
    return _text(value)


def _booking_key(name: str, raw_time: str) -> tuple:
    return name.strip().casefold(), raw_time.strip().casefold()


def find_data_start(rows: Sequence[Sequence[Any]]) -> int:
    """
    Index of the first data row: the first row numbered 1 in column 0, else
    the row after the two header rows.
    """
    for index, row in enumerate(rows):
        if row and _text(_cell(row, COL_SEQUENCE)) == "1":
            return index
    return min(HEADER_ROWS, len(rows))


class ReconciliationImporter:
    def __init__(self, ledger: ReservationLedger):
        self._ledger = ledger

    def plan(self, rows: Sequence[Sequence[Any]], target_date: str) -> ImportPlan:
        """
        Turn raw rows into import candidates without writing anything.

        Rows without a client name are empty slots and skipped silently;
        rows with a name but malformed cells become RowErrors.
        """
        plan = ImportPlan(target_date=normalize_date(target_date))

        for index in range(find_data_start(rows), len(rows)):
            row = rows[index]
            row_number = index + 1
            if not row or not isinstance(row, (list, tuple)):
                continue

            name = _text(_cell(row, COL_NAME))
            if not name:
                continue

            raw_time = _text(_cell(row, COL_TIME))
            if not raw_time:
                plan.skipped.append(RowError(row_number, "missing time", client_name=name))
                continue

            try:
                details = ReservationDetails(
                    client_name=name,
                    phone=_text(_cell(row, COL_PHONE)),
                    package=_text(_cell(row, COL_PACKAGE)) or "Unknown",
                    pax=_text(_cell(row, COL_PAX)),
                    base_price=_amount(_cell(row, COL_TOTAL), COL_TOTAL),
                    add_ons=_text(_cell(row, COL_ADD_ONS)),
                    add_ons_amount=_amount(_cell(row, COL_ADD_ONS_AMOUNT), COL_ADD_ONS_AMOUNT),
                    discount=_amount(_cell(row, COL_DISCOUNT), COL_DISCOUNT),
                    downpayment_date=_date_text(_cell(row, COL_DOWNPAYMENT_DATE)),
                    downpayment_amount=_amount(_cell(row, COL_DOWNPAYMENT_AMOUNT), COL_DOWNPAYMENT_AMOUNT),
                    downpayment_ref=_text(_cell(row, COL_DOWNPAYMENT_REF)),
                    full_payment_gcash=_amount(_cell(row, COL_FULL_PAYMENT_GCASH), COL_FULL_PAYMENT_GCASH),
                    full_payment_ref=_text(_cell(row, COL_FULL_PAYMENT_REF)),
                    full_payment_cash=_amount(_cell(row, COL_FULL_PAYMENT_CASH), COL_FULL_PAYMENT_CASH),
                )
            except ValueError as exc:
                plan.skipped.append(RowError(row_number, str(exc), client_name=name, cause=exc))
                continue

            try:
                details = clean_contact(details, strict=False)
            except InvalidReservationError as exc:
                plan.skipped.append(RowError(row_number, str(exc), client_name=name, cause=exc))
                continue

            plan.candidates.append(ImportCandidate(row_number, raw_time, details))

        return plan

    def import_rows(
        self,
        rows: Sequence[Sequence[Any]],
        target_date: str,
        confirm: Callable[[int, str], bool],
    ) -> ImportResult:
        """
        Plan, ask the operator, then commit each candidate as a confirmed
        reservation.

        Args:
            rows: Spreadsheet rows (lists of cell values)
            target_date: Day the sheet describes
            confirm: Called with (candidate count, date); nothing is written
                unless it returns True

        Returns:
            ImportResult with the committed rows and every skipped row
        """
        plan = self.plan(rows, target_date)
        return self.commit(plan, confirm)

    def commit(self, plan: ImportPlan, confirm: Callable[[int, str], bool]) -> ImportResult:
        result = ImportResult(target_date=plan.target_date, skipped=list(plan.skipped))
        if not plan.candidates:
            logger.info("No importable rows for %s", plan.target_date)
            return result

        if not confirm(len(plan.candidates), plan.target_date):
            logger.info("Import of %d rows for %s cancelled by operator", len(plan.candidates), plan.target_date)
            result.cancelled = True
            return result

        already_booked = {
            _booking_key(r.client_name, r.raw_time)
            for r in self._ledger.list_for_date(plan.target_date)
            if r.is_active
        }

        for candidate in plan.candidates:
            error: Optional[RowError] = None
            name = candidate.details.client_name
            key = _booking_key(name, candidate.raw_time)
            # Unmatched times skip slot arbitration, so a re-import is caught here
            if key in already_booked and match_slot(candidate.raw_time, self._ledger.grid) is None:
                logger.warning("Skipped import row %d: already imported", candidate.row_number)
                result.skipped.append(RowError(candidate.row_number, "already imported", name))
                continue

            try:
                reservation = self._ledger.create(
                    plan.target_date,
                    candidate.raw_time,
                    candidate.details,
                    status=ReservationStatus.CONFIRMED,
                    source=ReservationSource.IMPORT,
                )
            except SlotTakenError as exc:
                error = RowError(candidate.row_number, f"slot already taken ({candidate.raw_time})", name, exc)
            except DateBlockedError as exc:
                error = RowError(candidate.row_number, str(exc), name, exc)
            except InvalidReservationError as exc:
                error = RowError(candidate.row_number, str(exc), name, exc)
            except TransientStoreError as exc:
                error = RowError(candidate.row_number, f"store unavailable: {exc}", name, exc)
            else:
                result.imported.append(ImportedRow(candidate.row_number, reservation))
                already_booked.add(key)
                if reservation.is_unresolved:
                    logger.warning(
                        "Imported row %d (%s) has unmatched time %r",
                        candidate.row_number,
                        name,
                        candidate.raw_time,
                    )

            if error is not None:
                logger.warning("Skipped import row %d: %s", candidate.row_number, error.reason)
                result.skipped.append(error)

        logger.info(
            "Imported %d of %d rows for %s (%d skipped)",
            len(result.imported),
            len(plan.candidates),
            plan.target_date,
            len(result.skipped),
        )
        return result
