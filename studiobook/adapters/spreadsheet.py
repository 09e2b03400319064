"""
Reads exported booking spreadsheets into plain rows of cell values.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Any, List

from openpyxl import load_workbook

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".csv", ".xlsx", ".xlsm")


def read_rows(path: Path) -> List[List[Any]]:
    """
    Load the first sheet of an ``.xlsx`` workbook or a ``.csv`` file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file type is not supported
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Spreadsheet not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            rows = [list(row) for row in csv.reader(f)]
    elif suffix in (".xlsx", ".xlsm"):
        workbook = load_workbook(path, read_only=True, data_only=True)
        try:
            sheet = workbook.worksheets[0]
            rows = [list(row) for row in sheet.iter_rows(values_only=True)]
        finally:
            workbook.close()
    else:
        raise ValueError(
            f"Unsupported spreadsheet type '{suffix}'. Use one of: {', '.join(SUPPORTED_SUFFIXES)}"
        )

    logger.info("Read %d rows from %s", len(rows), path)
    return rows
