"""
Tests for reading exported spreadsheets.
"""

import pytest
from openpyxl import Workbook

from studiobook.adapters.spreadsheet import read_rows


class TestReadRows:
    def test_reads_csv(self, tmp_path):
        path = tmp_path / "day.csv"
        path.write_text("\ufeff#,,Name,Pax,Phone,Time\n1,,Jane,2,0917,9:00 AM\n", encoding="utf-8")

        rows = read_rows(path)

        assert rows == [["#", "", "Name", "Pax", "Phone", "Time"], ["1", "", "Jane", "2", "0917", "9:00 AM"]]

    def test_reads_first_sheet_of_workbook(self, tmp_path):
        path = tmp_path / "day.xlsx"
        workbook = Workbook()
        sheet = workbook.active
        sheet.append(["#", None, "Name", "Pax", "Phone", "Time"])
        sheet.append([1, None, "Jane", 2, "0917", "9:00 AM"])
        workbook.create_sheet("Notes").append(["ignored"])
        workbook.save(path)

        rows = read_rows(path)

        assert rows[0][2] == "Name"
        assert rows[1] == [1, None, "Jane", 2, "0917", "9:00 AM"]
        assert len(rows) == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_rows(tmp_path / "nope.xlsx")

    def test_unsupported_type(self, tmp_path):
        path = tmp_path / "day.ods"
        path.write_text("", encoding="utf-8")

        with pytest.raises(ValueError, match="Unsupported"):
            read_rows(path)
