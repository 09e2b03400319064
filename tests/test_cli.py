"""
Tests for the command line interface.
"""

import pytest
from typer.testing import CliRunner

from studiobook import __version__
from studiobook.adapters.json_store import JsonFileDocumentStore
from studiobook.cli.app import app
from studiobook.services.store import BLACKOUTS, OCCUPANCY, RESERVATIONS

runner = CliRunner()

DATE = "2025-12-20"


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "studio_name: Test Studio\n"
        "store_path: store.json\n"
        "retry:\n"
        "  base_delay_seconds: 0\n"
        "log_level: WARNING\n",
        encoding="utf-8",
    )
    return path


def _invoke(config_file, *args, **kwargs):
    return runner.invoke(app, [*args, "--config", str(config_file)], **kwargs)


def _documents(config_file, collection):
    return JsonFileDocumentStore(config_file.parent / "store.json").query(collection)


class TestBooking:
    def test_book_and_show_availability(self, config_file):
        result = _invoke(config_file, "book", DATE, "9:00 AM", "Jane", "--package", "Solo", "--price", "299")

        assert result.exit_code == 0, result.output
        assert "Booked IOS-" in result.output
        [reservation] = _documents(config_file, RESERVATIONS)
        assert reservation.data["slot_index"] == 0
        assert [d.id for d in _documents(config_file, OCCUPANCY)] == [reservation.id]

        result = _invoke(config_file, "availability", DATE)

        assert result.exit_code == 0, result.output
        assert "occupied" in result.output
        assert "Jane" in result.output

    def test_double_booking_fails(self, config_file):
        _invoke(config_file, "book", DATE, "9:00 AM", "Jane")

        result = _invoke(config_file, "book", DATE, "09:00", "John")

        assert result.exit_code == 1
        assert "already taken" in result.output
        assert len(_documents(config_file, RESERVATIONS)) == 1

    def test_unmatched_time_warns(self, config_file):
        result = _invoke(config_file, "book", DATE, "after lunch", "Jane")

        assert result.exit_code == 0, result.output
        assert "did not match" in result.output

        [reservation] = _documents(config_file, RESERVATIONS)
        result = _invoke(config_file, "reschedule", reservation.id, "1:00 PM")

        assert result.exit_code == 0, result.output
        assert "1:00 pm-1:30 pm" in result.output
        assert _documents(config_file, OCCUPANCY)[0].data["slot_index"] == 8

    def test_reject_and_delete(self, config_file):
        _invoke(config_file, "book", DATE, "9:00 AM", "Jane")
        [reservation] = _documents(config_file, RESERVATIONS)

        result = _invoke(config_file, "status", reservation.id, "rejected", "--reason", "Bookings are full")
        assert result.exit_code == 0, result.output
        assert "rejected" in result.output

        result = _invoke(config_file, "status", reservation.id, "confirmed")
        assert result.exit_code == 1

        result = _invoke(config_file, "delete", reservation.id, input="y\n")
        assert result.exit_code == 0, result.output
        assert _documents(config_file, RESERVATIONS) == []
        assert _documents(config_file, OCCUPANCY) == []

    def test_invalid_phone(self, config_file):
        result = _invoke(config_file, "book", DATE, "9:00 AM", "Jane", "--phone", "12345")

        assert result.exit_code == 1
        assert "Invalid phone number" in result.output
        assert _documents(config_file, RESERVATIONS) == []

    def test_invalid_date(self, config_file):
        result = _invoke(config_file, "book", "20/12/2025", "9:00", "Jane")

        assert result.exit_code == 1
        assert "Invalid date" in result.output


class TestBlackouts:
    def test_block_prevents_booking(self, config_file):
        result = _invoke(config_file, "block", "2025-12-25", "Holiday")
        assert result.exit_code == 0, result.output

        result = _invoke(config_file, "book", "2025-12-25", "9:00", "Jane")
        assert result.exit_code == 1
        assert "Holiday" in result.output

        result = _invoke(config_file, "availability", "2025-12-25")
        assert "blocked" in result.output

    def test_duplicate_block_and_unblock(self, config_file):
        _invoke(config_file, "block", "2025-12-25", "Holiday")

        result = _invoke(config_file, "block", "2025-12-25", "Repairs")
        assert result.exit_code == 1
        assert "already blocked" in result.output

        result = _invoke(config_file, "unblock", "2025-12-25")
        assert result.exit_code == 0
        assert _documents(config_file, BLACKOUTS) == []


class TestImport:
    @pytest.fixture
    def sheet(self, tmp_path):
        path = tmp_path / "day.csv"
        path.write_text(
            "Daily Sales\n"
            "#,,Name,Pax,Phone,Time,Package,,Add-ons,Amt,Discount,Total\n"
            "1,,Jane,2,0917,9:00-9:30 am,Solo,,,,,299\n"
            "2,,John,1,0918,9:00 AM,Solo,,,,,299\n",
            encoding="utf-8",
        )
        return path

    def test_import_reports_skipped_rows(self, config_file, sheet):
        result = _invoke(config_file, "import", str(sheet), "--date", DATE, "--yes")

        assert result.exit_code == 2
        assert "1 record(s) imported" in result.output
        assert "Skipped rows" in result.output
        [reservation] = _documents(config_file, RESERVATIONS)
        assert reservation.data["client_name"] == "Jane"
        assert reservation.data["status"] == "confirmed"

    def test_declined_import_writes_nothing(self, config_file, sheet):
        result = _invoke(config_file, "import", str(sheet), "--date", DATE, input="n\n")

        assert result.exit_code == 0
        assert "Found 2 bookings for 2025-12-20" in result.output
        assert "Import cancelled" in result.output
        assert _documents(config_file, RESERVATIONS) == []

    def test_missing_sheet(self, config_file, tmp_path):
        result = _invoke(config_file, "import", str(tmp_path / "nope.csv"), "--date", DATE)

        assert result.exit_code == 1


class TestReports:
    def test_ledger_totals(self, config_file):
        _invoke(config_file, "book", DATE, "9:00 AM", "Jane", "--price", "299")
        _invoke(config_file, "book", DATE, "10:00 AM", "John", "--price", "499")

        result = _invoke(config_file, "ledger", DATE)

        assert result.exit_code == 0, result.output
        assert "Net 798.00" in result.output

    def test_reconcile_clean_and_dry_run(self, config_file):
        _invoke(config_file, "book", DATE, "9:00 AM", "Jane")

        result = _invoke(config_file, "reconcile", "--start", DATE)
        assert result.exit_code == 0, result.output
        assert "agree" in result.output

        store = JsonFileDocumentStore(config_file.parent / "store.json")
        [reservation] = store.query(RESERVATIONS)
        store.delete(OCCUPANCY, reservation.id)

        result = _invoke(config_file, "reconcile", "--start", DATE, "--dry-run")
        assert result.exit_code == 0, result.output
        assert "agree" not in result.output
        assert _documents(config_file, OCCUPANCY) == []

        _invoke(config_file, "reconcile", "--start", DATE)
        assert len(_documents(config_file, OCCUPANCY)) == 1

    def test_slots(self, config_file):
        result = _invoke(config_file, "slots")

        assert result.exit_code == 0
        assert "9:00 am-9:30 am" in result.output
        assert "7:30 pm-8:00 pm" in result.output


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output
