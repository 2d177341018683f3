# Overview: Pytest coverage for formatters, export rendering and retry helpers.

import io
from datetime import datetime
from decimal import Decimal

import httpx
import pytest
from openpyxl import load_workbook
from sqlalchemy.exc import OperationalError

from stockroom.export_utils import render_export, to_csv, to_xlsx
from stockroom.formatters import format_currency, format_date, format_datetime, format_percentage
from stockroom.retry import backoff_delay, is_retryable, retry
from stockroom.services.concurrency import run_with_retry
from stockroom.time_utils import parse_iso_datetime, to_utc_z


class TestFormatters:
    @pytest.mark.parametrize("value,expected", [
        (1234.5, "$1,234.50"),
        (Decimal("9.999"), "$10.00"),
        (0.125, "$0.13"),
        (2.675, "$2.68"),
        (-3, "-$3.00"),
        (0, "$0.00"),
        (None, "-"),
    ])
    def test_currency(self, value, expected):
        assert format_currency(value) == expected

    def test_date(self):
        assert format_date("2025-01-05T14:30:00Z") == "Jan 5, 2025"
        assert format_date(datetime(2024, 12, 25)) == "Dec 25, 2024"
        assert format_date("not a date") == "-"
        assert format_date(None) == "-"

    def test_datetime(self):
        assert format_datetime("2025-01-05T14:30:00Z") == "Jan 5, 2025, 02:30 PM"
        assert format_datetime("") == "-"

    def test_percentage(self):
        assert format_percentage(12.5) == "12.5%"
        assert format_percentage(40) == "40%"
        assert format_percentage(33.333) == "33.33%"


class TestTimeUtils:
    def test_offsets_normalize_to_utc(self):
        assert parse_iso_datetime("2025-01-05T10:00:00+02:00") == datetime(2025, 1, 5, 8, 0)
        assert parse_iso_datetime("  ") is None

    def test_to_utc_z(self):
        assert to_utc_z(datetime(2025, 1, 5, 8, 0, 0, 123456)) == "2025-01-05T08:00:00Z"


class TestExport:
    def test_csv_quoting_and_nulls(self):
        rows = [{"Name": 'Cable, "braided"', "Qty": 3, "Note": None}]
        assert to_csv(rows) == 'Name,Qty,Note\n"Cable, ""braided""",3,'

    def test_csv_explicit_columns(self):
        assert to_csv([{"a": 1, "b": 2}], ["b"]) == "b\n2"
        assert to_csv([]) == ""

    def test_xlsx_round_trip(self):
        body = to_xlsx([{"SKU": "A-1", "Qty": 4}], sheet_title="A very long sheet title that gets cut short")
        sheet = load_workbook(io.BytesIO(body)).active
        assert len(sheet.title) == 31
        assert [c.value for c in sheet[1]] == ["SKU", "Qty"]
        assert [c.value for c in sheet[2]] == ["A-1", 4]
        assert sheet.freeze_panes == "A2"

    def test_render_export(self):
        body, mimetype, ext = render_export([{"a": 1}], ["a"], "csv")
        assert (body, ext) == (b"a\n1", "csv")
        assert mimetype.startswith("text/csv")
        _, mimetype, ext = render_export([], ["a"], "xlsx")
        assert ext == "xlsx"
        assert "spreadsheetml" in mimetype


def _status_error(status):
    request = httpx.Request("GET", "https://storage.test/x")
    return httpx.HTTPStatusError("boom", request=request, response=httpx.Response(status, request=request))


class TestRetry:
    def test_retryable_classification(self):
        assert is_retryable(httpx.ConnectError("down"))
        assert is_retryable(_status_error(503))
        assert is_retryable(_status_error(429))
        assert not is_retryable(_status_error(404))
        assert not is_retryable(ValueError("nope"))

    def test_backoff_is_clamped(self):
        assert backoff_delay(1, initial_delay=1, max_delay=10, multiplier=2, jitter=0) == 1
        assert backoff_delay(3, initial_delay=1, max_delay=10, multiplier=2, jitter=0) == 4
        assert backoff_delay(10, initial_delay=1, max_delay=10, multiplier=2, jitter=0) == 10
        assert 0.75 <= backoff_delay(1, initial_delay=1, max_delay=10, multiplier=2) <= 1.25

    def test_retries_then_succeeds(self):
        calls = []
        sleeps = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise httpx.ConnectError("down")
            return "ok"

        assert retry(flaky, sleep=sleeps.append, on_retry=lambda exc, attempt: None) == "ok"
        assert len(calls) == 3
        assert len(sleeps) == 2

    def test_permanent_failure_is_not_retried(self):
        calls = []

        def broken():
            calls.append(1)
            raise _status_error(400)

        with pytest.raises(httpx.HTTPStatusError):
            retry(broken, sleep=lambda _: None)
        assert len(calls) == 1

    def test_gives_up_after_max_attempts(self):
        calls = []

        def down():
            calls.append(1)
            raise httpx.ConnectError("down")

        with pytest.raises(httpx.ConnectError):
            retry(down, max_attempts=4, sleep=lambda _: None)
        assert len(calls) == 4


class TestRunWithRetry:
    def test_retries_operational_errors(self, app, db_session):
        calls = []

        def contended():
            calls.append(1)
            if len(calls) == 1:
                raise OperationalError("UPDATE inventory", {}, Exception("database is locked"))
            return "done"

        assert run_with_retry(contended, backoff_base=0) == "done"
        assert len(calls) == 2

    def test_other_errors_propagate_once(self, app, db_session):
        calls = []

        def bad():
            calls.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            run_with_retry(bad, backoff_base=0)
        assert len(calls) == 1
