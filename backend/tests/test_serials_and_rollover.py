"""
Serial parsing, range checks and rollover day-boundary rules.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from lottoledger.errors import ValidationError
from lottoledger.services.rollover import already_reset_today, is_new_day
from lottoledger.services.serials import (
    format_serial,
    normalize_serial,
    parse_serial,
    require_serial_in_range,
    serial_in_range,
    split_ticket_barcode,
)
from lottoledger.time_utils import local_date, resolve_timezone


class TestParseSerial:
    @pytest.mark.parametrize("raw,expected", [
        ("000", 0),
        ("0042", 42),
        (" 17 ", 17),
        (299, 299),
    ])
    def test_accepts_digits(self, raw, expected):
        assert parse_serial(raw) == expected

    @pytest.mark.parametrize("raw", ["", "12a", "-5", "4.2", None, True, 3.0, -1])
    def test_rejects_non_serials(self, raw):
        with pytest.raises(ValidationError):
            parse_serial(raw)

    def test_normalize_keeps_leading_zeros(self):
        assert normalize_serial(" 007 ") == "007"

    def test_format_pads_to_display_width(self):
        assert format_serial("42") == "00000042"
        assert format_serial(42, width=3) == "042"


class TestSerialRange:
    def test_range_is_inclusive_and_numeric(self):
        assert serial_in_range("000", "000", "299")
        assert serial_in_range("299", "000", "299")
        assert serial_in_range("0042", "40", "50")
        assert not serial_in_range("300", "000", "299")

    def test_require_serial_in_range_reports_bounds(self):
        with pytest.raises(ValidationError) as exc:
            require_serial_in_range("300", "000", "299")
        assert exc.value.details["start_serial"] == "000"
        assert exc.value.details["end_serial"] == "299"

    def test_require_serial_in_range_returns_number(self):
        assert require_serial_in_range("010", "000", "299") == 10


class TestBarcode:
    def test_dashed_barcode(self):
        assert split_ticket_barcode("1234-0567890-042") == ("1234", "0567890", "042")

    def test_compact_barcode(self):
        assert split_ticket_barcode("12340567890042") == ("1234", "0567890", "042")

    @pytest.mark.parametrize("raw", ["1234-05-042", "abcd", "123405678900421", 12340567890042])
    def test_rejects_unknown_shapes(self, raw):
        with pytest.raises(ValidationError):
            split_ticket_barcode(raw)


class TestDayBoundary:
    def test_unset_last_update_is_a_new_day(self):
        assert is_new_day(None, datetime(2026, 3, 14, 12), timezone.utc)

    def test_same_utc_day(self):
        assert not is_new_day(datetime(2026, 3, 14, 0, 1), datetime(2026, 3, 14, 23, 59), timezone.utc)

    def test_midnight_crossing(self):
        assert is_new_day(datetime(2026, 3, 14, 23, 59), datetime(2026, 3, 15, 0, 1), timezone.utc)

    def test_store_timezone_decides_the_day(self):
        # 03:00 UTC on March 14th is still March 13th in New York (EDT)
        tz = ZoneInfo("America/New_York")
        assert local_date(datetime(2026, 3, 14, 3, 0), tz).day == 13
        assert not is_new_day(datetime(2026, 3, 14, 3, 0), datetime(2026, 3, 14, 3, 30), tz)
        # 03:00 and 05:00 UTC share a UTC day but straddle midnight in New York
        assert not is_new_day(datetime(2026, 3, 14, 3, 0), datetime(2026, 3, 14, 5, 0), timezone.utc)
        assert is_new_day(datetime(2026, 3, 14, 3, 0), datetime(2026, 3, 14, 5, 0), tz)

    def test_reset_stamp_from_later_day_counts_as_done(self):
        now = datetime(2026, 3, 14, 12)
        assert already_reset_today(datetime(2026, 3, 14, 0, 5), now, timezone.utc)
        assert already_reset_today(datetime(2026, 3, 15, 0, 5), now, timezone.utc)
        assert not already_reset_today(datetime(2026, 3, 13, 23, 0), now, timezone.utc)
        assert not already_reset_today(None, now, timezone.utc)


class TestResolveTimezone:
    def test_utc_short_circuit(self):
        assert resolve_timezone("UTC") is timezone.utc
        assert resolve_timezone(None) is timezone.utc

    def test_unknown_zone(self):
        with pytest.raises(ValueError):
            resolve_timezone("Mars/Olympus_Mons")
