"""Tests for timestamp and 8-digit date conversion."""

import pytest

from ssi_verifier.dates import (
    convert_8digit_date_to_dashed,
    convert_8digit_date_to_iso,
    iso_to_unix,
    unix_to_iso,
)
from ssi_verifier.errors import DateConversionError, ErrorCode


class TestIsoConversion:
    """Tests for ISO-8601 <-> Unix seconds."""

    def test_utc_designator(self):
        assert iso_to_unix("2023-11-14T22:13:20Z") == 1700000000

    def test_offset(self):
        assert iso_to_unix("2023-11-15T00:13:20+02:00") == 1700000000

    def test_naive_is_utc(self):
        assert iso_to_unix("2023-11-14T22:13:20") == 1700000000

    def test_sub_seconds_are_truncated(self):
        assert iso_to_unix("2023-11-14T22:13:20.999Z") == 1700000000

    @pytest.mark.parametrize("value", [None, ""])
    def test_absent(self, value):
        assert iso_to_unix(value) is None

    def test_invalid(self):
        with pytest.raises(ValueError):
            iso_to_unix("yesterday")

    def test_unix_to_iso(self):
        assert unix_to_iso(1700000000) == "2023-11-14T22:13:20.000Z"
        assert iso_to_unix(unix_to_iso(1700000000)) == 1700000000


class TestEightDigitDates:
    """Tests for YYYYMMDD conversion."""

    def test_dashed(self):
        assert convert_8digit_date_to_dashed("19900521") == "1990-05-21"

    def test_iso(self):
        assert convert_8digit_date_to_iso("19900521") == "1990-05-21T00:00:00.000Z"

    @pytest.mark.parametrize(
        "value,code",
        [
            ("1990052", ErrorCode.INVALID_DATE_LENGTH),
            ("199005211", ErrorCode.INVALID_DATE_LENGTH),
            ("19x00521", ErrorCode.INVALID_YEAR_VALUE),
            ("19901321", ErrorCode.INVALID_MONTH_VALUE),
            ("19900021", ErrorCode.INVALID_MONTH_VALUE),
            ("199005x1", ErrorCode.INVALID_DAY_VALUE),
            ("19900230", ErrorCode.INVALID_DAY_VALUE),
        ],
    )
    def test_invalid(self, value, code):
        with pytest.raises(DateConversionError) as exc_info:
            convert_8digit_date_to_dashed(value)
        assert exc_info.value.code == code

    def test_iso_rejects_invalid_dates(self):
        with pytest.raises(DateConversionError) as exc_info:
            convert_8digit_date_to_iso("20230229")
        assert exc_info.value.code == ErrorCode.INVALID_DAY_VALUE
