"""
Timestamp helpers.

JWT claims carry Unix seconds, credential documents carry ISO-8601 strings.
Conversion from ISO to seconds truncates sub-second precision.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

from ssi_verifier.errors import DateConversionError, ErrorCode


def now() -> float:
    """Current Unix time in seconds."""
    return time.time()


def iso_to_unix(value: str | None) -> int | None:
    """Convert an ISO-8601 timestamp to whole Unix seconds.

    Naive timestamps and a trailing ``Z`` are read as UTC. ``None`` and the
    empty string map to ``None`` so absent document fields compare equal to
    absent claims.

    Raises:
        ValueError: If the value is not a valid ISO-8601 timestamp.
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"Expected ISO-8601 string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    delta = parsed - datetime(1970, 1, 1, tzinfo=timezone.utc)
    # floor division keeps whole seconds without rounding
    return int(delta.total_seconds() // 1)


def unix_to_iso(value: int) -> str:
    """Format Unix seconds the way credential documents carry them.

    >>> unix_to_iso(0)
    '1970-01-01T00:00:00.000Z'
    """
    dt = datetime.fromtimestamp(value, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _check_8digit_date(date: str) -> tuple[int, int, int]:
    if len(date) != 8:
        raise DateConversionError(ErrorCode.INVALID_DATE_LENGTH, date)
    year, month, day = date[0:4], date[4:6], date[6:8]
    if not year.isdigit():
        raise DateConversionError(ErrorCode.INVALID_YEAR_VALUE, year)
    if not month.isdigit() or not 1 <= int(month) <= 12:
        raise DateConversionError(ErrorCode.INVALID_MONTH_VALUE, month)
    if not day.isdigit():
        raise DateConversionError(ErrorCode.INVALID_DAY_VALUE, day)
    try:
        datetime(int(year), int(month), int(day))
    except ValueError as e:
        raise DateConversionError(ErrorCode.INVALID_DAY_VALUE, day) from e
    return int(year), int(month), int(day)


def convert_8digit_date_to_dashed(date: str) -> str:
    """Convert ``YYYYMMDD`` to ``YYYY-MM-DD``.

    Raises:
        DateConversionError: With one of the ``INVALID_*`` date codes.
    """
    _check_8digit_date(date)
    return f"{date[0:4]}-{date[4:6]}-{date[6:8]}"


def convert_8digit_date_to_iso(date: str) -> str:
    """Convert ``YYYYMMDD`` to an ISO-8601 timestamp at UTC midnight."""
    year, month, day = _check_8digit_date(date)
    dt = datetime(year, month, day, tzinfo=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")
