from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone

import pytest

from ergoquipt_reports.errors import ValidationFailure
from ergoquipt_reports.query.range import (
    TIMEZONE_OPTIONS,
    DateRange,
    default_date_window,
    format_utc_iso,
    normalize_range,
    to_utc_instant,
)


def test_week_range_at_utc_plus_9() -> None:
    rng = normalize_range("2024-01-01", "2024-01-07", 9)

    assert rng.from_utc == datetime(2023, 12, 31, 15, 0, 0, tzinfo=timezone.utc)
    assert rng.to_utc == datetime(2024, 1, 7, 14, 59, 59, tzinfo=timezone.utc)


@pytest.mark.parametrize("offset", sorted(TIMEZONE_OPTIONS))
@pytest.mark.parametrize("day", ["2024-01-01", "2024-02-29", "2023-12-31", "2024-03-31"])
def test_start_and_end_of_day_are_one_second_short_of_a_day_apart(day: str, offset: int) -> None:
    start = to_utc_instant(day, offset, end_of_day=False)
    end = to_utc_instant(day, offset, end_of_day=True)

    assert start is not None and end is not None
    assert (end - start) / timedelta(milliseconds=1) == 86_399_000


def test_empty_date_is_an_open_bound() -> None:
    assert to_utc_instant("", 8, end_of_day=False) is None
    assert to_utc_instant("   ", 8, end_of_day=True) is None

    rng = normalize_range("", "2024-01-07", 8)
    assert rng.from_utc is None
    assert not rng.is_closed


def test_invalid_date_is_a_validation_failure() -> None:
    with pytest.raises(ValidationFailure):
        to_utc_instant("2024-02-30", 8, end_of_day=False)
    with pytest.raises(ValidationFailure):
        to_utc_instant("07/01/2024", 8, end_of_day=False)


@pytest.mark.skipif(not hasattr(time, "tzset"), reason="needs time.tzset")
def test_result_does_not_depend_on_host_timezone(monkeypatch: pytest.MonkeyPatch) -> None:
    results = []
    for host_tz in ("UTC", "America/Los_Angeles", "Asia/Kolkata"):
        monkeypatch.setenv("TZ", host_tz)
        time.tzset()
        results.append(normalize_range("2024-03-10", "2024-03-10", 7))
    monkeypatch.delenv("TZ")
    time.tzset()

    assert results[0] == results[1] == results[2]


def test_require_closed_and_ordering() -> None:
    with pytest.raises(ValidationFailure, match="required"):
        normalize_range("", "", 8).require_closed()

    inverted = normalize_range("2024-01-08", "2024-01-01", 8)
    with pytest.raises(ValidationFailure):
        inverted.check()

    DateRange(from_utc=None, to_utc=None).check()


def test_wire_format_has_millis_and_z_suffix() -> None:
    instant = to_utc_instant("2024-01-07", 9, end_of_day=True)

    assert format_utc_iso(instant) == "2024-01-07T14:59:59.000Z"
    assert format_utc_iso(None) is None


def test_default_date_window() -> None:
    from datetime import date

    assert default_date_window(today=date(2024, 3, 1), days=7) == ("2024-02-23", "2024-03-01")
