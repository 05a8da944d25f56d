from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Optional

from ergoquipt_reports.errors import ValidationFailure

# Offsets (hours east of UTC) the console lets operators pick from.
TIMEZONE_OPTIONS: Dict[int, str] = {
    7: "UTC+7 (WIB)",
    8: "UTC+8 (WITA)",
    9: "UTC+9 (WIT)",
}

DEFAULT_TIMEZONE_OFFSET = 8

_END_OF_DAY = timedelta(hours=23, minutes=59, seconds=59)


@dataclass(frozen=True)
class DateRange:
    """UTC range bounds. None means the bound is open."""

    from_utc: Optional[datetime]
    to_utc: Optional[datetime]

    @property
    def is_closed(self) -> bool:
        return self.from_utc is not None and self.to_utc is not None

    def check(self) -> None:
        if self.from_utc is not None and self.to_utc is not None and self.from_utc > self.to_utc:
            raise ValidationFailure("Start date must not be after end date")

    def require_closed(self) -> None:
        """Raise ValidationFailure unless both bounds are set and ordered."""

        if not self.is_closed:
            raise ValidationFailure("Date range is required")
        self.check()


def parse_local_date(date_str: str) -> date:
    parts = date_str.strip().split("-")
    if len(parts) != 3:
        raise ValidationFailure(f"Invalid date: {date_str!r} (expected YYYY-MM-DD)")
    try:
        year, month, day = (int(p) for p in parts)
        return date(year, month, day)
    except ValueError as exc:
        raise ValidationFailure(f"Invalid date: {date_str!r} ({exc})") from exc


def to_utc_instant(date_str: str, offset_hours: int, end_of_day: bool) -> Optional[datetime]:
    """Convert a local calendar date at `offset_hours` into a UTC instant.

    Start of day is 00:00:00 local, end of day 23:59:59 local. The instant is
    computed as UTC midnight of the date minus the offset, so the host timezone
    never enters the calculation. An empty date string means "no bound".
    """

    if not date_str or not date_str.strip():
        return None

    day = parse_local_date(date_str)
    utc_midnight = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    local_time = _END_OF_DAY if end_of_day else timedelta(0)
    return utc_midnight + local_time - timedelta(hours=offset_hours)


def normalize_range(date_from: str, date_to: str, offset_hours: int) -> DateRange:
    return DateRange(
        from_utc=to_utc_instant(date_from, offset_hours, end_of_day=False),
        to_utc=to_utc_instant(date_to, offset_hours, end_of_day=True),
    )


def format_utc_iso(instant: Optional[datetime]) -> Optional[str]:
    """Wire format for range bounds: `2023-12-31T15:00:00.000Z`."""

    if instant is None:
        return None
    utc = instant.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def format_date_input(day: date) -> str:
    return day.strftime("%Y-%m-%d")


def default_date_window(*, today: date, days: int) -> tuple[str, str]:
    """Default (date_from, date_to) facets: the last `days` days up to `today`."""

    return format_date_input(today - timedelta(days=days)), format_date_input(today)
