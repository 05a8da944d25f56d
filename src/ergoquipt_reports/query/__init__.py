"""Range normalization and memoized query parameters."""

from ergoquipt_reports.query.params import QueryParameterBuilder, QueryParams
from ergoquipt_reports.query.range import (
    DEFAULT_TIMEZONE_OFFSET,
    TIMEZONE_OPTIONS,
    DateRange,
    format_utc_iso,
    normalize_range,
    to_utc_instant,
)

__all__ = [
    "DEFAULT_TIMEZONE_OFFSET",
    "TIMEZONE_OPTIONS",
    "DateRange",
    "QueryParameterBuilder",
    "QueryParams",
    "format_utc_iso",
    "normalize_range",
    "to_utc_instant",
]
