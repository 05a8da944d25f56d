from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional, Tuple, get_args

from ergoquipt_reports.errors import ValidationFailure
from ergoquipt_reports.query.range import TIMEZONE_OPTIONS, DateRange, normalize_range

logger = logging.getLogger(__name__)

GroupBy = Literal["day", "week", "month"]
Metric = Literal["tympani", "hrv", "both"]

GROUP_BY_VALUES: Tuple[str, ...] = get_args(GroupBy)
METRIC_VALUES: Tuple[str, ...] = get_args(Metric)


@dataclass(frozen=True)
class QueryParams:
    range: DateRange
    operator_id: Optional[str] = None
    group_by: GroupBy = "week"
    metric: Metric = "both"


FacetKey = Tuple[str, str, int, Optional[str], str, str]


class QueryParameterBuilder:
    """Derive QueryParams from the user-editable facets.

    The last result is memoized: calling `build` again with value-equal facets
    returns the very same object, so consumers may compare by identity to
    decide whether to refetch.
    """

    def __init__(self) -> None:
        self._key: Optional[FacetKey] = None
        self._params: Optional[QueryParams] = None

    def build(
        self,
        *,
        date_from: str,
        date_to: str,
        timezone_offset: int,
        operator_id: Optional[str] = None,
        group_by: str = "week",
        metric: str = "both",
    ) -> QueryParams:
        # "" from an "All operators" choice means no operator filter
        operator_id = operator_id or None
        key: FacetKey = (date_from, date_to, timezone_offset, operator_id, group_by, metric)

        if self._params is not None and key == self._key:
            return self._params

        if timezone_offset not in TIMEZONE_OPTIONS:
            raise ValidationFailure(f"Unsupported timezone offset: {timezone_offset}")
        if group_by not in GROUP_BY_VALUES:
            raise ValidationFailure(f"Unsupported group_by: {group_by}")
        if metric not in METRIC_VALUES:
            raise ValidationFailure(f"Unsupported metric: {metric}")

        params = QueryParams(
            range=normalize_range(date_from, date_to, timezone_offset),
            operator_id=operator_id,
            group_by=group_by,  # type: ignore[arg-type]
            metric=metric,  # type: ignore[arg-type]
        )
        logger.debug("query params recomputed: %s", params)

        self._key = key
        self._params = params
        return params
