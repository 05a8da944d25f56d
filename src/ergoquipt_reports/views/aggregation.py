from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, List, Optional, Tuple

from ergoquipt_reports.api.client import ConsoleApiClient
from ergoquipt_reports.api.models import GlobalSummary, OperatorSummary, TimeseriesSummary
from ergoquipt_reports.errors import PartialAggregationFailure, ReportingError, error_message
from ergoquipt_reports.query.params import QueryParams
from ergoquipt_reports.query.range import DateRange

logger = logging.getLogger(__name__)

SUMMARY_FALLBACK_MESSAGE = "Failed to load summary"

_SLOTS = ("global", "by_operator", "series")


@dataclass(frozen=True)
class AggregateView:
    """Global, per-operator and bucketed counts for one DateRange."""

    range: DateRange
    global_counts: GlobalSummary
    by_operator: Tuple[OperatorSummary, ...]
    series: TimeseriesSummary


@dataclass(frozen=True)
class AggregateState:
    loading: bool = False
    error: Optional[str] = None
    error_type: Optional[str] = None
    view: Optional[AggregateView] = None
    params: Optional[QueryParams] = None
    generation: int = 0

    @property
    def status(self) -> str:
        if self.loading:
            return "loading"
        if self.error is not None:
            return "error"
        return "ok" if self.view is not None else "idle"

    @property
    def renderable(self) -> Optional[AggregateView]:
        """The view to draw, or None while loading or after a failure."""

        if self.loading or self.error is not None:
            return None
        return self.view


class AggregationFetcher:
    """Fan out the three summary queries and commit them as one view.

    Notes:
    - The three queries run concurrently (each in a worker thread, since the
      client is blocking) and are committed together or not at all.
    - Every `load` takes a new generation number; a result whose generation is
      no longer current is dropped on arrival, so the last request wins.
    """

    def __init__(self, client: ConsoleApiClient) -> None:
        self.client = client
        self._generation = 0
        self._state = AggregateState()

    @property
    def state(self) -> AggregateState:
        return self._state

    async def refresh(self, params: QueryParams) -> AggregateState:
        """Load only if `params` differs from the committed view's params.

        Builders hand back the same QueryParams object for unchanged facets,
        so an identity check is enough. `load` always fetches (manual retry).
        """

        if params is self._state.params and self._state.status == "ok":
            logger.debug("summary params unchanged; keeping view #%s", self._state.generation)
            return self._state
        return await self.load(params)

    async def load(self, params: QueryParams) -> AggregateState:
        self._generation += 1
        generation = self._generation
        self._state = replace(
            self._state, loading=True, error=None, error_type=None, params=params, generation=generation
        )

        try:
            params.range.require_closed()
        except ReportingError as exc:
            return self._commit_error(generation, exc)

        logger.debug("summary fetch #%s started for %s", generation, params)
        results = await asyncio.gather(
            asyncio.to_thread(
                self.client.get_summary_global,
                from_utc=params.range.from_utc,
                to_utc=params.range.to_utc,
            ),
            asyncio.to_thread(
                self.client.get_summary_by_operator,
                from_utc=params.range.from_utc,
                to_utc=params.range.to_utc,
                operator_id=params.operator_id,
            ),
            asyncio.to_thread(
                self.client.get_summary_timeseries,
                from_utc=params.range.from_utc,
                to_utc=params.range.to_utc,
                group_by=params.group_by,
                metric=params.metric,
                operator_id=params.operator_id,
            ),
            return_exceptions=True,
        )

        if generation != self._generation:
            logger.info("summary fetch #%s superseded by #%s; result dropped", generation, self._generation)
            return self._state

        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result

        failed = [(slot, r) for slot, r in zip(_SLOTS, results) if isinstance(r, Exception)]
        if failed:
            return self._commit_error(generation, _combine_failures(failed))

        global_counts, by_operator, series = results
        view = AggregateView(
            range=params.range,
            global_counts=global_counts,
            by_operator=tuple(by_operator),
            series=series,
        )
        self._state = AggregateState(view=view, params=params, generation=generation)
        logger.info(
            "summary fetch #%s committed: %s operators, %s periods",
            generation,
            len(view.by_operator),
            len(view.series.series),
        )
        return self._state

    def _commit_error(self, generation: int, exc: Exception) -> AggregateState:
        if not isinstance(exc, ReportingError):
            logger.error("summary fetch #%s failed unexpectedly", generation, exc_info=exc)
        self._state = AggregateState(
            error=error_message(exc, SUMMARY_FALLBACK_MESSAGE),
            error_type=type(exc).__name__,
            params=self._state.params,
            generation=generation,
        )
        return self._state


def _combine_failures(failed: List[Tuple[str, Any]]) -> Exception:
    """Collapse slot failures into the exception reported for the whole view."""

    slots = [slot for slot, _ in failed]
    first = failed[0][1]
    logger.warning("summary queries failed: %s", ", ".join(f"{s}: {e!r}" for s, e in failed))
    if len(failed) == len(_SLOTS):
        return first
    return PartialAggregationFailure(error_message(first, SUMMARY_FALLBACK_MESSAGE), failed=slots)
