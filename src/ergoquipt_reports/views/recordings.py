from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from ergoquipt_reports.api.client import ConsoleApiClient
from ergoquipt_reports.api.models import RecordingKind, RecordingSummary
from ergoquipt_reports.errors import ReportingError, error_message
from ergoquipt_reports.query.params import QueryParameterBuilder, QueryParams
from ergoquipt_reports.query.range import DEFAULT_TIMEZONE_OFFSET
from ergoquipt_reports.views.selection import SelectionManager

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 50


@dataclass(frozen=True)
class RecordingListState:
    status: str = "idle"  # idle/loading/ok/error
    rows: Tuple[RecordingSummary, ...] = field(default_factory=tuple)
    total: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None


class RecordingListView:
    """Paginated listing of one recording kind plus its selection.

    Facet edits go through `set_filters`, which resets the page offset. Every
    completed load (success or failure) resets the selection, including a pure
    page turn.
    """

    def __init__(
        self,
        client: ConsoleApiClient,
        kind: RecordingKind,
        *,
        date_from: str,
        date_to: str,
        timezone_offset: int = DEFAULT_TIMEZONE_OFFSET,
        operator_id: Optional[str] = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        builder: Optional[QueryParameterBuilder] = None,
    ) -> None:
        self.client = client
        self.kind = kind
        self.limit = limit
        self.offset = 0
        self.builder = builder or QueryParameterBuilder()
        self.selection = SelectionManager()
        self._facets = {
            "date_from": date_from,
            "date_to": date_to,
            "timezone_offset": timezone_offset,
            "operator_id": operator_id,
        }
        self._generation = 0
        self._state = RecordingListState()
        self._loaded: Optional[Tuple[QueryParams, int]] = None

    @property
    def state(self) -> RecordingListState:
        return self._state

    @property
    def fallback_message(self) -> str:
        return f"Failed to load {self.kind.upper()} recordings"

    def params(self) -> QueryParams:
        return self.builder.build(**self._facets)

    def set_filters(self, **facets: object) -> None:
        unknown = set(facets) - set(self._facets)
        if unknown:
            raise TypeError(f"unknown filter(s): {sorted(unknown)}")
        changed = {k: v for k, v in facets.items() if self._facets[k] != v}
        if changed:
            self._facets.update(changed)
            self.offset = 0

    @property
    def has_previous(self) -> bool:
        return self.offset > 0

    @property
    def has_next(self) -> bool:
        return self.offset + self.limit < self._state.total

    def next_page(self) -> bool:
        if not self.has_next:
            return False
        self.offset += self.limit
        return True

    def previous_page(self) -> bool:
        if not self.has_previous:
            return False
        self.offset = max(self.offset - self.limit, 0)
        return True

    def page_label(self) -> str:
        total = self._state.total
        return f"{self.offset + 1} - {min(self.offset + self.limit, total)} of {total}"

    async def refresh(self) -> RecordingListState:
        """Load unless the last successful load had the same params and offset."""

        if self._state.status == "ok" and self._loaded is not None:
            params, offset = self._loaded
            try:
                unchanged = params is self.params() and offset == self.offset
            except ReportingError:
                unchanged = False
            if unchanged:
                return self._state
        return await self.load()

    async def load(self) -> RecordingListState:
        self._generation += 1
        generation = self._generation
        offset = self.offset
        self._state = RecordingListState(status="loading", rows=self._state.rows, total=self._state.total)

        try:
            params = self.params()
            params.range.check()
            page = await asyncio.to_thread(
                self.client.list_recordings,
                self.kind,
                from_utc=params.range.from_utc,
                to_utc=params.range.to_utc,
                operator_id=params.operator_id,
                limit=self.limit,
                offset=offset,
            )
        except Exception as exc:
            if generation != self._generation:
                return self._state
            if not isinstance(exc, ReportingError):
                logger.error("%s listing failed unexpectedly", self.kind, exc_info=exc)
            self._loaded = None
            self.selection.reset(visible_ids=())
            self._state = RecordingListState(
                status="error",
                error=error_message(exc, self.fallback_message),
                error_type=type(exc).__name__,
            )
            return self._state

        if generation != self._generation:
            logger.info("%s listing #%s superseded; result dropped", self.kind, generation)
            return self._state

        self._loaded = (params, offset)
        rows = tuple(page.items)
        self.selection.reset(visible_ids=[r.id for r in rows])
        self._state = RecordingListState(status="ok", rows=rows, total=page.total)
        logger.info("%s listing loaded: %s rows of %s (offset %s)", self.kind, len(rows), page.total, offset)
        return self._state
