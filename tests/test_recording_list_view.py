from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Optional

from ergoquipt_reports.api.models import RecordingPage, RecordingSummary
from ergoquipt_reports.errors import ApiError
from ergoquipt_reports.views.recordings import RecordingListView


def _recording(rid: str) -> RecordingSummary:
    ts = datetime(2024, 1, 2, 3, 0, tzinfo=timezone.utc)
    return RecordingSummary(
        id=rid,
        label=f"batch {rid}",
        operator_id="op-1",
        time_start=ts,
        time_end=ts,
        sample_count=10,
        created_at=ts,
    )


class _FakeListClient:
    def __init__(self, total: int = 3, page_size: Optional[int] = None) -> None:
        self.total = total
        self.page_size = page_size
        self.calls: list[dict] = []
        self.error: Optional[Exception] = None

    def list_recordings(self, kind, *, from_utc, to_utc, operator_id=None, limit=50, offset=0) -> RecordingPage:
        self.calls.append(
            dict(kind=kind, from_utc=from_utc, to_utc=to_utc, operator_id=operator_id, limit=limit, offset=offset)
        )
        if self.error is not None:
            raise self.error
        count = min(limit, max(self.total - offset, 0))
        return RecordingPage(items=[_recording(f"R{offset + i}") for i in range(count)], total=self.total)


def _view(client: _FakeListClient, **kw) -> RecordingListView:
    return RecordingListView(
        client,  # type: ignore[arg-type]
        "hrv",
        date_from=kw.pop("date_from", "2024-01-01"),
        date_to=kw.pop("date_to", "2024-01-07"),
        timezone_offset=9,
        **kw,
    )


def test_load_replaces_rows_and_resets_selection() -> None:
    client = _FakeListClient(total=3)
    view = _view(client)

    state = asyncio.run(view.load())

    assert state.status == "ok"
    assert [r.id for r in state.rows] == ["R0", "R1", "R2"]
    assert state.total == 3
    assert client.calls[0]["from_utc"] == datetime(2023, 12, 31, 15, tzinfo=timezone.utc)
    assert client.calls[0]["limit"] == 50 and client.calls[0]["offset"] == 0

    view.selection.toggle("R1")
    asyncio.run(view.load())
    assert view.selection.selected_ids == []
    assert view.selection.visible_ids == ["R0", "R1", "R2"]


def test_page_turn_clears_selection_and_keeps_it_within_page() -> None:
    client = _FakeListClient(total=5)
    view = _view(client, limit=2)
    asyncio.run(view.load())
    view.selection.toggle("R0")

    assert view.next_page()
    asyncio.run(view.load())

    assert client.calls[-1]["offset"] == 2
    assert view.selection.selected_ids == []
    view.selection.toggle("R0")
    assert view.selection.selected_ids == []
    assert view.page_label() == "3 - 4 of 5"


def test_pagination_bounds() -> None:
    client = _FakeListClient(total=3)
    view = _view(client, limit=2)
    asyncio.run(view.load())

    assert not view.previous_page()
    assert view.next_page()
    asyncio.run(view.load())
    assert not view.next_page()
    assert view.page_label() == "3 - 3 of 3"
    assert view.previous_page()
    assert view.offset == 0


def test_filter_change_resets_offset() -> None:
    client = _FakeListClient(total=10)
    view = _view(client, limit=2)
    asyncio.run(view.load())
    view.next_page()
    view.next_page()
    assert view.offset == 4

    view.set_filters(operator_id="op-9")
    asyncio.run(view.load())

    assert view.offset == 0
    assert client.calls[-1]["operator_id"] == "op-9"
    assert client.calls[-1]["offset"] == 0


def test_setting_identical_filters_keeps_offset() -> None:
    view = _view(_FakeListClient(total=10), limit=2)
    asyncio.run(view.load())
    view.next_page()

    view.set_filters(date_from="2024-01-01")

    assert view.offset == 2


def test_failure_empties_rows_and_surfaces_detail() -> None:
    client = _FakeListClient(total=3)
    view = _view(client)
    asyncio.run(view.load())
    view.selection.toggle("R0")

    client.error = ApiError(403, "Not enough permissions")
    state = asyncio.run(view.load())

    assert state.status == "error"
    assert state.error == "Not enough permissions"
    assert state.rows == ()
    assert state.total == 0
    assert view.selection.selected_ids == []


def test_failure_without_detail_uses_kind_specific_message() -> None:
    client = _FakeListClient()
    client.error = ApiError(500)
    view = _view(client)

    state = asyncio.run(view.load())

    assert state.error == "Failed to load HRV recordings"


def test_open_range_is_allowed_for_listing() -> None:
    client = _FakeListClient()
    view = _view(client, date_from="")

    state = asyncio.run(view.load())

    assert state.status == "ok"
    assert client.calls[0]["from_utc"] is None


def test_inverted_range_fails_without_request() -> None:
    client = _FakeListClient()
    view = _view(client, date_from="2024-02-01", date_to="2024-01-01")

    state = asyncio.run(view.load())

    assert client.calls == []
    assert state.status == "error"
    assert state.error == "Start date must not be after end date"


def test_refresh_skips_fetch_until_facets_or_page_change() -> None:
    client = _FakeListClient(total=5)
    view = _view(client, limit=2)
    asyncio.run(view.refresh())
    view.selection.toggle("R1")

    view.set_filters(date_from="2024-01-01", timezone_offset=9)
    asyncio.run(view.refresh())
    assert len(client.calls) == 1
    assert view.selection.selected_ids == ["R1"]

    view.next_page()
    asyncio.run(view.refresh())
    assert len(client.calls) == 2
    assert client.calls[-1]["offset"] == 2

    view.set_filters(operator_id="op-9")
    asyncio.run(view.refresh())
    assert len(client.calls) == 3
    assert client.calls[-1]["offset"] == 0


def test_refresh_after_failure_fetches_again() -> None:
    client = _FakeListClient(total=3)
    client.error = ApiError(500, None)
    view = _view(client)

    asyncio.run(view.refresh())
    client.error = None
    state = asyncio.run(view.refresh())

    assert len(client.calls) == 2
    assert state.status == "ok"
