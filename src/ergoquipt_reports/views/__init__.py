"""Stateful views: summary aggregation, recording listing, selection."""

from ergoquipt_reports.views.aggregation import AggregateState, AggregateView, AggregationFetcher
from ergoquipt_reports.views.recordings import RecordingListState, RecordingListView
from ergoquipt_reports.views.selection import SelectionManager

__all__ = [
    "AggregateState",
    "AggregateView",
    "AggregationFetcher",
    "RecordingListState",
    "RecordingListView",
    "SelectionManager",
]
