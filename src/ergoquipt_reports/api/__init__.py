"""Console API client and response models."""

from ergoquipt_reports.api.client import ConsoleApiClient
from ergoquipt_reports.api.models import (
    ExportFormat,
    GlobalSummary,
    OperatorAccount,
    OperatorSummary,
    RecordingKind,
    RecordingPage,
    RecordingSummary,
    SeriesPoint,
    TimeseriesSummary,
)

__all__ = [
    "ConsoleApiClient",
    "ExportFormat",
    "GlobalSummary",
    "OperatorAccount",
    "OperatorSummary",
    "RecordingKind",
    "RecordingPage",
    "RecordingSummary",
    "SeriesPoint",
    "TimeseriesSummary",
]
