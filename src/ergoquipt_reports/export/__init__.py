"""Recording and summary downloads."""

from ergoquipt_reports.export.pipeline import (
    ExportPipeline,
    ExportResult,
    bulk_filename,
    single_filename,
    summary_filename,
)
from ergoquipt_reports.export.sink import DirectorySink, DownloadSink

__all__ = [
    "DirectorySink",
    "DownloadSink",
    "ExportPipeline",
    "ExportResult",
    "bulk_filename",
    "single_filename",
    "summary_filename",
]
