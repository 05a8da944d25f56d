"""Summary report rendering (Markdown, JSON, CSV)."""

from ergoquipt_reports.report.summary import (
    SummaryReportWriteResult,
    operators_frame,
    render_summary_markdown,
    series_frame,
    write_summary_report,
)

__all__ = [
    "SummaryReportWriteResult",
    "operators_frame",
    "render_summary_markdown",
    "series_frame",
    "write_summary_report",
]
