from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from ergoquipt_reports.query.params import QueryParams
from ergoquipt_reports.query.range import format_utc_iso
from ergoquipt_reports.views.aggregation import AggregateView

OPERATOR_COLUMNS = ["operator_id", "operator_name", "tympani_count", "hrv_count"]
SERIES_COLUMNS = ["period", "tympani_count", "hrv_count"]


@dataclass(frozen=True)
class SummaryReportWriteResult:
    md_path: Path
    json_path: Path
    csv_path: Path


def operators_frame(view: AggregateView) -> pd.DataFrame:
    rows = [item.model_dump() for item in view.by_operator]
    return pd.DataFrame(rows, columns=OPERATOR_COLUMNS)


def series_frame(view: AggregateView) -> pd.DataFrame:
    """Series table in server order, with a running total per metric."""

    df = pd.DataFrame([p.model_dump() for p in view.series.series], columns=SERIES_COLUMNS)
    df["tympani_cumulative"] = df["tympani_count"].cumsum()
    df["hrv_cumulative"] = df["hrv_count"].cumsum()
    return df


def _range_label(view: AggregateView) -> str:
    return f"{format_utc_iso(view.range.from_utc)} → {format_utc_iso(view.range.to_utc)}"


def render_summary_markdown(view: AggregateView, params: QueryParams) -> str:
    g = view.global_counts
    lines: List[str] = []
    lines.append("# Recording Summary")
    lines.append("")
    lines.append(f"Range (UTC): {_range_label(view)}")
    lines.append(f"Operator: {params.operator_id or 'all'} · Metric: {params.metric}")
    lines.append("")
    lines.append("## Totals")
    lines.append(f"- Tympani recordings: {g.tympani_count}")
    lines.append(f"- HRV recordings: {g.hrv_count}")
    lines.append(f"- Active operators: {g.operators_active}")
    lines.append("")

    lines.append("## Summary per Operator")
    lines.append("")
    if not view.by_operator:
        lines.append("No summary data found.")
    else:
        lines.append("| Operator | Tympani | HRV |")
        lines.append("|---|---:|---:|")
        for item in view.by_operator:
            lines.append(f"| {item.operator_name or item.operator_id} | {item.tympani_count} | {item.hrv_count} |")
    lines.append("")

    lines.append(f"## Time Series ({view.series.group_by})")
    lines.append("")
    if not view.series.series:
        lines.append("No timeseries data found.")
    else:
        lines.append("| Period | Tympani | HRV |")
        lines.append("|---|---:|---:|")
        for point in view.series.series:
            lines.append(f"| {point.period} | {point.tympani_count} | {point.hrv_count} |")

    lines.append("")
    return "\n".join(lines)


def summary_payload(view: AggregateView, params: QueryParams, *, generated_at: datetime) -> Dict[str, Any]:
    return {
        "meta": {
            "generated_at_utc": generated_at.astimezone(timezone.utc).isoformat(),
            "from_utc": format_utc_iso(view.range.from_utc),
            "to_utc": format_utc_iso(view.range.to_utc),
            "operator_id": params.operator_id,
            "group_by": view.series.group_by,
            "metric": params.metric,
        },
        "global": view.global_counts.model_dump(),
        "by_operator": [item.model_dump() for item in view.by_operator],
        "series": [p.model_dump() for p in view.series.series],
    }


def _report_stem(view: AggregateView) -> str:
    def _tag(instant: Optional[datetime]) -> str:
        return instant.strftime("%Y%m%d") if instant is not None else "open"

    return f"summary-{_tag(view.range.from_utc)}-{_tag(view.range.to_utc)}"


def write_summary_report(
    view: AggregateView,
    params: QueryParams,
    *,
    reports_dir: Path,
    now_utc: Optional[datetime] = None,
) -> SummaryReportWriteResult:
    """Write Markdown + JSON + series CSV for one committed summary view."""

    now_utc = now_utc or datetime.now(timezone.utc)
    reports_dir.mkdir(parents=True, exist_ok=True)

    stem = _report_stem(view)
    md_path = reports_dir / f"{stem}.md"
    json_path = reports_dir / f"{stem}.json"
    csv_path = reports_dir / f"{stem}-series.csv"

    md_path.write_text(render_summary_markdown(view, params), encoding="utf-8")

    payload = summary_payload(view, params, generated_at=now_utc)
    json_path.write_text(json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2) + "\n", encoding="utf-8")

    series_frame(view).to_csv(csv_path, index=False)

    return SummaryReportWriteResult(md_path=md_path, json_path=json_path, csv_path=csv_path)
