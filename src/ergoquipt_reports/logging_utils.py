from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ergoquipt_reports.export.pipeline import ExportResult
from ergoquipt_reports.query.range import format_utc_iso
from ergoquipt_reports.report.summary import SummaryReportWriteResult
from ergoquipt_reports.views.aggregation import AggregateState
from ergoquipt_reports.views.recordings import RecordingListView


@dataclass(frozen=True)
class RunContext:
    """One CLI command invocation; every event it logs carries these ids."""

    run_id: str
    command: str
    started_at_utc: datetime


def new_run_context(command: str) -> RunContext:
    return RunContext(run_id=str(uuid.uuid4()), command=command, started_at_utc=datetime.now(timezone.utc))


def default_log_path(logs_dir: Path, now_utc: Optional[datetime] = None) -> Path:
    ts = now_utc or datetime.now(timezone.utc)
    return logs_dir / f"run-{ts.strftime('%Y%m%d')}.jsonl"


def configure_logging(verbose: bool = False) -> None:
    """Route library loggers (ergoquipt_reports.*) to stderr."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


class JsonlLogger:
    """Append-only JSONL run log bound to one RunContext.

    Each event gets `run_id` and `command` stamped in; paths and datetimes are
    written via str().
    """

    def __init__(self, path: Path, ctx: RunContext) -> None:
        self.path = path
        self.ctx = ctx
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, event: Dict[str, Any]) -> None:
        record = {"run_id": self.ctx.run_id, "command": self.ctx.command}
        record.update(event)
        line = json.dumps(record, ensure_ascii=False, sort_keys=True, default=str)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")


# Event builders


def command_start_event(**options: Any) -> Dict[str, Any]:
    # options left at None were not given on the command line
    return {"event": "command_start", "options": {k: v for k, v in options.items() if v is not None}}


def recordings_event(view: RecordingListView) -> Dict[str, Any]:
    state = view.state
    if state.status == "error":
        return {
            "event": "recordings_failed",
            "kind": view.kind,
            "error_type": state.error_type,
            "error_message": state.error,
        }
    return {
        "event": "recordings_loaded",
        "kind": view.kind,
        "rows": len(state.rows),
        "total": state.total,
        "offset": view.offset,
    }


def summary_event(state: AggregateState) -> Dict[str, Any]:
    view = state.renderable
    if view is None:
        return {"event": "summary_failed", "error_type": state.error_type, "error_message": state.error}
    return {
        "event": "summary_loaded",
        "from_utc": format_utc_iso(view.range.from_utc),
        "to_utc": format_utc_iso(view.range.to_utc),
        "operators": len(view.by_operator),
        "periods": len(view.series.series),
    }


def export_event(result: ExportResult) -> Dict[str, Any]:
    if result.status == "error":
        return {
            "event": "export_failed",
            "filename": result.filename,
            "error_type": result.error_type,
            "error_message": result.error_message,
        }
    return {
        "event": "export_finished",
        "status": result.status,
        "filename": result.filename,
        "path": str(result.path) if result.path is not None else None,
        "size_bytes": result.size_bytes,
    }


def report_event(written: SummaryReportWriteResult) -> Dict[str, Any]:
    return {
        "event": "report_generated",
        "md_path": str(written.md_path),
        "json_path": str(written.json_path),
        "csv_path": str(written.csv_path),
    }


def run_summary_event(*, ctx: RunContext, ok: bool) -> Dict[str, Any]:
    ended_at_utc = datetime.now(timezone.utc)
    return {
        "event": "run_summary",
        "status": "ok" if ok else "error",
        "started_at": ctx.started_at_utc.isoformat(),
        "ended_at": ended_at_utc.isoformat(),
        "duration_s": (ended_at_utc - ctx.started_at_utc).total_seconds(),
    }
