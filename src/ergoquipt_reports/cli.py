from __future__ import annotations

import asyncio
from datetime import date
from pathlib import Path
from typing import List, Optional

import typer

from ergoquipt_reports.api.client import ConsoleApiClient
from ergoquipt_reports.api.models import RecordingKind
from ergoquipt_reports.config import Settings, load_settings
from ergoquipt_reports.errors import ReportingError, error_message
from ergoquipt_reports.export import DirectorySink, ExportPipeline, ExportResult
from ergoquipt_reports.logging_utils import (
    JsonlLogger,
    command_start_event,
    configure_logging,
    default_log_path,
    export_event,
    new_run_context,
    recordings_event,
    report_event,
    run_summary_event,
    summary_event,
)
from ergoquipt_reports.query.params import QueryParameterBuilder, QueryParams
from ergoquipt_reports.query.range import default_date_window, format_utc_iso
from ergoquipt_reports.report import operators_frame, series_frame, write_summary_report
from ergoquipt_reports.session import JsonFileSessionStore, SessionStore
from ergoquipt_reports.views import AggregateState, AggregationFetcher, RecordingListView

app = typer.Typer(add_completion=False, help="Ergoquipt recording reports and exports")
recordings_app = typer.Typer(help="List and download tympani/HRV recordings")
summary_app = typer.Typer(help="Aggregated recording counts")
sessions_app = typer.Typer(help="Measurement session exports")
session_app = typer.Typer(help="Stored token and preferences")
app.add_typer(recordings_app, name="recordings")
app.add_typer(summary_app, name="summary")
app.add_typer(sessions_app, name="sessions")
app.add_typer(session_app, name="session")

RECORDINGS_WINDOW_DAYS = 7
SUMMARY_WINDOW_DAYS = 30
RECORDING_KINDS = ("tympani", "hrv")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        exists=True,
        dir_okay=False,
        file_okay=True,
        readable=True,
        help="Path to YAML config (optional)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log library debug output to stderr"),
) -> None:
    """Load settings and the session store into the Typer context."""

    configure_logging(verbose)
    settings = load_settings(config)
    settings.paths.logs_dir.mkdir(parents=True, exist_ok=True)
    ctx.obj = {"settings": settings, "session": JsonFileSessionStore(settings.paths.session_file)}


def _client(ctx: typer.Context) -> ConsoleApiClient:
    settings: Settings = ctx.obj["settings"]
    return ConsoleApiClient(settings.api.base_url, ctx.obj["session"], timeout_s=settings.api.timeout_s)


def _start(ctx: typer.Context, command: str, **options: object) -> JsonlLogger:
    settings: Settings = ctx.obj["settings"]
    run_ctx = new_run_context(command)
    logger = JsonlLogger(default_log_path(settings.paths.logs_dir, now_utc=run_ctx.started_at_utc), run_ctx)
    logger.log(command_start_event(**options))
    return logger


def _finish(logger: JsonlLogger, *, ok: bool) -> None:
    logger.log(run_summary_event(ctx=logger.ctx, ok=ok))
    if not ok:
        raise typer.Exit(code=1)


def _dates(date_from: Optional[str], date_to: Optional[str], days: int) -> tuple[str, str]:
    default_from, default_to = default_date_window(today=date.today(), days=days)
    return (default_from if date_from is None else date_from, default_to if date_to is None else date_to)


def _kind(kind: str) -> RecordingKind:
    if kind not in RECORDING_KINDS:
        typer.echo(f"Error: --kind must be one of {', '.join(RECORDING_KINDS)}", err=True)
        raise typer.Exit(code=2)
    return kind  # type: ignore[return-value]


def _report_export(logger: JsonlLogger, result: ExportResult) -> None:
    logger.log(export_event(result))
    if result.status == "error":
        typer.echo(f"Error: {result.message}", err=True)
    elif result.status == "skipped":
        typer.echo(result.message)
    else:
        typer.echo(f"Saved {result.path} ({result.size_bytes} bytes)")
    _finish(logger, ok=result.status != "error")


# Recordings


def _list_view(
    ctx: typer.Context,
    kind: str,
    date_from: Optional[str],
    date_to: Optional[str],
    tz: Optional[int],
    operator: Optional[str],
) -> RecordingListView:
    settings: Settings = ctx.obj["settings"]
    d_from, d_to = _dates(date_from, date_to, RECORDINGS_WINDOW_DAYS)
    return RecordingListView(
        _client(ctx),
        _kind(kind),
        date_from=d_from,
        date_to=d_to,
        timezone_offset=settings.default_timezone_offset if tz is None else tz,
        operator_id=operator,
        limit=settings.api.page_limit,
    )


def _load_page(view: RecordingListView, page: int) -> None:
    asyncio.run(view.load())
    # offsets are only known to be valid once the total is known
    for _ in range(max(page, 1) - 1):
        if not view.next_page():
            break
        asyncio.run(view.load())


@recordings_app.command("list")
def recordings_list(
    ctx: typer.Context,
    kind: str = typer.Option("hrv", "--kind", help="tympani or hrv"),
    date_from: Optional[str] = typer.Option(None, "--from", help="Local start date (YYYY-MM-DD)"),
    date_to: Optional[str] = typer.Option(None, "--to", help="Local end date (YYYY-MM-DD)"),
    tz: Optional[int] = typer.Option(None, "--tz", help="Timezone offset in hours (7, 8 or 9)"),
    operator: Optional[str] = typer.Option(None, "--operator", help="Operator id"),
    page: int = typer.Option(1, "--page", min=1, help="1-based page number"),
) -> None:
    """List recordings of one kind for a local date range."""

    logger = _start(ctx, "recordings-list", kind=kind, date_from=date_from, date_to=date_to, page=page)
    view = _list_view(ctx, kind, date_from, date_to, tz, operator)
    _load_page(view, page)

    state = view.state
    if state.status == "error":
        typer.echo(f"Error: {state.error}", err=True)
        logger.log(recordings_event(view))
        _finish(logger, ok=False)

    for row in state.rows:
        typer.echo(
            f"{row.id}\t{row.label}\t{row.operator_display}\t{row.respondent_descriptor}\t"
            f"{row.time_start.isoformat()} - {row.time_end.isoformat()}\t{row.sample_count}"
        )
    if not state.rows:
        typer.echo(f"No {kind.upper()} recordings found.")
    typer.echo(view.page_label())

    logger.log(recordings_event(view))
    _finish(logger, ok=True)


@recordings_app.command("download")
def recordings_download(
    ctx: typer.Context,
    recording_id: str = typer.Option(..., "--id", help="Recording id"),
    kind: str = typer.Option("hrv", "--kind", help="tympani or hrv"),
    fmt: str = typer.Option("csv", "--format", help="csv or json"),
) -> None:
    """Download one recording."""

    settings: Settings = ctx.obj["settings"]
    logger = _start(ctx, "recordings-download", kind=kind, recording_id=recording_id, format=fmt)
    pipeline = ExportPipeline(_client(ctx), DirectorySink(settings.paths.downloads_dir), _kind(kind))
    result = pipeline.export_one(recording_id, fmt)
    _report_export(logger, result)


@recordings_app.command("download-bulk")
def recordings_download_bulk(
    ctx: typer.Context,
    ids: List[str] = typer.Option([], "--id", help="Recording id on the listed page (repeatable)"),
    select_all: bool = typer.Option(False, "--all", help="Select every recording on the page"),
    kind: str = typer.Option("hrv", "--kind", help="tympani or hrv"),
    fmt: str = typer.Option("csv", "--format", help="csv or json (inside the zip)"),
    date_from: Optional[str] = typer.Option(None, "--from", help="Local start date (YYYY-MM-DD)"),
    date_to: Optional[str] = typer.Option(None, "--to", help="Local end date (YYYY-MM-DD)"),
    tz: Optional[int] = typer.Option(None, "--tz", help="Timezone offset in hours (7, 8 or 9)"),
    operator: Optional[str] = typer.Option(None, "--operator", help="Operator id"),
    page: int = typer.Option(1, "--page", min=1, help="1-based page number"),
) -> None:
    """Select recordings on a listed page and download them as one zip."""

    settings: Settings = ctx.obj["settings"]
    logger = _start(ctx, "recordings-download-bulk", kind=kind, ids=ids, select_all=select_all, format=fmt)
    view = _list_view(ctx, kind, date_from, date_to, tz, operator)
    _load_page(view, page)
    if view.state.status == "error":
        typer.echo(f"Error: {view.state.error}", err=True)
        logger.log(recordings_event(view))
        _finish(logger, ok=False)

    if select_all:
        view.selection.select_all_visible(view.selection.visible_ids, checked=True)
    for recording_id in ids:
        if recording_id not in view.selection:
            view.selection.toggle(recording_id)
    skipped = [i for i in ids if i not in view.selection]
    if skipped:
        typer.echo(f"Not on this page, ignored: {', '.join(skipped)}", err=True)

    pipeline = ExportPipeline(_client(ctx), DirectorySink(settings.paths.downloads_dir), _kind(kind))
    result = pipeline.export_bulk(view.selection.selected_ids, fmt)
    _report_export(logger, result)


# Summary


def _summary_params(
    ctx: typer.Context,
    date_from: Optional[str],
    date_to: Optional[str],
    tz: Optional[int],
    operator: Optional[str],
    group_by: str,
    metric: str,
) -> QueryParams:
    settings: Settings = ctx.obj["settings"]
    d_from, d_to = _dates(date_from, date_to, SUMMARY_WINDOW_DAYS)
    try:
        return QueryParameterBuilder().build(
            date_from=d_from,
            date_to=d_to,
            timezone_offset=settings.default_timezone_offset if tz is None else tz,
            operator_id=operator,
            group_by=group_by,
            metric=metric,
        )
    except ReportingError as exc:
        typer.echo(f"Error: {error_message(exc)}", err=True)
        raise typer.Exit(code=2)


def _load_summary(ctx: typer.Context, params: QueryParams) -> AggregateState:
    return asyncio.run(AggregationFetcher(_client(ctx)).load(params))


_date_from_opt = typer.Option(None, "--from", help="Local start date (YYYY-MM-DD)")
_date_to_opt = typer.Option(None, "--to", help="Local end date (YYYY-MM-DD)")
_tz_opt = typer.Option(None, "--tz", help="Timezone offset in hours (7, 8 or 9)")
_operator_opt = typer.Option(None, "--operator", help="Operator id")
_group_by_opt = typer.Option("week", "--group-by", help="day, week or month")
_metric_opt = typer.Option("both", "--metric", help="tympani, hrv or both")


@summary_app.command("show")
def summary_show(
    ctx: typer.Context,
    date_from: Optional[str] = _date_from_opt,
    date_to: Optional[str] = _date_to_opt,
    tz: Optional[int] = _tz_opt,
    operator: Optional[str] = _operator_opt,
    group_by: str = _group_by_opt,
    metric: str = _metric_opt,
) -> None:
    """Print global, per-operator and time-bucketed counts."""

    params = _summary_params(ctx, date_from, date_to, tz, operator, group_by, metric)
    logger = _start(
        ctx,
        "summary-show",
        from_utc=format_utc_iso(params.range.from_utc),
        to_utc=format_utc_iso(params.range.to_utc),
        group_by=group_by,
        metric=metric,
    )
    state = _load_summary(ctx, params)
    view = state.renderable
    if view is None:
        typer.echo(f"Error: {state.error}", err=True)
        logger.log(summary_event(state))
        _finish(logger, ok=False)
        return

    g = view.global_counts
    typer.echo(f"Tympani recordings: {g.tympani_count}")
    typer.echo(f"HRV recordings: {g.hrv_count}")
    typer.echo(f"Active operators: {g.operators_active}")
    typer.echo("")
    typer.echo("Summary per Operator")
    ops = operators_frame(view)
    typer.echo(ops.to_string(index=False) if not ops.empty else "No summary data found.")
    typer.echo("")
    typer.echo(f"Time Series ({view.series.group_by})")
    series = series_frame(view)
    typer.echo(series.to_string(index=False) if not series.empty else "No timeseries data found.")

    logger.log(summary_event(state))
    _finish(logger, ok=True)


@summary_app.command("export-csv")
def summary_export_csv(
    ctx: typer.Context,
    date_from: Optional[str] = _date_from_opt,
    date_to: Optional[str] = _date_to_opt,
    tz: Optional[int] = _tz_opt,
    operator: Optional[str] = _operator_opt,
    group_by: str = _group_by_opt,
    metric: str = _metric_opt,
) -> None:
    """Download the server-rendered summary CSV."""

    settings: Settings = ctx.obj["settings"]
    params = _summary_params(ctx, date_from, date_to, tz, operator, group_by, metric)
    logger = _start(ctx, "summary-export-csv", group_by=group_by, metric=metric)
    pipeline = ExportPipeline(_client(ctx), DirectorySink(settings.paths.downloads_dir))
    result = pipeline.export_summary(params)
    _report_export(logger, result)


@summary_app.command("report")
def summary_report(
    ctx: typer.Context,
    date_from: Optional[str] = _date_from_opt,
    date_to: Optional[str] = _date_to_opt,
    tz: Optional[int] = _tz_opt,
    operator: Optional[str] = _operator_opt,
    group_by: str = _group_by_opt,
    metric: str = _metric_opt,
) -> None:
    """Write the summary as Markdown, JSON and a series CSV."""

    settings: Settings = ctx.obj["settings"]
    params = _summary_params(ctx, date_from, date_to, tz, operator, group_by, metric)
    logger = _start(ctx, "summary-report", group_by=group_by, metric=metric)
    state = _load_summary(ctx, params)
    view = state.renderable
    if view is None:
        typer.echo(f"Error: {state.error}", err=True)
        logger.log(summary_event(state))
        _finish(logger, ok=False)
        return

    written = write_summary_report(view, params, reports_dir=settings.paths.reports_dir)
    logger.log(report_event(written))
    typer.echo(f"Wrote {written.md_path}")
    _finish(logger, ok=True)


# Sessions


@sessions_app.command("export-csv")
def sessions_export_csv(
    ctx: typer.Context,
    date_from: Optional[str] = _date_from_opt,
    date_to: Optional[str] = _date_to_opt,
    operator: Optional[str] = _operator_opt,
    test_type: Optional[str] = typer.Option(None, "--test-type", help="Only sessions of this test type"),
) -> None:
    """Download the sessions CSV for a local date range."""

    settings: Settings = ctx.obj["settings"]
    d_from, d_to = _dates(date_from, date_to, SUMMARY_WINDOW_DAYS)
    logger = _start(ctx, "sessions-export-csv", date_from=d_from, date_to=d_to, operator=operator, test_type=test_type)
    pipeline = ExportPipeline(_client(ctx), DirectorySink(settings.paths.downloads_dir))
    result = pipeline.export_sessions(d_from, d_to, operator_id=operator, test_type=test_type)
    _report_export(logger, result)


# Misc


@app.command()
def operators(ctx: typer.Context) -> None:
    """List operator accounts (for the --operator filter)."""

    try:
        accounts = _client(ctx).list_operators()
    except ReportingError as exc:
        typer.echo(f"Error: {error_message(exc, 'Failed to load operators')}", err=True)
        raise typer.Exit(code=1)
    for account in accounts:
        typer.echo(f"{account.id}\t{account.full_name or account.username}")


@session_app.command("set-token")
def session_set_token(ctx: typer.Context, token: str = typer.Argument(..., help="Bearer token")) -> None:
    store: SessionStore = ctx.obj["session"]
    store.set_token(token)
    typer.echo("Token stored.")


@session_app.command("clear-token")
def session_clear_token(ctx: typer.Context) -> None:
    store: SessionStore = ctx.obj["session"]
    store.clear_token()
    typer.echo("Token cleared.")


@session_app.command("set-pref")
def session_set_pref(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="theme or language"),
    value: str = typer.Argument(..., help="light/dark or id/en"),
) -> None:
    store: SessionStore = ctx.obj["session"]
    try:
        store.set_preference(name, value)
    except (KeyError, ValueError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)
    typer.echo(f"{name} = {value}")


if __name__ == "__main__":
    app()
