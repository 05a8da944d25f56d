from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ergoquipt_reports import cli
from ergoquipt_reports.api.client import ConsoleApiClient
from ergoquipt_reports.api.models import RecordingPage, RecordingSummary
from ergoquipt_reports.errors import ApiError

runner = CliRunner()


@pytest.fixture(autouse=True)
def _workdir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.chdir(tmp_path)
    for key in ("ERGOQUIPT_API_URL", "ERGOQUIPT_TIMEOUT_S", "ERGOQUIPT_TZ_OFFSET"):
        monkeypatch.delenv(key, raising=False)
    return tmp_path


def _page(*ids: str) -> RecordingPage:
    ts = datetime(2024, 1, 2, tzinfo=timezone.utc)
    return RecordingPage(
        items=[RecordingSummary(id=i, label=i, operator_id="op-1", time_start=ts, time_end=ts, created_at=ts) for i in ids],
        total=len(ids),
    )


def test_session_set_token_persists(_workdir: Path) -> None:
    result = runner.invoke(cli.app, ["session", "set-token", "abc"])

    assert result.exit_code == 0
    stored = json.loads((_workdir / ".ergoquipt" / "session.json").read_text(encoding="utf-8"))
    assert stored["token"] == "abc"


def test_recordings_list_prints_rows_and_logs(monkeypatch: pytest.MonkeyPatch, _workdir: Path) -> None:
    monkeypatch.setattr(ConsoleApiClient, "list_recordings", lambda self, kind, **kw: _page("A", "B"))

    result = runner.invoke(cli.app, ["recordings", "list", "--kind", "tympani", "--from", "2024-01-01", "--to", "2024-01-07"])

    assert result.exit_code == 0, result.output
    assert "A\tA\top-1" in result.output
    assert "1 - 2 of 2" in result.output
    log_lines = next((_workdir / "logs").glob("run-*.jsonl")).read_text(encoding="utf-8").splitlines()
    events = [json.loads(line)["event"] for line in log_lines]
    assert events == ["command_start", "recordings_loaded", "run_summary"]


def test_bulk_download_only_sends_ids_on_page(monkeypatch: pytest.MonkeyPatch, _workdir: Path) -> None:
    sent = {}

    def _bulk(self, kind, ids, fmt):
        sent.update(kind=kind, ids=ids, fmt=fmt)
        return b"PK"

    monkeypatch.setattr(ConsoleApiClient, "list_recordings", lambda self, kind, **kw: _page("A", "B", "C"))
    monkeypatch.setattr(ConsoleApiClient, "download_recordings_bulk", _bulk)

    result = runner.invoke(
        cli.app, ["recordings", "download-bulk", "--kind", "hrv", "--id", "A", "--id", "Z", "--id", "C"]
    )

    assert result.exit_code == 0, result.output
    assert sent == {"kind": "hrv", "ids": ["A", "C"], "fmt": "csv"}
    assert (_workdir / "downloads" / "hrv_bulk.zip").read_bytes() == b"PK"


def test_failed_download_exits_nonzero(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail(self, kind, rid, fmt):
        raise ApiError(404, "Recording not found")

    monkeypatch.setattr(ConsoleApiClient, "download_recording", _fail)

    result = runner.invoke(cli.app, ["recordings", "download", "--id", "x"])

    assert result.exit_code == 1
    assert "Recording not found" in result.output


def test_unknown_kind_is_rejected() -> None:
    result = runner.invoke(cli.app, ["recordings", "list", "--kind", "spo2"])

    assert result.exit_code == 2


def test_sessions_export_csv_saves_dated_file(monkeypatch: pytest.MonkeyPatch, _workdir: Path) -> None:
    sent = {}

    def _export(self, **params):
        sent.update(params)
        return b"session_id\n"

    monkeypatch.setattr(ConsoleApiClient, "export_sessions_csv", _export)

    result = runner.invoke(
        cli.app, ["sessions", "export-csv", "--from", "2024-01-01", "--to", "2024-01-31", "--test-type", "hrv"]
    )

    assert result.exit_code == 0, result.output
    assert sent == {"start_date": "2024-01-01", "end_date": "2024-01-31", "operator_id": None, "test_type": "hrv"}
    assert (_workdir / "downloads" / "sessions_2024-01-01_2024-01-31.csv").read_bytes() == b"session_id\n"
    events = [json.loads(line) for line in next((_workdir / "logs").glob("run-*.jsonl")).read_text(encoding="utf-8").splitlines()]
    assert [e["event"] for e in events] == ["command_start", "export_finished", "run_summary"]
    assert {e["command"] for e in events} == {"sessions-export-csv"}
