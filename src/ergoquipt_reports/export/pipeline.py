from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ergoquipt_reports.api.client import ConsoleApiClient
from ergoquipt_reports.api.models import RecordingKind
from ergoquipt_reports.errors import ReportingError, ValidationFailure, error_message
from ergoquipt_reports.export.sink import DownloadSink
from ergoquipt_reports.query.params import QueryParams
from ergoquipt_reports.query.range import parse_local_date

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("csv", "json")


@dataclass(frozen=True)
class ExportResult:
    status: str  # ok/error/skipped
    message: str
    filename: Optional[str] = None
    path: Optional[Path] = None
    size_bytes: int = 0
    error_type: Optional[str] = None
    error_message: Optional[str] = None


def safe_id(recording_id: str) -> str:
    return recording_id.replace("/", "_").replace("\\", "_")


def single_filename(kind: str, recording_id: str, fmt: str) -> str:
    return f"{kind}_{safe_id(recording_id)}.{fmt}"


def bulk_filename(kind: str) -> str:
    # bulk downloads are always a zip of per-recording files, whatever the inner format
    return f"{kind}_bulk.zip"


def summary_filename(group_by: str) -> str:
    return f"summary_{group_by}.csv"


def sessions_filename(date_from: str, date_to: str) -> str:
    return f"sessions_{date_from}_{date_to}.csv"


class ExportPipeline:
    """Download recordings (single or bulk) and the summary or sessions CSV to a sink.

    Each export writes the payload to its own temporary file, hands that file
    to the sink, then removes it whether or not the sink succeeded. Failures
    come back as ExportResult(status="error"); they never touch list or
    summary state. `last_result` holds the outcome of the most recent export.
    """

    def __init__(self, client: ConsoleApiClient, sink: DownloadSink, kind: Optional[RecordingKind] = None) -> None:
        self.client = client
        self.sink = sink
        self.kind = kind
        self.last_result: Optional[ExportResult] = None

    def export_one(self, recording_id: str, fmt: str) -> ExportResult:
        return self._run(
            lambda: self.client.download_recording(self._require_kind(), recording_id, _check_format(fmt)),
            filename=single_filename(self.kind or "recording", recording_id, fmt),
            fallback="Failed to download recording",
        )

    def export_bulk(self, recording_ids: Sequence[str], fmt: str) -> ExportResult:
        ids: List[str] = list(recording_ids)
        if not ids:
            logger.debug("bulk export with empty selection skipped")
            self.last_result = ExportResult(status="skipped", message="No recordings selected")
            return self.last_result

        return self._run(
            lambda: self.client.download_recordings_bulk(self._require_kind(), ids, _check_format(fmt)),
            filename=bulk_filename(self.kind or "recording"),
            fallback="Failed to download recordings",
        )

    def export_summary(self, params: QueryParams) -> ExportResult:
        def _fetch() -> bytes:
            params.range.require_closed()
            return self.client.export_summary_csv(
                from_utc=params.range.from_utc,
                to_utc=params.range.to_utc,
                group_by=params.group_by,
                metric=params.metric,
                operator_id=params.operator_id,
            )

        return self._run(_fetch, filename=summary_filename(params.group_by), fallback="Failed to export summary")

    def export_sessions(
        self,
        date_from: str,
        date_to: str,
        *,
        operator_id: Optional[str] = None,
        test_type: Optional[str] = None,
    ) -> ExportResult:
        """Sessions CSV for local calendar dates; the server takes them as-is."""

        def _fetch() -> bytes:
            if parse_local_date(date_from) > parse_local_date(date_to):
                raise ValidationFailure("Start date must not be after end date")
            return self.client.export_sessions_csv(
                start_date=date_from,
                end_date=date_to,
                operator_id=operator_id or None,
                test_type=test_type or None,
            )

        return self._run(
            _fetch, filename=sessions_filename(date_from, date_to), fallback="Failed to export sessions"
        )

    def _require_kind(self) -> RecordingKind:
        if self.kind is None:
            raise ValidationFailure("Recording kind is required for recording exports")
        return self.kind

    def _run(self, fetch: Callable[[], bytes], *, filename: str, fallback: str) -> ExportResult:
        try:
            payload = fetch()
        except Exception as exc:
            return self._failed(exc, filename=filename, fallback=fallback)

        try:
            tmp_path = _write_temp(payload, suffix=Path(filename).suffix)
        except Exception as exc:
            return self._failed(exc, filename=filename, fallback=f"Could not save {filename}")

        try:
            saved = self.sink.save(tmp_path, filename)
        except Exception as exc:
            return self._failed(exc, filename=filename, fallback=f"Could not save {filename}")
        finally:
            tmp_path.unlink(missing_ok=True)

        logger.info("export saved: %s (%s bytes)", saved, len(payload))
        self.last_result = ExportResult(
            status="ok", message="ok", filename=filename, path=saved, size_bytes=len(payload)
        )
        return self.last_result

    def _failed(self, exc: Exception, *, filename: str, fallback: str) -> ExportResult:
        if isinstance(exc, (ReportingError, OSError)):
            logger.warning("export %s failed: %s", filename, exc)
        else:
            logger.error("export %s failed unexpectedly", filename, exc_info=exc)
        self.last_result = ExportResult(
            status="error",
            message=error_message(exc, fallback),
            filename=filename,
            error_type=type(exc).__name__,
            error_message=str(exc),
        )
        return self.last_result


def _check_format(fmt: str) -> str:
    if fmt not in EXPORT_FORMATS:
        raise ValidationFailure(f"Unsupported export format: {fmt}")
    return fmt


def _write_temp(payload: bytes, *, suffix: str) -> Path:
    with tempfile.NamedTemporaryFile("wb", prefix="ergoquipt-", suffix=suffix, delete=False) as fh:
        path = Path(fh.name)
        try:
            fh.write(payload)
        except BaseException:
            fh.close()
            path.unlink(missing_ok=True)
            raise
    return path
