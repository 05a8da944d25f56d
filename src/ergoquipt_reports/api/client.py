from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from pydantic import ValidationError

from ergoquipt_reports.api.models import (
    ExportFormat,
    GlobalSummary,
    OperatorAccount,
    OperatorSummary,
    RecordingKind,
    RecordingPage,
    TimeseriesSummary,
)
from ergoquipt_reports.errors import ApiError, NetworkFailure
from ergoquipt_reports.query.range import format_utc_iso
from ergoquipt_reports.session import SessionStore

logger = logging.getLogger(__name__)


def _extract_detail(resp: requests.Response) -> Optional[str]:
    """Pull the human-readable `detail` out of an error body, if there is one."""

    try:
        body = resp.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    detail = body.get("detail")
    if isinstance(detail, str) and detail.strip():
        return detail
    return None


def _range_params(from_utc: Optional[datetime], to_utc: Optional[datetime]) -> Dict[str, Any]:
    return {"from_time": format_utc_iso(from_utc), "to_time": format_utc_iso(to_utc)}


class ConsoleApiClient:
    """Thin requests-based client for the console's admin endpoints.

    Notes:
    - The bearer token is read from the injected session store on every call.
    - A 401 clears the stored token; the error still propagates.
    - Parameters whose value is None are not sent.
    - No retries: callers re-trigger failed actions manually.
    """

    def __init__(
        self,
        base_url: str,
        session_store: SessionStore,
        *,
        timeout_s: float = 30.0,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session_store = session_store
        self.timeout_s = timeout_s
        self.http = http or requests.Session()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        headers = {"Accept": "application/json"}
        token = self.session_store.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        # requests' timeout can be (connect, read)
        timeout = (min(5.0, float(self.timeout_s)), float(self.timeout_s))

        try:
            resp = self.http.request(
                method, url, params=clean_params, json=json, headers=headers, timeout=timeout
            )
        except requests.Timeout as exc:
            logger.warning("%s %s timed out after %ss", method, path, self.timeout_s)
            raise NetworkFailure(f"Request timed out after {self.timeout_s:g}s") from exc
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise NetworkFailure(f"{type(exc).__name__}: {exc}") from exc

        if resp.status_code == 401:
            self.session_store.clear_token()

        if not 200 <= resp.status_code < 300:
            detail = _extract_detail(resp)
            logger.warning("%s %s -> HTTP %s (%s)", method, path, resp.status_code, detail)
            raise ApiError(resp.status_code, detail)

        return resp

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        resp = self._request("GET", path, params=params)
        try:
            return resp.json()
        except ValueError as exc:
            raise NetworkFailure(f"Invalid JSON from {path}: {exc}") from exc

    def _parse(self, model: Any, payload: Any, path: str) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise NetworkFailure(f"Unexpected response shape from {path}: {exc}") from exc

    # Recordings

    def list_recordings(
        self,
        kind: RecordingKind,
        *,
        from_utc: Optional[datetime],
        to_utc: Optional[datetime],
        operator_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> RecordingPage:
        path = f"/api/v2/admin/{kind}/recordings"
        params = {"operator_id": operator_id, "limit": limit, "offset": offset}
        params.update(_range_params(from_utc, to_utc))
        payload = self._get_json(path, params)
        # the server may answer null for an empty listing
        return self._parse(RecordingPage, payload or {}, path)

    def download_recording(self, kind: RecordingKind, recording_id: str, fmt: ExportFormat) -> bytes:
        resp = self._request(
            "GET", f"/api/v2/admin/{kind}/recordings/{quote(recording_id, safe='')}/download", params={"format": fmt}
        )
        return resp.content

    def download_recordings_bulk(self, kind: RecordingKind, recording_ids: List[str], fmt: ExportFormat) -> bytes:
        resp = self._request(
            "POST",
            f"/api/v2/admin/{kind}/recordings/download",
            json={"recording_ids": list(recording_ids), "format": fmt},
        )
        return resp.content

    # Summary

    def get_summary_global(self, *, from_utc: datetime, to_utc: datetime) -> GlobalSummary:
        path = "/api/v2/admin/summary/global"
        return self._parse(GlobalSummary, self._get_json(path, _range_params(from_utc, to_utc)), path)

    def get_summary_by_operator(
        self, *, from_utc: datetime, to_utc: datetime, operator_id: Optional[str] = None
    ) -> List[OperatorSummary]:
        path = "/api/v2/admin/summary/operators"
        params = _range_params(from_utc, to_utc)
        params["operator_id"] = operator_id
        payload = self._get_json(path, params)
        items = payload.get("items") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise NetworkFailure(f"Unexpected response shape from {path}: items is not a list")
        return [self._parse(OperatorSummary, item, path) for item in items]

    def get_summary_timeseries(
        self,
        *,
        from_utc: datetime,
        to_utc: datetime,
        group_by: str,
        metric: str,
        operator_id: Optional[str] = None,
    ) -> TimeseriesSummary:
        path = "/api/v2/admin/summary/timeseries"
        params = _range_params(from_utc, to_utc)
        params.update({"group_by": group_by, "metric": metric, "operator_id": operator_id})
        return self._parse(TimeseriesSummary, self._get_json(path, params), path)

    def export_summary_csv(
        self,
        *,
        from_utc: datetime,
        to_utc: datetime,
        group_by: str,
        metric: str,
        operator_id: Optional[str] = None,
    ) -> bytes:
        params = _range_params(from_utc, to_utc)
        params.update({"group_by": group_by, "metric": metric, "operator_id": operator_id})
        resp = self._request("GET", "/api/v2/admin/summary/export.csv", params=params)
        return resp.content

    def export_sessions_csv(
        self,
        *,
        start_date: str,
        end_date: str,
        operator_id: Optional[str] = None,
        test_type: Optional[str] = None,
    ) -> bytes:
        # v1 endpoint; takes local calendar dates, not UTC instants
        params = {
            "start_date": start_date,
            "end_date": end_date,
            "operator_id": operator_id,
            "test_type": test_type,
        }
        resp = self._request("GET", "/api/v1/admin/export/sessions.csv", params=params)
        return resp.content

    # Misc

    def list_operators(self, *, page: int = 1, limit: int = 100) -> List[OperatorAccount]:
        path = "/api/v1/admin/users"
        payload = self._get_json(path, {"role": "operator", "page": page, "limit": limit})
        if not isinstance(payload, list):
            raise NetworkFailure(f"Unexpected response shape from {path}: expected a list")
        return [self._parse(OperatorAccount, item, path) for item in payload]

    def health_check(self) -> Dict[str, Any]:
        payload = self._get_json("/health")
        return payload if isinstance(payload, dict) else {"status": payload}
