from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

RecordingKind = Literal["tympani", "hrv"]
ExportFormat = Literal["csv", "json"]


class _ReadOnly(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class RespondentInfo(_ReadOnly):
    name: str = Field(default="")
    local_id: Optional[int] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    height: Optional[float] = None
    weight: Optional[float] = None


class RecordingSummary(_ReadOnly):
    """One bulk-submitted recording batch, as listed by the console."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str
    label: str = Field(default="")
    operator_id: str
    operator_name: Optional[str] = None
    respondent: RespondentInfo = Field(default_factory=RespondentInfo)
    time_start: datetime
    time_end: datetime
    sample_count: int = Field(default=0, alias="count")
    created_at: datetime

    @property
    def operator_display(self) -> str:
        return self.operator_name or self.operator_id

    @property
    def respondent_descriptor(self) -> str:
        return self.respondent.name


class RecordingPage(_ReadOnly):
    items: List[RecordingSummary] = Field(default_factory=list)
    total: int = Field(default=0)


class GlobalSummary(_ReadOnly):
    tympani_count: int = 0
    hrv_count: int = 0
    operators_active: int = 0


class OperatorSummary(_ReadOnly):
    operator_id: str
    operator_name: str = Field(default="")
    tympani_count: int = 0
    hrv_count: int = 0


class SeriesPoint(_ReadOnly):
    period: str
    tympani_count: int = 0
    hrv_count: int = 0


class TimeseriesSummary(_ReadOnly):
    group_by: Literal["day", "week", "month"]
    series: List[SeriesPoint] = Field(default_factory=list)


class OperatorAccount(_ReadOnly):
    id: str
    username: str = Field(default="")
    full_name: str = Field(default="")
    status: Optional[str] = None
