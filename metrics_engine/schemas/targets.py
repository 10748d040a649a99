from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field

from metrics_engine.models.financials import TargetDirection
from metrics_engine.shared.base import BaseSchema


TargetSource = Literal["manual", "forecast"]
PerformanceStatus = Literal["met", "close", "missed", "pending"]
QuarterRollup = Literal["sum", "average"]


class ResolvedTarget(BaseSchema):
    value: float
    direction: TargetDirection
    source: TargetSource


class TargetResolution(BaseSchema):
    department_id: str
    metric_key: str
    period: str
    target: Optional[ResolvedTarget] = None


class TargetUpsertRequest(BaseSchema):
    department_id: str = Field(..., min_length=1)
    metric_key: str = Field(..., min_length=1)
    quarter: int = Field(..., ge=1, le=4)
    year: int = Field(..., ge=2000, le=2100)
    target_value: float
    target_direction: TargetDirection = "above"


class SubMetricTargetUpsertRequest(BaseSchema):
    department_id: str = Field(..., min_length=1)
    parent_metric_key: str = Field(..., min_length=1)
    sub_metric_name: str = Field(..., min_length=1)
    order_index: int = Field(..., ge=0)
    quarter: int = Field(..., ge=1, le=4)
    year: int = Field(..., ge=2000, le=2100)
    target_value: float
    target_direction: TargetDirection = "above"


class SavedTarget(BaseSchema):
    department_id: str
    metric_key: str
    quarter: int
    year: int
    target_value: float
    target_direction: TargetDirection


class PerformanceVerdict(BaseSchema):
    actual: Optional[float] = None
    target: float
    direction: TargetDirection
    variance_pct: Optional[float] = None
    status: PerformanceStatus
