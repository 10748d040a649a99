from __future__ import annotations

from typing import List, Optional

from metrics_engine.models.financials import TargetDirection
from metrics_engine.schemas.targets import PerformanceStatus, TargetSource
from metrics_engine.shared.base import BaseSchema


class RockMonthStatus(BaseSchema):
    month: str
    target_value: Optional[float] = None
    target_source: Optional[TargetSource] = None
    actual_value: Optional[float] = None
    variance_pct: Optional[float] = None
    status: PerformanceStatus


class RockTargetStatus(BaseSchema):
    rock_id: str
    title: str
    quarter: int
    year: int
    metric_key: str
    direction: TargetDirection
    progress_percentage: float
    months: List[RockMonthStatus]
