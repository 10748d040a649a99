from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import Field

from metrics_engine.shared.base import BaseSchema


ChangeEventType = Literal["INSERT", "UPDATE", "DELETE"]


class MetricAggregate(BaseSchema):
    metric_key: str
    store_ids: List[str]
    department_names: List[str] = Field(default_factory=list)
    values: Dict[str, float]
    total: float


class MetricCatalogEntry(BaseSchema):
    key: str
    name: str
    metric_type: Literal["dollar", "percentage"]
    target_direction: Literal["above", "below"]
    calculated: bool
    components: List[str] = Field(default_factory=list)


class SubMetricSeries(BaseSchema):
    name: str
    values: Dict[str, Optional[float]]


class SubMetricBreakdown(BaseSchema):
    department_id: str
    parent_metric_key: str
    names: List[str]
    series: List[SubMetricSeries]
    sums: Dict[str, Optional[float]]


class FinancialChangeEvent(BaseSchema):
    event_type: ChangeEventType
    department_id: str = Field(..., min_length=1)
    metric_name: Optional[str] = None
    month: Optional[str] = None


class CacheRefreshRequest(BaseSchema):
    department_id: Optional[str] = None
    event: Optional[FinancialChangeEvent] = None


class CacheRefreshResult(BaseSchema):
    refreshed_departments: List[str]
    all_departments: bool = False
