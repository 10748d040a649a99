from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from metrics_engine.api.dependencies import get_targets_service
from metrics_engine.models.financials import TargetDirection
from metrics_engine.schemas.rocks import RockTargetStatus
from metrics_engine.schemas.targets import (
    PerformanceVerdict,
    QuarterRollup,
    SavedTarget,
    SubMetricTargetUpsertRequest,
    TargetResolution,
    TargetUpsertRequest,
)
from metrics_engine.services.targets_service import TargetsService
from metrics_engine.shared.response import ResponseEnvelope, build_meta


router = APIRouter(tags=["targets"])


@router.get("/targets/quarter")
def quarter_target(
    department_id: str = Query(..., alias="departmentId", min_length=1),
    metric_key: str = Query(..., alias="metricKey", min_length=1),
    quarter: int = Query(..., ge=1, le=4),
    year: int = Query(..., ge=2000, le=2100),
    direction: Optional[TargetDirection] = Query(default=None),
    rollup: QuarterRollup = Query(default="sum"),
    service: TargetsService = Depends(get_targets_service),
) -> ResponseEnvelope[TargetResolution]:
    data = service.resolve_quarter(
        department_id, metric_key, quarter, year, direction=direction, rollup=rollup
    )
    meta = build_meta(source="financial_targets", period=data.period, department_id=department_id)
    return ResponseEnvelope(data=data, meta=meta)


@router.get("/targets/month")
def month_target(
    department_id: str = Query(..., alias="departmentId", min_length=1),
    metric_key: str = Query(..., alias="metricKey", min_length=1),
    month: str = Query(...),
    direction: Optional[TargetDirection] = Query(default=None),
    service: TargetsService = Depends(get_targets_service),
) -> ResponseEnvelope[TargetResolution]:
    data = service.resolve_month(department_id, metric_key, month, direction=direction)
    meta = build_meta(source="financial_targets", period=month, department_id=department_id)
    return ResponseEnvelope(data=data, meta=meta)


@router.put("/targets")
def save_target(
    request: TargetUpsertRequest,
    service: TargetsService = Depends(get_targets_service),
) -> ResponseEnvelope[SavedTarget]:
    data = service.upsert_target(request)
    meta = build_meta(
        source="financial_targets",
        period=f"Q{data.quarter} {data.year}",
        department_id=data.department_id,
    )
    return ResponseEnvelope(data=data, meta=meta)


@router.put("/targets/sub-metric")
def save_sub_metric_target(
    request: SubMetricTargetUpsertRequest,
    service: TargetsService = Depends(get_targets_service),
) -> ResponseEnvelope[SavedTarget]:
    data = service.upsert_sub_metric_target(request)
    meta = build_meta(
        source="financial_targets",
        period=f"Q{data.quarter} {data.year}",
        department_id=data.department_id,
    )
    return ResponseEnvelope(data=data, meta=meta)


@router.get("/rocks/status")
def rock_statuses(
    department_id: str = Query(..., alias="departmentId", min_length=1),
    quarter: int = Query(..., ge=1, le=4),
    year: int = Query(..., ge=2000, le=2100),
    service: TargetsService = Depends(get_targets_service),
) -> ResponseEnvelope[List[RockTargetStatus]]:
    data = service.get_rock_statuses(department_id, quarter, year)
    meta = build_meta(source="rocks", period=f"Q{quarter} {year}", department_id=department_id)
    return ResponseEnvelope(data=data, meta=meta)


@router.get("/performance/classify")
def classify_performance(
    target: float = Query(...),
    actual: Optional[float] = Query(default=None),
    direction: TargetDirection = Query(default="above"),
    service: TargetsService = Depends(get_targets_service),
) -> ResponseEnvelope[PerformanceVerdict]:
    data = service.classify(actual, target, direction)
    return ResponseEnvelope(data=data, meta=build_meta(source="computed"))
