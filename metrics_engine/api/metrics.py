from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from metrics_engine.api.dependencies import get_metrics_service
from metrics_engine.core.errors import BadRequestError
from metrics_engine.schemas.metrics import (
    CacheRefreshRequest,
    CacheRefreshResult,
    MetricAggregate,
    MetricCatalogEntry,
    SubMetricBreakdown,
)
from metrics_engine.services.metrics_service import MetricsService
from metrics_engine.shared.periods import months_between
from metrics_engine.shared.response import ResponseEnvelope, build_meta


router = APIRouter(prefix="/metrics", tags=["metrics"])


def get_months(
    start_month: str = Query(..., alias="startMonth"),
    end_month: Optional[str] = Query(default=None, alias="endMonth"),
) -> List[str]:
    return months_between(start_month, end_month or start_month)


@router.get("/aggregate")
def metric_aggregate(
    metric_key: str = Query(..., alias="metricKey", min_length=1),
    store_ids: Optional[List[str]] = Query(default=None, alias="storeId"),
    department_names: Optional[List[str]] = Query(default=None, alias="departmentName"),
    brand: Optional[str] = Query(default=None),
    months: List[str] = Depends(get_months),
    service: MetricsService = Depends(get_metrics_service),
) -> ResponseEnvelope[MetricAggregate]:
    data = service.get_store_aggregate(
        store_ids or [],
        metric_key,
        months,
        department_names=department_names or None,
        brand=brand,
    )
    meta = build_meta(source="financial_entries", period=f"{months[0]}..{months[-1]}")
    return ResponseEnvelope(data=data, meta=meta)


@router.get("/aggregates")
def metric_aggregates(
    metric_keys: List[str] = Query(..., alias="metricKey"),
    store_ids: Optional[List[str]] = Query(default=None, alias="storeId"),
    department_names: Optional[List[str]] = Query(default=None, alias="departmentName"),
    brand: Optional[str] = Query(default=None),
    months: List[str] = Depends(get_months),
    service: MetricsService = Depends(get_metrics_service),
) -> ResponseEnvelope[List[MetricAggregate]]:
    data = service.get_store_aggregates(
        store_ids or [],
        metric_keys,
        months,
        department_names=department_names or None,
        brand=brand,
    )
    meta = build_meta(source="financial_entries", period=f"{months[0]}..{months[-1]}")
    return ResponseEnvelope(data=data, meta=meta)


@router.get("/catalog")
def metric_catalog(
    brand: Optional[str] = Query(default=None),
    service: MetricsService = Depends(get_metrics_service),
) -> ResponseEnvelope[List[MetricCatalogEntry]]:
    data = service.get_metric_catalog(brand)
    return ResponseEnvelope(data=data, meta=build_meta(source="metric_catalog"))


@router.get("/sub-metrics")
def sub_metric_breakdown(
    department_id: str = Query(..., alias="departmentId", min_length=1),
    parent_metric_key: str = Query(..., alias="parentMetricKey", min_length=1),
    months: List[str] = Depends(get_months),
    service: MetricsService = Depends(get_metrics_service),
) -> ResponseEnvelope[SubMetricBreakdown]:
    data = service.get_sub_metric_breakdown(department_id, parent_metric_key, months)
    meta = build_meta(
        source="financial_entries",
        period=f"{months[0]}..{months[-1]}",
        department_id=department_id,
    )
    return ResponseEnvelope(data=data, meta=meta)


@router.post("/refresh")
def refresh_metrics_cache(
    request: CacheRefreshRequest,
    service: MetricsService = Depends(get_metrics_service),
) -> ResponseEnvelope[CacheRefreshResult]:
    if request.event is not None and request.department_id:
        if request.event.department_id != request.department_id:
            raise BadRequestError("Event department does not match departmentId")
    data = service.refresh(request)
    return ResponseEnvelope(data=data, meta=build_meta(source="cache", period="now"))
