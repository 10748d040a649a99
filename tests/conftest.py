from __future__ import annotations

import os

os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")

from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from metrics_engine.analytics.metric_keys import encode
from metrics_engine.api.dependencies import (
    get_metrics_service,
    get_payplan_service,
    get_targets_service,
)
from metrics_engine.core.errors import NotFoundError
from metrics_engine.main import create_app
from metrics_engine.schemas.metrics import (
    CacheRefreshRequest,
    CacheRefreshResult,
    MetricAggregate,
    MetricCatalogEntry,
    SubMetricBreakdown,
    SubMetricSeries,
)
from metrics_engine.schemas.payplans import (
    CommissionRule,
    PayplanCalculationRequest,
    PayplanCalculationResponse,
    PayplanComputedRow,
    PayplanMetricGroup,
    PayplanScenario,
    PayplanScenarioCreateRequest,
    PayplanScenarioUpdateRequest,
)
from metrics_engine.schemas.rocks import RockMonthStatus, RockTargetStatus
from metrics_engine.schemas.targets import (
    PerformanceVerdict,
    ResolvedTarget,
    SavedTarget,
    SubMetricTargetUpsertRequest,
    TargetResolution,
    TargetUpsertRequest,
)


class FakeMetricsService:
    def get_store_aggregate(
        self,
        store_ids: List[str],
        metric_key: str,
        months: List[str],
        department_names: Optional[List[str]] = None,
        brand: Optional[str] = None,
    ) -> MetricAggregate:
        values = {month: 1000.0 for month in months}
        return MetricAggregate(
            metric_key=metric_key,
            store_ids=store_ids,
            department_names=department_names or [],
            values=values,
            total=sum(values.values()),
        )

    def get_store_aggregates(
        self,
        store_ids: List[str],
        metric_keys: List[str],
        months: List[str],
        department_names: Optional[List[str]] = None,
        brand: Optional[str] = None,
    ) -> List[MetricAggregate]:
        return [
            self.get_store_aggregate(store_ids, metric_key, months, department_names, brand)
            for metric_key in sorted(metric_keys)
        ]

    def get_metric_catalog(self, brand: Optional[str] = None) -> List[MetricCatalogEntry]:
        _ = brand
        return [
            MetricCatalogEntry(
                key="gp_net",
                name="GP Net",
                metric_type="dollar",
                target_direction="above",
                calculated=False,
            ),
            MetricCatalogEntry(
                key="gp_percent",
                name="GP %",
                metric_type="percentage",
                target_direction="above",
                calculated=True,
                components=["gp_net", "total_sales"],
            ),
        ]

    def get_sub_metric_breakdown(
        self, department_id: str, parent_metric_key: str, months: List[str]
    ) -> SubMetricBreakdown:
        return SubMetricBreakdown(
            department_id=department_id,
            parent_metric_key=parent_metric_key,
            names=["Shop Supplies"],
            series=[
                SubMetricSeries(name="Shop Supplies", values={month: 25.0 for month in months})
            ],
            sums={month: 25.0 for month in months},
        )

    def refresh(self, request: CacheRefreshRequest) -> CacheRefreshResult:
        if request.event is not None:
            return CacheRefreshResult(refreshed_departments=[request.event.department_id])
        if request.department_id:
            return CacheRefreshResult(refreshed_departments=[request.department_id])
        return CacheRefreshResult(refreshed_departments=[], all_departments=True)


class FakePayplanService:
    def __init__(self) -> None:
        self.scenarios: Dict[str, PayplanScenario] = {
            "scenario-1": PayplanScenario(
                id="scenario-1",
                owner_user_id="user-1",
                name="Advisor",
                base_salary_annual=60000,
                rules=[CommissionRule(source_metric="labor_revenue", rate=0.03)],
                is_active=True,
                created_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
            )
        }

    def list_scenarios(self, owner_user_id: str) -> List[PayplanScenario]:
        return [s for s in self.scenarios.values() if s.owner_user_id == owner_user_id]

    def get_scenario(self, scenario_id: str, owner_user_id: str) -> PayplanScenario:
        scenario = self.scenarios.get(scenario_id)
        if scenario is None or scenario.owner_user_id != owner_user_id:
            raise NotFoundError("Payplan scenario not found")
        return scenario

    def create_scenario(
        self, owner_user_id: str, request: PayplanScenarioCreateRequest
    ) -> PayplanScenario:
        scenario = PayplanScenario(
            id="scenario-2",
            owner_user_id=owner_user_id,
            name=request.name,
            base_salary_annual=request.base_salary_annual,
            rules=request.rules,
            department_names=request.department_names,
            is_active=True,
        )
        self.scenarios[scenario.id] = scenario
        return scenario

    def update_scenario(
        self, scenario_id: str, owner_user_id: str, request: PayplanScenarioUpdateRequest
    ) -> PayplanScenario:
        scenario = self.get_scenario(scenario_id, owner_user_id)
        updated = scenario.model_copy(update=request.model_dump(exclude_unset=True))
        self.scenarios[scenario_id] = updated
        return updated

    def delete_scenario(self, scenario_id: str, owner_user_id: str) -> None:
        self.get_scenario(scenario_id, owner_user_id)
        del self.scenarios[scenario_id]

    def calculate(
        self, owner_user_id: str, request: PayplanCalculationRequest
    ) -> PayplanCalculationResponse:
        _ = owner_user_id
        months = sorted(set(request.months))
        row = PayplanComputedRow(
            scenario_id="scenario-1",
            scenario_name="Advisor",
            source_metric="labor_revenue",
            type="commission",
            label="↳ Advisor Commission (3.0%)",
            values={month: 1200.0 for month in months},
            total=1200.0 * len(months),
        )
        return PayplanCalculationResponse(
            months=months,
            rows=[row],
            groups=[PayplanMetricGroup(source_metric="labor_revenue", rows=[row])],
        )


class FakeTargetsService:
    def resolve_quarter(self, department_id: str, metric_key: str, quarter: int, year: int, **_: object):
        return TargetResolution(
            department_id=department_id,
            metric_key=metric_key,
            period=f"Q{quarter} {year}",
            target=ResolvedTarget(value=90000, direction="above", source="manual"),
        )

    def resolve_month(self, department_id: str, metric_key: str, month: str, **_: object):
        return TargetResolution(
            department_id=department_id,
            metric_key=metric_key,
            period=month,
            target=ResolvedTarget(value=30000, direction="above", source="forecast"),
        )

    def upsert_target(self, request: TargetUpsertRequest) -> SavedTarget:
        return SavedTarget(
            department_id=request.department_id,
            metric_key=request.metric_key,
            quarter=request.quarter,
            year=request.year,
            target_value=request.target_value,
            target_direction=request.target_direction,
        )

    def upsert_sub_metric_target(self, request: SubMetricTargetUpsertRequest) -> SavedTarget:
        return SavedTarget(
            department_id=request.department_id,
            metric_key=encode(
                request.parent_metric_key, request.order_index, request.sub_metric_name
            ),
            quarter=request.quarter,
            year=request.year,
            target_value=request.target_value,
            target_direction=request.target_direction,
        )

    def get_rock_statuses(self, department_id: str, quarter: int, year: int) -> List[RockTargetStatus]:
        _ = department_id
        return [
            RockTargetStatus(
                rock_id="rock-1",
                title="Grow labor revenue",
                quarter=quarter,
                year=year,
                metric_key="labor_revenue",
                direction="above",
                progress_percentage=40,
                months=[
                    RockMonthStatus(
                        month="2026-01",
                        target_value=100,
                        target_source="manual",
                        actual_value=92,
                        variance_pct=-8,
                        status="close",
                    )
                ],
            )
        ]

    def classify(self, actual: Optional[float], target: float, direction: str) -> PerformanceVerdict:
        return PerformanceVerdict(
            actual=actual,
            target=target,
            direction=direction,
            variance_pct=None,
            status="pending" if actual is None else "met",
        )


@pytest.fixture()
def client() -> TestClient:
    app = create_app()
    payplan_service = FakePayplanService()
    app.dependency_overrides[get_metrics_service] = FakeMetricsService
    app.dependency_overrides[get_payplan_service] = lambda: payplan_service
    app.dependency_overrides[get_targets_service] = FakeTargetsService
    return TestClient(app)
