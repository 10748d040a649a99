from __future__ import annotations

import logging
from typing import Any, Dict, List

from metrics_engine.analytics.aggregation import MonthlySeries
from metrics_engine.analytics.commission import compute_payplan_rows, group_rows_by_metric
from metrics_engine.core.errors import NotFoundError
from metrics_engine.models.payplans import PayplanScenarioRecord
from metrics_engine.repositories.payplans_repository import PayplansRepository
from metrics_engine.schemas.payplans import (
    CommissionRule,
    PayplanCalculationRequest,
    PayplanCalculationResponse,
    PayplanScenario,
    PayplanScenarioCreateRequest,
    PayplanScenarioUpdateRequest,
)
from metrics_engine.services.metrics_service import MetricsService
from metrics_engine.shared.periods import normalize_months

logger = logging.getLogger(__name__)


class PayplanService:
    def __init__(self, repository: PayplansRepository, metrics_service: MetricsService) -> None:
        self.repository = repository
        self.metrics_service = metrics_service

    def list_scenarios(self, owner_user_id: str) -> List[PayplanScenario]:
        return [self._to_scenario(record) for record in self.repository.list_scenarios(owner_user_id)]

    def get_scenario(self, scenario_id: str, owner_user_id: str) -> PayplanScenario:
        record = self.repository.get_scenario(scenario_id, owner_user_id)
        if record is None:
            raise NotFoundError("Payplan scenario not found")
        return self._to_scenario(record)

    def create_scenario(
        self, owner_user_id: str, request: PayplanScenarioCreateRequest
    ) -> PayplanScenario:
        payload = {
            "user_id": owner_user_id,
            "name": request.name,
            "base_salary_annual": request.base_salary_annual,
            "commission_rules": self._rules_payload(request.rules),
            "department_names": request.department_names,
        }
        record = self.repository.create_scenario(payload)
        logger.info("Created payplan scenario %s for user %s", record.id, owner_user_id)
        return self._to_scenario(record)

    def update_scenario(
        self,
        scenario_id: str,
        owner_user_id: str,
        request: PayplanScenarioUpdateRequest,
    ) -> PayplanScenario:
        payload: Dict[str, Any] = request.model_dump(exclude_unset=True, exclude={"rules"})
        if request.rules is not None:
            payload["commission_rules"] = self._rules_payload(request.rules)
        if not payload:
            return self.get_scenario(scenario_id, owner_user_id)
        record = self.repository.update_scenario(scenario_id, owner_user_id, payload)
        if record is None:
            raise NotFoundError("Payplan scenario not found")
        return self._to_scenario(record)

    def delete_scenario(self, scenario_id: str, owner_user_id: str) -> None:
        # rules live inside the scenario row and go with it
        if not self.repository.delete_scenario(scenario_id, owner_user_id):
            raise NotFoundError("Payplan scenario not found")
        logger.info("Deleted payplan scenario %s for user %s", scenario_id, owner_user_id)

    def calculate(
        self, owner_user_id: str, request: PayplanCalculationRequest
    ) -> PayplanCalculationResponse:
        months = normalize_months(request.months)
        scenarios = [
            scenario
            for scenario in self.repository.list_active_scenarios(owner_user_id)
            if scenario.is_active and scenario.rules
        ]
        series_by_scenario: Dict[str, Dict[str, MonthlySeries]] = {}
        for scenario in scenarios:
            source_metrics = [rule.source_metric for rule in scenario.rules]
            series_by_scenario[scenario.id] = self.metrics_service.aggregate_series(
                request.store_ids,
                source_metrics,
                months,
                department_names=scenario.department_names or None,
                brand=request.brand,
            )
        rows = compute_payplan_rows(scenarios, series_by_scenario, months)
        return PayplanCalculationResponse(
            months=months,
            rows=rows,
            groups=group_rows_by_metric(rows),
        )

    @staticmethod
    def _rules_payload(rules: List[CommissionRule]) -> Dict[str, Any]:
        return {"rules": [rule.model_dump(exclude_none=True) for rule in rules]}

    @staticmethod
    def _to_scenario(record: PayplanScenarioRecord) -> PayplanScenario:
        return PayplanScenario(
            id=record.id,
            owner_user_id=record.user_id,
            name=record.name,
            base_salary_annual=record.base_salary_annual,
            rules=[CommissionRule.model_validate(rule.model_dump()) for rule in record.rules],
            department_names=record.department_names,
            is_active=record.is_active,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
