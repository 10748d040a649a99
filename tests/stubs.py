from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from metrics_engine.models.financials import (
    DepartmentRecord,
    FinancialEntryRecord,
    FinancialTargetRecord,
    ForecastEntryRecord,
    TargetDirection,
)
from metrics_engine.models.payplans import PayplanScenarioRecord
from metrics_engine.models.rocks import RockRecord


class StubFinancialsRepository:
    def __init__(self) -> None:
        self.departments: List[DepartmentRecord] = []
        self.entries: List[FinancialEntryRecord] = []
        self.targets: List[FinancialTargetRecord] = []
        self.forecasts: Dict[str, List[ForecastEntryRecord]] = {}
        self.entry_loads = 0
        self.saved: List[Dict[str, Any]] = []

    def list_departments(
        self, store_ids: Sequence[str], department_names: Optional[Sequence[str]] = None
    ) -> List[DepartmentRecord]:
        return [
            department
            for department in self.departments
            if department.store_id in store_ids
            and (not department_names or department.name in department_names)
        ]

    def list_financial_entries(
        self, department_ids: Sequence[str], months: Sequence[str]
    ) -> List[FinancialEntryRecord]:
        self.entry_loads += 1
        return [
            entry
            for entry in self.entries
            if entry.department_id in department_ids and entry.month in months
        ]

    def list_financial_targets(
        self, department_id: str, year: int, quarter: Optional[int] = None
    ) -> List[FinancialTargetRecord]:
        return [
            target
            for target in self.targets
            if target.department_id == department_id
            and target.year == year
            and (quarter is None or target.quarter == quarter)
        ]

    def list_forecast_entries(self, department_id: str, forecast_year: int) -> List[ForecastEntryRecord]:
        return [
            entry
            for entry in self.forecasts.get(department_id, [])
            if entry.month.startswith(f"{forecast_year}-")
        ]

    def upsert_target(
        self,
        department_id: str,
        metric_key: str,
        quarter: int,
        year: int,
        value: float,
        direction: TargetDirection,
    ) -> FinancialTargetRecord:
        payload = {
            "department_id": department_id,
            "metric_name": metric_key,
            "quarter": quarter,
            "year": year,
            "target_value": value,
            "target_direction": direction,
        }
        self.saved.append(payload)
        record = FinancialTargetRecord.model_validate(payload)
        # same conflict key as the table: department, metric_name, quarter, year
        self.targets = [
            target
            for target in self.targets
            if (target.department_id, target.metric_name, target.quarter, target.year)
            != (department_id, metric_key, quarter, year)
        ]
        self.targets.append(record)
        return record


class StubRocksRepository:
    def __init__(self) -> None:
        self.rocks: List[RockRecord] = []

    def list_linked_rocks(
        self, department_id: str, year: int, quarter: Optional[int] = None
    ) -> List[RockRecord]:
        return [
            rock
            for rock in self.rocks
            if rock.department_id == department_id
            and rock.year == year
            and (quarter is None or rock.quarter == quarter)
            and rock.is_linked
        ]


class StubPayplansRepository:
    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.last_payload: Optional[Dict[str, Any]] = None

    def _owned(self, scenario_id: str, owner_user_id: str) -> Optional[Dict[str, Any]]:
        row = self.rows.get(scenario_id)
        if row is None or row["user_id"] != owner_user_id:
            return None
        return row

    def list_scenarios(self, owner_user_id: str) -> List[PayplanScenarioRecord]:
        return [
            PayplanScenarioRecord.from_row(row)
            for row in self.rows.values()
            if row["user_id"] == owner_user_id
        ]

    def list_active_scenarios(self, owner_user_id: str) -> List[PayplanScenarioRecord]:
        return [scenario for scenario in self.list_scenarios(owner_user_id) if scenario.is_active]

    def get_scenario(self, scenario_id: str, owner_user_id: str) -> Optional[PayplanScenarioRecord]:
        row = self._owned(scenario_id, owner_user_id)
        return PayplanScenarioRecord.from_row(row) if row else None

    def create_scenario(self, payload: Dict[str, Any]) -> PayplanScenarioRecord:
        self.last_payload = payload
        row = {"id": f"scenario-{len(self.rows) + 1}", "is_active": True, **payload}
        self.rows[row["id"]] = row
        return PayplanScenarioRecord.from_row(row)

    def update_scenario(
        self, scenario_id: str, owner_user_id: str, payload: Dict[str, Any]
    ) -> Optional[PayplanScenarioRecord]:
        self.last_payload = payload
        row = self._owned(scenario_id, owner_user_id)
        if row is None:
            return None
        row.update(payload)
        return PayplanScenarioRecord.from_row(row)

    def delete_scenario(self, scenario_id: str, owner_user_id: str) -> bool:
        if self._owned(scenario_id, owner_user_id) is None:
            return False
        del self.rows[scenario_id]
        return True
