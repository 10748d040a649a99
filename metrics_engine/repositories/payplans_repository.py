from __future__ import annotations

from typing import Any, Dict, List, Optional

from metrics_engine.core.supabase import SupabaseClient
from metrics_engine.models.payplans import PayplanScenarioRecord

SCENARIO_COLUMNS = (
    "id,user_id,name,base_salary_annual,commission_rules,department_names,"
    "is_active,created_at,updated_at"
)


class PayplansRepository:
    def __init__(self) -> None:
        self.client = SupabaseClient()

    def list_scenarios(self, owner_user_id: str) -> List[PayplanScenarioRecord]:
        rows = self.client.select_all(
            table="payplan_scenarios",
            select=SCENARIO_COLUMNS,
            filters=[("user_id", f"eq.{owner_user_id}")],
            order="created_at.desc,id.asc",
        )
        return [PayplanScenarioRecord.from_row(row) for row in rows]

    def list_active_scenarios(self, owner_user_id: str) -> List[PayplanScenarioRecord]:
        rows = self.client.select_all(
            table="payplan_scenarios",
            select=SCENARIO_COLUMNS,
            filters=[("user_id", f"eq.{owner_user_id}"), ("is_active", "eq.true")],
            order="created_at.desc,id.asc",
        )
        return [PayplanScenarioRecord.from_row(row) for row in rows]

    def get_scenario(self, scenario_id: str, owner_user_id: str) -> Optional[PayplanScenarioRecord]:
        rows, _ = self.client.select(
            table="payplan_scenarios",
            select=SCENARIO_COLUMNS,
            filters=[("id", f"eq.{scenario_id}"), ("user_id", f"eq.{owner_user_id}")],
            limit=1,
        )
        if not rows:
            return None
        return PayplanScenarioRecord.from_row(rows[0])

    def create_scenario(self, payload: Dict[str, Any]) -> PayplanScenarioRecord:
        rows = self.client.insert(table="payplan_scenarios", payload=payload)
        return PayplanScenarioRecord.from_row(rows[0])

    def update_scenario(
        self, scenario_id: str, owner_user_id: str, payload: Dict[str, Any]
    ) -> Optional[PayplanScenarioRecord]:
        rows = self.client.update(
            table="payplan_scenarios",
            payload=payload,
            filters=[("id", f"eq.{scenario_id}"), ("user_id", f"eq.{owner_user_id}")],
        )
        if not rows:
            return None
        return PayplanScenarioRecord.from_row(rows[0])

    def delete_scenario(self, scenario_id: str, owner_user_id: str) -> bool:
        rows = self.client.delete(
            table="payplan_scenarios",
            filters=[("id", f"eq.{scenario_id}"), ("user_id", f"eq.{owner_user_id}")],
        )
        return bool(rows)
