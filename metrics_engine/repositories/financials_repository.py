from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from metrics_engine.core.supabase import Filters, SupabaseClient, in_filter
from metrics_engine.models.financials import (
    DepartmentRecord,
    FinancialEntryRecord,
    FinancialTargetRecord,
    ForecastEntryRecord,
    ForecastRecord,
    TargetDirection,
)

TARGETS_CONFLICT_KEY = "department_id,metric_name,quarter,year"


class FinancialsRepository:
    def __init__(self) -> None:
        self.client = SupabaseClient()

    def list_departments(
        self,
        store_ids: Sequence[str],
        department_names: Optional[Sequence[str]] = None,
    ) -> List[DepartmentRecord]:
        if not store_ids:
            return []
        filters: Filters = [("store_id", in_filter(store_ids))]
        if department_names:
            filters.append(("name", in_filter(department_names)))
        rows = self.client.select_all(
            table="departments",
            select="id,name,store_id",
            filters=filters,
            order="store_id.asc,name.asc,id.asc",
        )
        return [DepartmentRecord.model_validate(row) for row in rows]

    def list_financial_entries(
        self,
        department_ids: Sequence[str],
        months: Sequence[str],
    ) -> List[FinancialEntryRecord]:
        if not department_ids or not months:
            return []
        filters: Filters = [
            ("department_id", in_filter(department_ids)),
            ("month", in_filter(months)),
        ]
        rows = self.client.select_all(
            table="financial_entries",
            select="department_id,metric_name,month,value,departments(store_id)",
            filters=filters,
            order="month.asc,metric_name.asc,department_id.asc",
        )
        return [self._to_entry(row) for row in rows]

    def list_financial_targets(
        self,
        department_id: str,
        year: int,
        quarter: Optional[int] = None,
    ) -> List[FinancialTargetRecord]:
        filters: Filters = [
            ("department_id", f"eq.{department_id}"),
            ("year", f"eq.{year}"),
        ]
        if quarter is not None:
            filters.append(("quarter", f"eq.{quarter}"))
        rows = self.client.select_all(
            table="financial_targets",
            select=(
                "department_id,metric_name,quarter,year,target_value,target_direction,updated_at"
            ),
            filters=filters,
            order="quarter.asc,metric_name.asc",
        )
        return [FinancialTargetRecord.model_validate(row) for row in rows]

    def get_forecast(self, department_id: str, forecast_year: int) -> Optional[ForecastRecord]:
        rows, _ = self.client.select(
            table="department_forecasts",
            select="id,department_id,forecast_year",
            filters=[
                ("department_id", f"eq.{department_id}"),
                ("forecast_year", f"eq.{forecast_year}"),
            ],
            limit=1,
        )
        if not rows:
            return None
        return ForecastRecord.model_validate(rows[0])

    def list_forecast_entries(
        self, department_id: str, forecast_year: int
    ) -> List[ForecastEntryRecord]:
        forecast = self.get_forecast(department_id, forecast_year)
        if forecast is None:
            return []
        rows = self.client.select_all(
            table="forecast_entries",
            select="forecast_id,metric_name,month,forecast_value",
            filters=[
                ("forecast_id", f"eq.{forecast.id}"),
                ("forecast_value", "not.is.null"),
            ],
            order="month.asc,metric_name.asc",
        )
        return [ForecastEntryRecord.model_validate(row) for row in rows]

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
        rows = self.client.insert(
            table="financial_targets",
            payload=payload,
            upsert=True,
            on_conflict=TARGETS_CONFLICT_KEY,
        )
        return FinancialTargetRecord.model_validate(rows[0] if rows else payload)

    @staticmethod
    def _to_entry(row: Dict[str, Any]) -> FinancialEntryRecord:
        department = row.get("departments") or {}
        return FinancialEntryRecord(
            department_id=row["department_id"],
            store_id=department.get("store_id") if isinstance(department, dict) else None,
            metric_name=row["metric_name"],
            month=row["month"],
            value=row.get("value"),
        )
