from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator

from metrics_engine.shared.base import to_optional_float

TargetDirection = Literal["above", "below"]


class DepartmentRecord(BaseModel):
    id: str
    name: str
    store_id: Optional[str] = None


class FinancialEntryRecord(BaseModel):
    department_id: str
    store_id: Optional[str] = None
    metric_name: str
    month: str
    value: Optional[float] = None

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, value: object) -> Optional[float]:
        return to_optional_float(value)


class FinancialTargetRecord(BaseModel):
    department_id: str
    metric_name: str
    quarter: int
    year: int
    target_value: float = 0.0
    target_direction: TargetDirection = "above"
    updated_at: Optional[datetime] = None

    @field_validator("target_value", mode="before")
    @classmethod
    def _coerce_target_value(cls, value: object) -> float:
        return to_optional_float(value) or 0.0

    @field_validator("target_direction", mode="before")
    @classmethod
    def _default_direction(cls, value: object) -> object:
        return value or "above"


class ForecastRecord(BaseModel):
    id: str
    department_id: str
    forecast_year: int


class ForecastEntryRecord(BaseModel):
    forecast_id: Optional[str] = None
    metric_name: str
    month: str
    forecast_value: Optional[float] = None

    @field_validator("forecast_value", mode="before")
    @classmethod
    def _coerce_forecast_value(cls, value: object) -> Optional[float]:
        return to_optional_float(value)
