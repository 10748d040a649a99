from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from metrics_engine.models.financials import TargetDirection
from metrics_engine.shared.base import to_optional_float

LinkedMetricType = Literal["metric", "submetric"]


class RockMonthlyTargetRecord(BaseModel):
    id: Optional[str] = None
    rock_id: str
    month: str
    target_value: float

    @field_validator("target_value", mode="before")
    @classmethod
    def _coerce_target_value(cls, value: object) -> float:
        return to_optional_float(value) or 0.0


class RockRecord(BaseModel):
    id: str
    department_id: str
    year: int
    quarter: int
    title: str
    description: Optional[str] = None
    linked_metric_type: Optional[LinkedMetricType] = None
    linked_metric_key: Optional[str] = None
    linked_parent_metric_key: Optional[str] = None
    linked_submetric_name: Optional[str] = None
    target_direction: TargetDirection = "above"
    progress_percentage: float = 0.0
    status: str = "on_track"
    monthly_targets: List[RockMonthlyTargetRecord] = Field(default_factory=list)

    @field_validator("target_direction", mode="before")
    @classmethod
    def _default_direction(cls, value: object) -> object:
        return value or "above"

    @field_validator("progress_percentage", mode="before")
    @classmethod
    def _default_progress(cls, value: object) -> float:
        return to_optional_float(value) or 0.0

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value: object) -> object:
        return value or "on_track"

    @property
    def is_linked(self) -> bool:
        return self.linked_metric_type is not None
