from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import Field, model_validator

from metrics_engine.shared.base import BaseSchema


PayplanRowType = Literal["commission", "base_salary", "total_comp"]


class CommissionRule(BaseSchema):
    source_metric: str = Field(..., min_length=1)
    rate: float
    min_threshold: Optional[float] = None
    max_threshold: Optional[float] = None
    description: Optional[str] = None

    @model_validator(mode="after")
    def _check_thresholds(self) -> "CommissionRule":
        if (
            self.min_threshold is not None
            and self.max_threshold is not None
            and self.min_threshold > self.max_threshold
        ):
            raise ValueError("min_threshold must not exceed max_threshold")
        return self


class PayplanScenario(BaseSchema):
    id: str
    owner_user_id: str
    name: str
    base_salary_annual: float
    rules: List[CommissionRule] = Field(default_factory=list)
    department_names: List[str] = Field(default_factory=list)
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PayplanScenarioCreateRequest(BaseSchema):
    name: str = Field(..., min_length=1, max_length=200)
    base_salary_annual: float = Field(default=0.0, ge=0)
    rules: List[CommissionRule] = Field(default_factory=list)
    department_names: List[str] = Field(default_factory=list)


class PayplanScenarioUpdateRequest(BaseSchema):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    base_salary_annual: Optional[float] = Field(default=None, ge=0)
    rules: Optional[List[CommissionRule]] = None
    department_names: Optional[List[str]] = None
    is_active: Optional[bool] = None


class PayplanCalculationRequest(BaseSchema):
    store_ids: List[str] = Field(default_factory=list)
    months: List[str] = Field(..., min_length=1, max_length=36)
    brand: Optional[str] = None


class PayplanComputedRow(BaseSchema):
    scenario_id: str
    scenario_name: str
    source_metric: str
    type: PayplanRowType
    label: str
    values: Dict[str, float]
    total: float


class PayplanMetricGroup(BaseSchema):
    source_metric: str
    rows: List[PayplanComputedRow]


class PayplanCalculationResponse(BaseSchema):
    months: List[str]
    rows: List[PayplanComputedRow]
    groups: List[PayplanMetricGroup]
