from __future__ import annotations

import json
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from metrics_engine.shared.base import to_optional_float


class CommissionRuleRecord(BaseModel):
    source_metric: str
    rate: float
    min_threshold: Optional[float] = None
    max_threshold: Optional[float] = None
    description: Optional[str] = None


class PayplanScenarioRecord(BaseModel):
    id: str
    user_id: str
    name: str
    base_salary_annual: float = 0.0
    rules: List[CommissionRuleRecord] = Field(default_factory=list)
    department_names: List[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("base_salary_annual", mode="before")
    @classmethod
    def _coerce_salary(cls, value: object) -> float:
        return to_optional_float(value) or 0.0

    @field_validator("department_names", mode="before")
    @classmethod
    def _default_department_names(cls, value: object) -> object:
        return value or []

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PayplanScenarioRecord":
        payload = dict(row)
        payload["rules"] = parse_commission_rules(payload.pop("commission_rules", None))
        return cls.model_validate(payload)


def parse_commission_rules(value: Any) -> List[CommissionRuleRecord]:
    """Read the ``{"rules": [...]}`` JSON column; anything else means no rules."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    if not isinstance(value, dict):
        return []
    rules = value.get("rules")
    if not isinstance(rules, list):
        return []
    return [CommissionRuleRecord.model_validate(rule) for rule in rules if isinstance(rule, dict)]
