"""Brand statement layouts and the derived metrics they define.

Each brand lists its statement metrics in display order. Some are stored as
entered; the rest are calculated from other metrics of the same layout:

    ratio       numerator / denominator * 100, 0 when the denominator is 0
    subtract    base - sum(deductions)
    complex     base - sum(deductions) + sum(additions)

A derived metric is always recomputed from its summed components, never summed
itself, so a multi-store GP % is total gross over total sales. A layout lists
every metric after the metrics it is calculated from.
"""
from __future__ import annotations

from typing import Dict, List, Literal, Mapping, Optional, Sequence, Set, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from metrics_engine.models.financials import TargetDirection

MetricType = Literal["dollar", "percentage"]


class RatioCalculation(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["ratio"] = "ratio"
    numerator: str
    denominator: str

    @property
    def operands(self) -> List[str]:
        return [self.numerator, self.denominator]


class SubtractCalculation(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["subtract"] = "subtract"
    base: str
    deductions: List[str] = Field(default_factory=list)

    @property
    def operands(self) -> List[str]:
        return [self.base, *self.deductions]


class ComplexCalculation(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["complex"] = "complex"
    base: str
    deductions: List[str] = Field(default_factory=list)
    additions: List[str] = Field(default_factory=list)

    @property
    def operands(self) -> List[str]:
        return [self.base, *self.deductions, *self.additions]


Calculation = Union[RatioCalculation, SubtractCalculation, ComplexCalculation]


class MetricDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    type: MetricType = "dollar"
    target_direction: TargetDirection = "above"
    calculation: Optional[Calculation] = None

    @property
    def is_calculated(self) -> bool:
        return self.calculation is not None


def _dollar(key: str, name: str, direction: TargetDirection = "above") -> MetricDefinition:
    return MetricDefinition(key=key, name=name, target_direction=direction)


def _ratio(
    key: str, name: str, numerator: str, denominator: str, direction: TargetDirection = "above"
) -> MetricDefinition:
    return MetricDefinition(
        key=key,
        name=name,
        type="percentage",
        target_direction=direction,
        calculation=RatioCalculation(numerator=numerator, denominator=denominator),
    )


def _subtract(
    key: str, name: str, base: str, deductions: Sequence[str], direction: TargetDirection = "above"
) -> MetricDefinition:
    return MetricDefinition(
        key=key,
        name=name,
        target_direction=direction,
        calculation=SubtractCalculation(base=base, deductions=list(deductions)),
    )


_GP_PERCENT = _ratio("gp_percent", "GP %", "gp_net", "total_sales")
_SALES_EXPENSE_PERCENT = _ratio(
    "sales_expense_percent", "Sales Expense %", "sales_expense", "gp_net", "below"
)
_SEMI_FIXED_PERCENT = _ratio(
    "semi_fixed_expense_percent", "Semi Fixed Expense %", "semi_fixed_expense", "gp_net", "below"
)
_RETURN_ON_GROSS = _ratio("return_on_gross", "Return on Gross", "department_profit", "gp_net")

GMC_CHEVROLET_METRICS: Tuple[MetricDefinition, ...] = (
    _dollar("total_sales", "Total Sales"),
    _dollar("gp_net", "GP Net"),
    _GP_PERCENT,
    _dollar("sales_expense", "Sales Expense", "below"),
    _SALES_EXPENSE_PERCENT,
    _dollar("semi_fixed_expense", "Semi Fixed Expense", "below"),
    _SEMI_FIXED_PERCENT,
    _subtract(
        "net_selling_gross", "Net Selling Gross", "gp_net", ["sales_expense", "semi_fixed_expense"]
    ),
    _dollar("total_fixed_expense", "Total Fixed Expense", "below"),
    _subtract(
        "department_profit",
        "Department Profit",
        "gp_net",
        ["sales_expense", "semi_fixed_expense", "total_fixed_expense"],
    ),
    _dollar("parts_transfer", "Parts Transfer"),
    MetricDefinition(
        key="net",
        name="Net Operating Profit",
        calculation=ComplexCalculation(base="department_profit", additions=["parts_transfer"]),
    ),
    _RETURN_ON_GROSS,
)

FORD_METRICS: Tuple[MetricDefinition, ...] = (
    _dollar("total_sales", "Total Sales"),
    _dollar("gp_net", "GP Net"),
    _GP_PERCENT,
    _dollar("sales_expense", "Sales Expense", "below"),
    _SALES_EXPENSE_PERCENT,
    _dollar("adjusted_selling_gross", "Adjusted Selling Gross"),
    _subtract("net_selling_gross", "Net Selling Gross", "gp_net", ["sales_expense"]),
    _dollar("total_fixed_expense", "Total Fixed Expense", "below"),
    _subtract(
        "department_profit", "Department Profit", "gp_net", ["sales_expense", "total_fixed_expense"]
    ),
    _dollar("dealer_salary", "Dealer Salary", "below"),
    _subtract(
        "parts_transfer", "Parts Transfer", "adjusted_selling_gross", ["net_selling_gross"]
    ),
    _subtract(
        "net", "Net Operating Profit", "department_profit", ["dealer_salary", "parts_transfer"]
    ),
    _RETURN_ON_GROSS,
)

NISSAN_METRICS: Tuple[MetricDefinition, ...] = (
    _dollar("total_sales", "Total Sales"),
    _dollar("gp_net", "GP Net"),
    _GP_PERCENT,
    _dollar("sales_expense", "Sales Expense", "below"),
    _SALES_EXPENSE_PERCENT,
    _dollar("total_direct_expenses", "Total Direct Expenses", "below"),
    _subtract(
        "semi_fixed_expense",
        "Semi Fixed Expense",
        "total_direct_expenses",
        ["sales_expense"],
        "below",
    ),
    _SEMI_FIXED_PERCENT,
    _subtract(
        "net_selling_gross", "Net Selling Gross", "gp_net", ["sales_expense", "semi_fixed_expense"]
    ),
    _dollar("total_fixed_expense", "Total Fixed Expense", "below"),
    _subtract(
        "department_profit",
        "Department Profit",
        "gp_net",
        ["sales_expense", "semi_fixed_expense", "total_fixed_expense"],
    ),
    _RETURN_ON_GROSS,
)

# Mazda statements carry no parts transfer or net operating profit lines.
MAZDA_METRICS: Tuple[MetricDefinition, ...] = tuple(
    definition
    for definition in GMC_CHEVROLET_METRICS
    if definition.key not in {"parts_transfer", "net"}
)


def metrics_for_brand(brand: Optional[str]) -> Tuple[MetricDefinition, ...]:
    lowered = (brand or "").lower()
    if "nissan" in lowered:
        return NISSAN_METRICS
    if "ford" in lowered:
        return FORD_METRICS
    if "mazda" in lowered:
        return MAZDA_METRICS
    return GMC_CHEVROLET_METRICS


def _by_key(definitions: Sequence[MetricDefinition]) -> Dict[str, MetricDefinition]:
    return {definition.key: definition for definition in definitions}


def is_calculated_metric(metric_key: str, definitions: Sequence[MetricDefinition]) -> bool:
    definition = _by_key(definitions).get(metric_key)
    return definition is not None and definition.is_calculated


def component_keys(
    metric_keys: Sequence[str], definitions: Sequence[MetricDefinition]
) -> List[str]:
    """Stored metrics needed to produce ``metric_keys``, in first-seen order.

    Keys the layout does not calculate (including sub-metric keys) are their
    own component.
    """
    by_key = _by_key(definitions)
    components: Dict[str, None] = {}
    visiting: Set[str] = set()

    def visit(key: str) -> None:
        definition = by_key.get(key)
        if definition is None or definition.calculation is None:
            components.setdefault(key, None)
            return
        if key in visiting:
            raise ValueError(f"Metric {key!r} is calculated from itself")
        visiting.add(key)
        for operand in definition.calculation.operands:
            visit(operand)
        visiting.discard(key)

    for metric_key in metric_keys:
        visit(metric_key)
    return list(components)


def _evaluate(calculation: Calculation, lookup) -> float:
    if isinstance(calculation, RatioCalculation):
        denominator = lookup(calculation.denominator)
        if denominator == 0:
            return 0.0
        return lookup(calculation.numerator) / denominator * 100
    value = lookup(calculation.base) - sum(lookup(key) for key in calculation.deductions)
    if isinstance(calculation, ComplexCalculation):
        value += sum(lookup(key) for key in calculation.additions)
    return value


def calculate_metrics(
    stored: Mapping[str, float], definitions: Sequence[MetricDefinition]
) -> Dict[str, float]:
    """Every derived metric of the layout from one set of stored values.

    Operands resolve to an already calculated value, then a stored value, then
    0, walking the layout in order.
    """
    calculated: Dict[str, float] = {}

    def lookup(key: str) -> float:
        if key in calculated:
            return calculated[key]
        return stored.get(key, 0.0)

    for definition in definitions:
        if definition.calculation is not None:
            calculated[definition.key] = _evaluate(definition.calculation, lookup)
    return calculated


def metric_value(
    metric_key: str, stored: Mapping[str, float], definitions: Sequence[MetricDefinition]
) -> float:
    if is_calculated_metric(metric_key, definitions):
        return calculate_metrics(stored, definitions)[metric_key]
    return stored.get(metric_key, 0.0)
