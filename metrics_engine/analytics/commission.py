from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from metrics_engine.analytics.aggregation import MonthlySeries
from metrics_engine.models.payplans import CommissionRuleRecord, PayplanScenarioRecord
from metrics_engine.schemas.payplans import PayplanComputedRow, PayplanMetricGroup

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12


def evaluate_rule(rule: CommissionRuleRecord, metric_value: Optional[float]) -> float:
    """Commission for one month of an aggregated source metric.

    Above ``max_threshold`` the payout is capped at ``max_threshold * rate``;
    below ``min_threshold`` nothing is paid. The result is never negative.
    """
    value = metric_value or 0.0
    if rule.min_threshold is not None and value < rule.min_threshold:
        commission = 0.0
    elif rule.max_threshold is not None and value > rule.max_threshold:
        commission = rule.max_threshold * rule.rate
    else:
        commission = value * rule.rate
    return max(commission, 0.0)


def monthly_base_salary(scenario: PayplanScenarioRecord) -> float:
    return scenario.base_salary_annual / MONTHS_PER_YEAR


def _row(
    scenario: PayplanScenarioRecord,
    rule: CommissionRuleRecord,
    row_type: str,
    label: str,
    values: Dict[str, float],
) -> PayplanComputedRow:
    return PayplanComputedRow(
        scenario_id=scenario.id,
        scenario_name=scenario.name,
        source_metric=rule.source_metric,
        type=row_type,
        label=label,
        values=values,
        total=sum(values.values()),
    )


def compute_rule_rows(
    scenario: PayplanScenarioRecord,
    rule: CommissionRuleRecord,
    metric_series: Optional[MonthlySeries],
    months: Sequence[str],
) -> List[PayplanComputedRow]:
    series = metric_series or {}
    base = monthly_base_salary(scenario)
    commission_values: Dict[str, float] = {}
    base_values: Dict[str, float] = {}
    total_values: Dict[str, float] = {}
    for month in months:
        commission = evaluate_rule(rule, series.get(month))
        commission_values[month] = commission
        base_values[month] = base
        total_values[month] = commission + base

    rate_label = f"{rule.rate * 100:.1f}%"
    return [
        _row(scenario, rule, "commission", f"↳ {scenario.name} Commission ({rate_label})", commission_values),
        _row(scenario, rule, "base_salary", f"↳ {scenario.name} Base Salary", base_values),
        _row(scenario, rule, "total_comp", f"↳ {scenario.name} Total Comp", total_values),
    ]


def compute_scenario_rows(
    scenario: PayplanScenarioRecord,
    metric_series: Mapping[str, MonthlySeries],
    months: Sequence[str],
) -> List[PayplanComputedRow]:
    """Row triples for every rule of one scenario, in rule order.

    ``metric_series`` maps each rule's source metric to its aggregated monthly
    values. Inactive scenarios and scenarios without rules produce no rows.
    """
    if not scenario.is_active:
        logger.debug("Skipping inactive payplan scenario %s", scenario.id)
        return []
    if not scenario.rules:
        logger.debug("Skipping payplan scenario %s with no commission rules", scenario.id)
        return []
    rows: List[PayplanComputedRow] = []
    for rule in scenario.rules:
        rows.extend(compute_rule_rows(scenario, rule, metric_series.get(rule.source_metric), months))
    return rows


def compute_payplan_rows(
    scenarios: Iterable[PayplanScenarioRecord],
    metric_series: Mapping[str, Mapping[str, MonthlySeries]],
    months: Sequence[str],
) -> List[PayplanComputedRow]:
    """Rows for several scenarios; ``metric_series`` is keyed by scenario id."""
    if not months:
        return []
    rows: List[PayplanComputedRow] = []
    for scenario in scenarios:
        rows.extend(compute_scenario_rows(scenario, metric_series.get(scenario.id, {}), months))
    return rows


def group_rows_by_metric(rows: Iterable[PayplanComputedRow]) -> List[PayplanMetricGroup]:
    grouped: Dict[str, List[PayplanComputedRow]] = {}
    for row in rows:
        grouped.setdefault(row.source_metric, []).append(row)
    return [PayplanMetricGroup(source_metric=metric, rows=items) for metric, items in grouped.items()]
