from __future__ import annotations

import pytest

from metrics_engine.analytics.commission import (
    compute_payplan_rows,
    compute_scenario_rows,
    evaluate_rule,
    group_rows_by_metric,
)
from metrics_engine.models.payplans import (
    CommissionRuleRecord,
    PayplanScenarioRecord,
    parse_commission_rules,
)

MONTHS = ["2026-01", "2026-02", "2026-03"]


def _scenario(**overrides) -> PayplanScenarioRecord:
    payload = {
        "id": "scenario-1",
        "user_id": "user-1",
        "name": "Advisor",
        "base_salary_annual": 60000,
        "rules": [CommissionRuleRecord(source_metric="labor_revenue", rate=0.03)],
    }
    payload.update(overrides)
    return PayplanScenarioRecord(**payload)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(500, 0.0), (10000, 250.0), (2000, 100.0), (None, 0.0)],
)
def test_thresholds_clamp_commission(value, expected) -> None:
    rule = CommissionRuleRecord(
        source_metric="labor_revenue", rate=0.05, min_threshold=1000, max_threshold=5000
    )
    assert evaluate_rule(rule, value) == pytest.approx(expected)


def test_commission_is_never_negative() -> None:
    assert evaluate_rule(CommissionRuleRecord(source_metric="gp", rate=0.1), -4000) == 0.0
    assert evaluate_rule(CommissionRuleRecord(source_metric="gp", rate=-0.1), 4000) == 0.0


def test_end_to_end_scenario_rows() -> None:
    scenario = _scenario()
    series = {"labor_revenue": {"2026-01": 0.0, "2026-02": 0.0, "2026-03": 40000.0}}
    commission, base, total = compute_scenario_rows(scenario, series, MONTHS)

    assert commission.type == "commission"
    assert commission.label == "↳ Advisor Commission (3.0%)"
    assert commission.values["2026-03"] == pytest.approx(1200)
    assert base.label == "↳ Advisor Base Salary"
    assert base.values["2026-03"] == pytest.approx(5000)
    assert total.label == "↳ Advisor Total Comp"
    assert total.values["2026-03"] == pytest.approx(6200)
    assert total.total == pytest.approx(3 * 5000 + 1200)


def test_rules_produce_independent_row_triples() -> None:
    scenario = _scenario(
        rules=[
            CommissionRuleRecord(source_metric="labor_revenue", rate=0.03),
            CommissionRuleRecord(source_metric="parts_gross", rate=0.1),
        ]
    )
    series = {
        "labor_revenue": {month: 1000.0 for month in MONTHS},
        "parts_gross": {month: 200.0 for month in MONTHS},
    }
    rows = compute_scenario_rows(scenario, series, MONTHS)
    assert len(rows) == 6
    groups = group_rows_by_metric(rows)
    assert [group.source_metric for group in groups] == ["labor_revenue", "parts_gross"]
    assert groups[1].rows[0].values["2026-01"] == pytest.approx(20)


def test_inactive_and_ruleless_scenarios_are_skipped() -> None:
    inactive = _scenario(id="inactive", is_active=False)
    ruleless = _scenario(id="ruleless", rules=[])
    assert compute_payplan_rows([inactive, ruleless], {}, MONTHS) == []


def test_no_months_means_no_rows() -> None:
    assert compute_payplan_rows([_scenario()], {}, []) == []


def test_missing_series_pays_base_only() -> None:
    commission, base, total = compute_scenario_rows(_scenario(), {}, ["2026-01"])
    assert commission.values == {"2026-01": 0.0}
    assert total.values == base.values


def test_malformed_rules_column_parses_as_no_rules() -> None:
    assert parse_commission_rules("not json") == []
    assert parse_commission_rules({"rules": "oops"}) == []
    assert parse_commission_rules(None) == []
    record = PayplanScenarioRecord.from_row(
        {
            "id": "s",
            "user_id": "u",
            "name": "n",
            "base_salary_annual": "12000",
            "commission_rules": {"rules": [{"source_metric": "gp", "rate": 0.02}, "junk"]},
            "department_names": None,
        }
    )
    assert [rule.source_metric for rule in record.rules] == ["gp"]
    assert record.base_salary_annual == 12000.0
    assert record.department_names == []


def test_rules_column_stored_as_json_text() -> None:
    rules = parse_commission_rules('{"rules": [{"source_metric": "gp", "rate": 0.02}]}')
    assert len(rules) == 1
    assert rules[0].rate == 0.02
