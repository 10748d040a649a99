from __future__ import annotations

import logging
from collections import defaultdict
from typing import AbstractSet, Dict, Iterable, List, Mapping, Optional, Sequence

from metrics_engine.analytics.metric_catalog import (
    MetricDefinition,
    calculate_metrics,
    is_calculated_metric,
)
from metrics_engine.analytics.metric_keys import (
    MetricIdentity,
    SubMetric,
    try_decode,
)
from metrics_engine.models.financials import FinancialEntryRecord

logger = logging.getLogger(__name__)

MonthlySeries = Dict[str, float]


def _empty_series(months: Sequence[str]) -> MonthlySeries:
    return {month: 0.0 for month in months}


def aggregate_many(
    entries: Iterable[FinancialEntryRecord],
    store_ids: AbstractSet[str],
    metric_keys: Sequence[str],
    months: Sequence[str],
) -> Dict[str, MonthlySeries]:
    """Sum each metric per month over the entries owned by ``store_ids``.

    Every requested month is present in every series. Null values add nothing,
    so a month where no selected store reported is ``0.0``.
    """
    wanted: Dict[MetricIdentity, List[str]] = defaultdict(list)
    for metric_key in dict.fromkeys(metric_keys):
        requested = try_decode(metric_key)
        # an unparseable requested key matches nothing and stays all zeros
        if requested is not None:
            wanted[requested.identity].append(metric_key)

    results: Dict[str, MonthlySeries] = {key: _empty_series(months) for key in metric_keys}
    if not store_ids or not months:
        return results

    month_set = set(months)
    skipped = 0
    for entry in entries:
        if entry.value is None or entry.month not in month_set:
            continue
        if entry.store_id is None or entry.store_id not in store_ids:
            continue
        key = try_decode(entry.metric_name)
        if key is None:
            skipped += 1
            continue
        for metric_key in wanted.get(key.identity, ()):
            results[metric_key][entry.month] += entry.value

    if skipped:
        logger.debug("Skipped %d financial entries with malformed metric keys", skipped)
    return results


def aggregate(
    entries: Iterable[FinancialEntryRecord],
    store_ids: AbstractSet[str],
    metric_key: str,
    months: Sequence[str],
) -> MonthlySeries:
    return aggregate_many(entries, store_ids, [metric_key], months)[metric_key]


def series_total(series: MonthlySeries) -> float:
    return sum(series.values())


def sub_metric_sum(
    entries: Iterable[FinancialEntryRecord], parent_key: str, month: str
) -> Optional[float]:
    """Sum of a parent's sub-metric values for one month.

    ``None`` when the parent has no sub-metric rows that month at all, which
    callers treat differently from rows that exist but are all empty.
    """
    found = False
    total = 0.0
    for entry in entries:
        if entry.month != month:
            continue
        key = try_decode(entry.metric_name)
        if not isinstance(key, SubMetric) or key.parent_key != parent_key:
            continue
        found = True
        if entry.value is not None:
            total += entry.value
    return total if found else None


def sub_metric_names(entries: Iterable[FinancialEntryRecord], parent_key: str) -> List[str]:
    # statement order: indexed rows first, then legacy rows, ties by name
    ranked: Dict[str, int] = {}
    for entry in entries:
        key = try_decode(entry.metric_name)
        if not isinstance(key, SubMetric) or key.parent_key != parent_key:
            continue
        index = key.sort_index
        if key.name not in ranked or index < ranked[key.name]:
            ranked[key.name] = index
    return sorted(ranked, key=lambda name: (ranked[name], name))


def sub_metric_values(
    entries: Iterable[FinancialEntryRecord],
    parent_key: str,
    months: Sequence[str],
) -> Dict[str, Dict[str, Optional[float]]]:
    """Per-name, per-month sub-metric values for one department's entries."""
    month_set = set(months)
    values: Dict[str, Dict[str, Optional[float]]] = {}
    for entry in entries:
        if entry.month not in month_set:
            continue
        key = try_decode(entry.metric_name)
        if not isinstance(key, SubMetric) or key.parent_key != parent_key:
            continue
        values.setdefault(key.name, {month: None for month in months})[entry.month] = entry.value
    return values


def department_actuals(
    entries: Iterable[FinancialEntryRecord],
    department_id: str,
    metric_key: str,
    months: Sequence[str],
) -> Dict[str, Optional[float]]:
    """One department's value of a metric per month; ``None`` where nothing was reported."""
    requested = try_decode(metric_key)
    actuals: Dict[str, Optional[float]] = {month: None for month in months}
    if requested is None:
        return actuals
    for entry in entries:
        if entry.department_id != department_id or entry.month not in actuals:
            continue
        if entry.value is None:
            continue
        key = try_decode(entry.metric_name)
        if key is None or key.identity != requested.identity:
            continue
        current = actuals[entry.month]
        actuals[entry.month] = entry.value if current is None else current + entry.value
    return actuals


def derived_series(
    stored: Mapping[str, MonthlySeries],
    metric_keys: Sequence[str],
    months: Sequence[str],
    definitions: Sequence[MetricDefinition],
) -> Dict[str, MonthlySeries]:
    """Requested series, with calculated metrics rebuilt month by month from ``stored`` sums."""
    calculated_by_month: Dict[str, Dict[str, float]] = {}
    if any(is_calculated_metric(key, definitions) for key in metric_keys):
        for month in months:
            month_values = {key: series[month] for key, series in stored.items()}
            calculated_by_month[month] = calculate_metrics(month_values, definitions)

    results: Dict[str, MonthlySeries] = {}
    for metric_key in metric_keys:
        if is_calculated_metric(metric_key, definitions):
            results[metric_key] = {
                month: calculated_by_month[month][metric_key] for month in months
            }
        else:
            results[metric_key] = dict(stored.get(metric_key) or _empty_series(months))
    return results
