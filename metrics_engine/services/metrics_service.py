from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from metrics_engine.analytics.aggregation import (
    MonthlySeries,
    aggregate_many,
    department_actuals,
    derived_series,
    series_total,
    sub_metric_names,
    sub_metric_sum,
    sub_metric_values,
)
from metrics_engine.analytics.cache import FinancialDataCache
from metrics_engine.analytics.metric_catalog import (
    MetricDefinition,
    component_keys,
    is_calculated_metric,
    metric_value,
    metrics_for_brand,
)
from metrics_engine.analytics.metric_keys import MalformedMetricKeyError, decode, sort_metric_keys
from metrics_engine.core.errors import BadRequestError
from metrics_engine.models.financials import DepartmentRecord, FinancialEntryRecord
from metrics_engine.repositories.financials_repository import FinancialsRepository
from metrics_engine.schemas.metrics import (
    CacheRefreshRequest,
    CacheRefreshResult,
    MetricAggregate,
    MetricCatalogEntry,
    SubMetricBreakdown,
    SubMetricSeries,
)
from metrics_engine.shared.periods import normalize_months

logger = logging.getLogger(__name__)


class MetricsService:
    def __init__(self, repository: FinancialsRepository, cache: FinancialDataCache) -> None:
        self.repository = repository
        self.cache = cache

    def load_entries(
        self, department_ids: Sequence[str], months: Sequence[str]
    ) -> List[FinancialEntryRecord]:
        return self.cache.get_entries(
            department_ids, months, self.repository.list_financial_entries
        )

    def _store_entries(
        self,
        store_ids: Sequence[str],
        months: Sequence[str],
        department_names: Optional[Sequence[str]] = None,
    ) -> List[FinancialEntryRecord]:
        departments = self.repository.list_departments(store_ids, department_names)
        if not departments:
            return []
        entries = self.load_entries([department.id for department in departments], months)
        return self._with_store_ids(entries, departments)

    @staticmethod
    def _with_store_ids(
        entries: List[FinancialEntryRecord], departments: List[DepartmentRecord]
    ) -> List[FinancialEntryRecord]:
        # rows read without the departments join carry no store id
        store_by_department = {department.id: department.store_id for department in departments}
        return [
            entry
            if entry.store_id is not None
            else entry.model_copy(update={"store_id": store_by_department.get(entry.department_id)})
            for entry in entries
        ]

    def _stored_series(
        self,
        store_ids: Sequence[str],
        metric_keys: Sequence[str],
        months: Sequence[str],
        department_names: Optional[Sequence[str]],
        definitions: Sequence[MetricDefinition],
    ) -> Dict[str, MonthlySeries]:
        entries = self._store_entries(store_ids, months, department_names)
        return aggregate_many(
            entries, set(store_ids), component_keys(metric_keys, definitions), months
        )

    def aggregate_series(
        self,
        store_ids: Sequence[str],
        metric_keys: Sequence[str],
        months: Sequence[str],
        department_names: Optional[Sequence[str]] = None,
        brand: Optional[str] = None,
    ) -> Dict[str, MonthlySeries]:
        definitions = metrics_for_brand(brand)
        stored = self._stored_series(store_ids, metric_keys, months, department_names, definitions)
        return derived_series(stored, metric_keys, months, definitions)

    def get_store_aggregates(
        self,
        store_ids: Sequence[str],
        metric_keys: Sequence[str],
        months: Sequence[str],
        department_names: Optional[Sequence[str]] = None,
        brand: Optional[str] = None,
    ) -> List[MetricAggregate]:
        """One aggregate per key, in statement order with sub-metrics under their parent."""
        for metric_key in metric_keys:
            self._validate_metric_key(metric_key)
        definitions = metrics_for_brand(brand)
        ordered_keys = sort_metric_keys(
            list(dict.fromkeys(metric_keys)), [definition.key for definition in definitions]
        )
        normalized_months = normalize_months(months)
        stored = self._stored_series(
            store_ids, ordered_keys, normalized_months, department_names, definitions
        )
        series_by_key = derived_series(stored, ordered_keys, normalized_months, definitions)
        totals = {key: series_total(series) for key, series in stored.items()}
        return [
            MetricAggregate(
                metric_key=metric_key,
                store_ids=list(store_ids),
                department_names=list(department_names or []),
                values=series_by_key[metric_key],
                total=metric_value(metric_key, totals, definitions),
            )
            for metric_key in ordered_keys
        ]

    def get_store_aggregate(
        self,
        store_ids: Sequence[str],
        metric_key: str,
        months: Sequence[str],
        department_names: Optional[Sequence[str]] = None,
        brand: Optional[str] = None,
    ) -> MetricAggregate:
        return self.get_store_aggregates(
            store_ids, [metric_key], months, department_names, brand=brand
        )[0]

    def get_department_actuals(
        self,
        department_id: str,
        metric_key: str,
        months: Sequence[str],
        brand: Optional[str] = None,
    ) -> Dict[str, Optional[float]]:
        entries = self.load_entries([department_id], months)
        definitions = metrics_for_brand(brand)
        if not is_calculated_metric(metric_key, definitions):
            return department_actuals(entries, department_id, metric_key, months)

        components = {
            key: department_actuals(entries, department_id, key, months)
            for key in component_keys([metric_key], definitions)
        }
        actuals: Dict[str, Optional[float]] = {}
        for month in months:
            reported = {
                key: values[month]
                for key, values in components.items()
                if values[month] is not None
            }
            # a month with none of the components reported stays pending
            actuals[month] = metric_value(metric_key, reported, definitions) if reported else None
        return actuals

    def get_metric_catalog(self, brand: Optional[str] = None) -> List[MetricCatalogEntry]:
        definitions = metrics_for_brand(brand)
        return [
            MetricCatalogEntry(
                key=definition.key,
                name=definition.name,
                metric_type=definition.type,
                target_direction=definition.target_direction,
                calculated=definition.is_calculated,
                components=(
                    component_keys([definition.key], definitions) if definition.is_calculated else []
                ),
            )
            for definition in definitions
        ]

    def get_sub_metric_breakdown(
        self, department_id: str, parent_metric_key: str, months: Sequence[str]
    ) -> SubMetricBreakdown:
        normalized_months = normalize_months(months)
        entries = self.load_entries([department_id], normalized_months)
        names = sub_metric_names(entries, parent_metric_key)
        values = sub_metric_values(entries, parent_metric_key, normalized_months)
        return SubMetricBreakdown(
            department_id=department_id,
            parent_metric_key=parent_metric_key,
            names=names,
            series=[
                SubMetricSeries(
                    name=name,
                    values=values.get(name, {month: None for month in normalized_months}),
                )
                for name in names
            ],
            sums={
                month: sub_metric_sum(entries, parent_metric_key, month)
                for month in normalized_months
            },
        )

    def refresh(self, request: CacheRefreshRequest) -> CacheRefreshResult:
        if request.event is not None:
            department_id = self.cache.handle_change(request.event)
            return CacheRefreshResult(refreshed_departments=[department_id])
        if request.department_id:
            self.cache.refresh(request.department_id)
            return CacheRefreshResult(refreshed_departments=[request.department_id])
        dropped = sorted(self.cache.cached_departments())
        self.cache.refresh_all()
        return CacheRefreshResult(refreshed_departments=dropped, all_departments=True)

    @staticmethod
    def _validate_metric_key(metric_key: str) -> None:
        try:
            decode(metric_key)
        except MalformedMetricKeyError as exc:
            raise BadRequestError(str(exc), details={"metricKey": metric_key}) from exc
