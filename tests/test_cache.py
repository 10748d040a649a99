from __future__ import annotations

from typing import List

from metrics_engine.analytics.cache import FinancialDataCache
from metrics_engine.models.financials import FinancialEntryRecord, ForecastEntryRecord
from metrics_engine.schemas.metrics import FinancialChangeEvent


class CountingLoader:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def __call__(self, department_ids: List[str], months: List[str]) -> List[FinancialEntryRecord]:
        self.calls.append((list(department_ids), list(months)))
        return [
            FinancialEntryRecord(
                department_id=department_id,
                store_id="store-1",
                metric_name="labor_revenue",
                month=month,
                value=100,
            )
            for department_id in department_ids
            for month in months
        ]


def test_entries_load_once_until_refreshed() -> None:
    cache = FinancialDataCache()
    loader = CountingLoader()

    first = cache.get_entries(["dept-1"], ["2026-01", "2026-02"], loader)
    second = cache.get_entries(["dept-1"], ["2026-01"], loader)
    assert len(first) == 2
    assert len(second) == 1
    assert len(loader.calls) == 1

    cache.refresh("dept-1")
    cache.get_entries(["dept-1"], ["2026-01"], loader)
    assert len(loader.calls) == 2


def test_only_missing_departments_are_loaded() -> None:
    cache = FinancialDataCache()
    loader = CountingLoader()
    cache.get_entries(["dept-1"], ["2026-01"], loader)
    rows = cache.get_entries(["dept-1", "dept-2"], ["2026-01"], loader)
    assert loader.calls[-1] == (["dept-2"], ["2026-01"])
    assert {row.department_id for row in rows} == {"dept-1", "dept-2"}


def test_empty_months_are_cached_too() -> None:
    cache = FinancialDataCache()
    calls = []

    def loader(department_ids, months):
        calls.append(months)
        return []

    assert cache.get_entries(["dept-1"], ["2026-01"], loader) == []
    assert cache.get_entries(["dept-1"], ["2026-01"], loader) == []
    assert len(calls) == 1


def test_load_racing_a_refresh_is_served_but_not_kept() -> None:
    cache = FinancialDataCache()
    inner = CountingLoader()

    def racing_loader(department_ids, months):
        rows = inner(department_ids, months)
        cache.handle_change(FinancialChangeEvent(event_type="UPDATE", department_id="dept-1"))
        return rows

    rows = cache.get_entries(["dept-1"], ["2026-01"], racing_loader)
    assert len(rows) == 1
    assert cache.cached_departments() == set()


def test_change_event_and_refresh_all_drop_forecasts() -> None:
    cache = FinancialDataCache()
    loads = []

    def loader(department_id: str, year: int) -> List[ForecastEntryRecord]:
        loads.append((department_id, year))
        return [ForecastEntryRecord(metric_name="labor_revenue", month=f"{year}-01", forecast_value=1)]

    cache.get_forecast_entries("dept-1", 2026, loader)
    cache.get_forecast_entries("dept-1", 2026, loader)
    assert loads == [("dept-1", 2026)]

    assert cache.handle_change(FinancialChangeEvent(event_type="DELETE", department_id="dept-1")) == "dept-1"
    cache.get_forecast_entries("dept-1", 2026, loader)
    assert len(loads) == 2

    cache.refresh_all()
    assert cache.cached_departments() == set()
